"""Common schemas for the lostfound API."""

from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a result list."""
    items: List[T]
    total: int
    page: int
    per_page: int
    pages: int

    @classmethod
    def paginate(
        cls,
        results: Sequence[Any],
        page: int,
        per_page: int,
        convert: Callable[[Any], T],
    ) -> "PaginatedResponse[T]":
        """Slice ``results`` to ``page`` (1-based) and convert only the items shown."""
        total = len(results)
        offset = (page - 1) * per_page
        items = [convert(r) for r in results[offset:offset + per_page]]
        pages = (total + per_page - 1) // per_page if per_page > 0 else 0
        return cls(items=items, total=total, page=page, per_page=per_page, pages=pages)


class ErrorResponse(BaseModel):
    """Body returned for workflow errors."""
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
    data: Optional[Any] = None
