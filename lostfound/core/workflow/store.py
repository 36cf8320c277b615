"""Storage collaborator contract for work requests."""

import threading
from typing import Any, Dict, List, Optional, Protocol

from .errors import RequestNotFoundError
from .request import WorkRequest


class RequestStore(Protocol):
    """Durable store the workflow service persists requests through.

    Reads must observe earlier writes for the same id within one process.
    """

    def create(self, request: WorkRequest) -> str: ...

    def find_by_id(self, request_id: str) -> Optional[WorkRequest]: ...

    def find_all(self) -> List[WorkRequest]: ...

    def find_by_field(self, name: str, value: Any) -> List[WorkRequest]: ...

    def update(self, request: WorkRequest) -> None: ...


class InMemoryRequestStore:
    """Process-local store; hands out copies so callers never share state."""

    def __init__(self):
        self._requests: Dict[str, WorkRequest] = {}
        self._lock = threading.Lock()

    def create(self, request: WorkRequest) -> str:
        with self._lock:
            if request.request_id in self._requests:
                raise ValueError(f"Work request {request.request_id} already exists")
            self._requests[request.request_id] = request.clone()
        return request.request_id

    def find_by_id(self, request_id: str) -> Optional[WorkRequest]:
        with self._lock:
            stored = self._requests.get(request_id)
            return stored.clone() if stored else None

    def find_all(self) -> List[WorkRequest]:
        with self._lock:
            return [r.clone() for r in self._requests.values()]

    def find_by_field(self, name: str, value: Any) -> List[WorkRequest]:
        with self._lock:
            return [
                r.clone() for r in self._requests.values()
                if getattr(r, name, None) == value
            ]

    def update(self, request: WorkRequest) -> None:
        with self._lock:
            if request.request_id not in self._requests:
                raise RequestNotFoundError(request.request_id)
            self._requests[request.request_id] = request.clone()
