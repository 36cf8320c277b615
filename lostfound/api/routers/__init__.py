"""API routers for lostfound."""

from . import health
from . import work_requests

__all__ = [
    "health",
    "work_requests",
]
