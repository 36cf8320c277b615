"""Database models for lostfound."""

from lostfound.db.models.work_request import WorkRequestRecord
from lostfound.db.models.approver import ApproverRecord

__all__ = [
    "WorkRequestRecord",
    "ApproverRecord",
]
