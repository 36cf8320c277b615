"""Approver directory database model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from lostfound.core.clock import utcnow
from lostfound.db.base import Base


class ApproverRecord(Base):
    """
    An identity that can be routed approval steps.

    ``id`` increases with registration and gives the directory its order.
    """
    __tablename__ = "approvers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    approver_id = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, index=True)
    organization_id = Column(String(64), nullable=True, index=True)
    enterprise_id = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<ApproverRecord {self.approver_id} {self.role}>"
