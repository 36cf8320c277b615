"""Work request database model.

One row per request. The payload, the approval history and any dispute
resolution record are stored as JSON; the fields queries filter on get
their own indexed columns.
"""

from sqlalchemy import Column, String, DateTime, Integer, JSON, Text

from lostfound.core.clock import utcnow
from lostfound.db.base import Base


class WorkRequestRecord(Base):
    """
    Stored form of a work request.

    Chain, priority and SLA target are written once at creation.
    """
    __tablename__ = "work_requests"

    id = Column(String(36), primary_key=True)
    request_type = Column(String(50), nullable=False, index=True)

    # Workflow state
    status = Column(String(50), nullable=False, default="pending", index=True)
    priority = Column(String(20), nullable=False)
    approval_chain = Column(JSON, nullable=False, default=list)
    approval_step = Column(Integer, nullable=False, default=0)
    approver_history = Column(JSON, nullable=False, default=list)
    current_approver_id = Column(String(64), nullable=True, index=True)

    # Parties
    requester_id = Column(String(64), nullable=False, index=True)
    requester_organization_id = Column(String(64), nullable=True, index=True)
    target_organization_id = Column(String(64), nullable=True, index=True)

    # Variant fields
    payload = Column(JSON, nullable=False, default=dict)
    dispute = Column(JSON, nullable=True)  # resolution record, disputes only

    sla_target_hours = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    # Timestamps (naive UTC)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<WorkRequestRecord {self.id} {self.request_type} [{self.status}]>"
