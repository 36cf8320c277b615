"""Work request envelope shared by every request kind."""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from .disputes import DisputeResolution
from .errors import ValidationError
from .states import ACTIVE_STATES, RequestPriority, RequestStatus, RequestType, Role
from .variants import DisputeResolutionPayload, RequestPayload


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """One completed approval step."""

    approver_id: str
    approver_name: str
    timestamp: datetime


@dataclass
class WorkRequest:
    """
    Envelope tracking the workflow state of a request.

    The payload is composed in, never subclassed. Chain, priority and SLA
    target are frozen from the payload when the request is created; only
    the state machine mutates status, step, history and approver fields.
    """

    request_id: str
    request_type: RequestType
    payload: RequestPayload
    priority: RequestPriority
    approval_chain: Tuple[Role, ...]
    sla_target_hours: int
    created_at: datetime
    updated_at: datetime
    status: RequestStatus = RequestStatus.PENDING
    approval_step: int = 0
    approver_history: List[ApprovalHistoryEntry] = field(default_factory=list)
    current_approver_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    dispute: Optional[DisputeResolution] = None

    @classmethod
    def create(
        cls,
        payload: RequestPayload,
        now: datetime,
        *,
        request_id: Optional[str] = None,
    ) -> "WorkRequest":
        """
        Build a new PENDING request from a payload.

        Raises:
            ValidationError: If the payload is not valid
        """
        if not payload.is_valid():
            raise ValidationError(f"Invalid {payload.request_type.value} payload: {payload.summary()}")

        return cls(
            request_id=request_id or str(uuid.uuid4()),
            request_type=payload.request_type,
            payload=payload,
            priority=payload.compute_priority(),
            approval_chain=tuple(payload.compute_approval_chain()),
            sla_target_hours=payload.compute_sla_target_hours(),
            created_at=now,
            updated_at=now,
            dispute=(
                DisputeResolution.open(payload.claimant_ids)
                if isinstance(payload, DisputeResolutionPayload) else None
            ),
        )

    @property
    def requester_id(self) -> str:
        return self.payload.requester_id

    @property
    def requester_organization_id(self) -> Optional[str]:
        return self.payload.requester_organization_id

    @property
    def target_organization_id(self) -> Optional[str]:
        return self.payload.target_organization_id

    @property
    def is_active(self) -> bool:
        """Whether the request is waiting on an approver."""
        return self.status in ACTIVE_STATES

    @property
    def next_required_role(self) -> Optional[Role]:
        """Role that must approve next, or None once the chain is exhausted."""
        if self.approval_step >= len(self.approval_chain):
            return None
        return self.approval_chain[self.approval_step]

    def needs_approval_from_role(self, role: Role) -> bool:
        return self.is_active and self.next_required_role == role

    def approver_ids(self) -> List[str]:
        return [entry.approver_id for entry in self.approver_history]

    def summary(self) -> str:
        return self.payload.summary()

    def clone(self) -> "WorkRequest":
        """Independent copy safe to mutate."""
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return (
            f"<WorkRequest {self.request_id} {self.request_type.value} [{self.status.value}] "
            f"step={self.approval_step}/{len(self.approval_chain)}>"
        )
