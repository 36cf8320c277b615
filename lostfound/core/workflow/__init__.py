"""Work request approval workflow.

Implements the request state machine, the per-kind approval chains and the
service facade that ties them to routing and storage.
"""

from .states import RequestPriority, RequestStatus, RequestType, Role, Transition, VALID_TRANSITIONS
from .errors import (
    InvalidApproverError,
    InvalidStateError,
    NoApproverAvailableError,
    RequestNotFoundError,
    UnauthorizedError,
    ValidationError,
    WorkflowError,
)
from .variants import (
    CrossEnterpriseTransferPayload,
    DisputeResolutionPayload,
    EmergencyTransferPayload,
    ItemClaimPayload,
    PoliceEvidencePayload,
    RequestPayload,
)
from .disputes import ClaimStatus, DisputeResolution, PanelVote, PoliceFindings, ResolutionStatus
from .request import ApprovalHistoryEntry, WorkRequest
from .machine import WorkRequestStateMachine
from .store import InMemoryRequestStore, RequestStore
from .service import WorkflowService, WorkRequestStats

__all__ = [
    "RequestPriority",
    "RequestStatus",
    "RequestType",
    "Role",
    "Transition",
    "VALID_TRANSITIONS",
    "InvalidApproverError",
    "InvalidStateError",
    "NoApproverAvailableError",
    "RequestNotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "WorkflowError",
    "CrossEnterpriseTransferPayload",
    "DisputeResolutionPayload",
    "EmergencyTransferPayload",
    "ItemClaimPayload",
    "PoliceEvidencePayload",
    "RequestPayload",
    "ClaimStatus",
    "DisputeResolution",
    "PanelVote",
    "PoliceFindings",
    "ResolutionStatus",
    "ApprovalHistoryEntry",
    "WorkRequest",
    "WorkRequestStateMachine",
    "InMemoryRequestStore",
    "RequestStore",
    "WorkflowService",
    "WorkRequestStats",
]
