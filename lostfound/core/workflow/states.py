"""Work request states, priorities, roles and transitions.

State Machine Diagram:

    ┌──────────┐
    │ PENDING  │ ← Initial state (request created, first approver assigned)
    └────┬─────┘
         │ advance (chain not exhausted)
    ┌────▼────────┐
    │ IN_PROGRESS │ ◄─┐ advance (more steps remain)
    └────┬────────┘ ──┘
         │ approve (last step approved)
    ┌────▼─────┐
    │ APPROVED │ (awaiting hand-over)
    └────┬─────┘
         │ complete
    ┌────▼──────┐
    │ COMPLETED │
    └───────────┘

PENDING and IN_PROGRESS may also move to REJECTED (by the current approver)
or CANCELLED (by the requester). PENDING may go straight to APPROVED when the
chain has a single step.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Set


class RequestStatus(str, Enum):
    """Lifecycle states of a work request."""

    PENDING = "pending"            # Created, waiting for the first approval
    IN_PROGRESS = "in_progress"    # At least one approval, more required
    APPROVED = "approved"          # Whole chain approved, awaiting completion
    REJECTED = "rejected"          # Rejected by the current approver
    CANCELLED = "cancelled"        # Withdrawn by the requester
    COMPLETED = "completed"        # Item handed over


class RequestPriority(str, Enum):
    """Priority assigned once at creation."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class RequestType(str, Enum):
    """Closed set of work request kinds."""

    ITEM_CLAIM = "item_claim"
    POLICE_EVIDENCE_REQUEST = "police_evidence_request"
    CROSS_ENTERPRISE_TRANSFER = "cross_enterprise_transfer"
    EMERGENCY_TRANSFER = "emergency_transfer"
    MULTI_ENTERPRISE_DISPUTE = "multi_enterprise_dispute"


class Role(str, Enum):
    """Approver roles that may appear in an approval chain."""

    CAMPUS_COORDINATOR = "campus_coordinator"
    POLICE_EVIDENCE_CUSTODIAN = "police_evidence_custodian"
    ORIGIN_ENTERPRISE_MANAGER = "origin_enterprise_manager"
    DESTINATION_COORDINATOR = "destination_coordinator"
    REQUESTER_CONFIRMATION = "requester_confirmation"
    STATION_MANAGER = "station_manager"
    AIRPORT_SPECIALIST = "airport_specialist"


class Transition(str, Enum):
    """Actions that trigger state transitions."""

    ADVANCE = "advance"      # PENDING/IN_PROGRESS → IN_PROGRESS
    APPROVE = "approve"      # PENDING/IN_PROGRESS → APPROVED (last step)
    REJECT = "reject"        # PENDING/IN_PROGRESS → REJECTED
    CANCEL = "cancel"        # PENDING/IN_PROGRESS → CANCELLED
    COMPLETE = "complete"    # APPROVED → COMPLETED


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: RequestStatus
    to_state: RequestStatus
    transition: Transition
    requires_current_approver: bool = False
    requires_requester: bool = False
    requires_comment: bool = False


# Define all valid transitions
TRANSITION_RULES: list[TransitionRule] = [
    # Approval chain
    TransitionRule(RequestStatus.PENDING, RequestStatus.IN_PROGRESS, Transition.ADVANCE,
                   requires_current_approver=True),
    TransitionRule(RequestStatus.IN_PROGRESS, RequestStatus.IN_PROGRESS, Transition.ADVANCE,
                   requires_current_approver=True),
    TransitionRule(RequestStatus.PENDING, RequestStatus.APPROVED, Transition.APPROVE,
                   requires_current_approver=True),
    TransitionRule(RequestStatus.IN_PROGRESS, RequestStatus.APPROVED, Transition.APPROVE,
                   requires_current_approver=True),

    # Rejection
    TransitionRule(RequestStatus.PENDING, RequestStatus.REJECTED, Transition.REJECT,
                   requires_comment=True),
    TransitionRule(RequestStatus.IN_PROGRESS, RequestStatus.REJECTED, Transition.REJECT,
                   requires_comment=True),

    # Withdrawal by the requester
    TransitionRule(RequestStatus.PENDING, RequestStatus.CANCELLED, Transition.CANCEL,
                   requires_requester=True),
    TransitionRule(RequestStatus.IN_PROGRESS, RequestStatus.CANCELLED, Transition.CANCEL,
                   requires_requester=True),

    # Hand-over
    TransitionRule(RequestStatus.APPROVED, RequestStatus.COMPLETED, Transition.COMPLETE),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[RequestStatus, Set[Transition]] = {}
TRANSITION_TARGETS: Dict[tuple[RequestStatus, Transition], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.transition)
    TRANSITION_TARGETS[(rule.from_state, rule.transition)] = rule


# No outgoing transitions
TERMINAL_STATES: Set[RequestStatus] = {
    RequestStatus.REJECTED,
    RequestStatus.CANCELLED,
    RequestStatus.COMPLETED,
}

# States in which a request sits in some approver's queue
ACTIVE_STATES: Set[RequestStatus] = {
    RequestStatus.PENDING,
    RequestStatus.IN_PROGRESS,
}

SLA_TARGET_HOURS: Dict[RequestPriority, int] = {
    RequestPriority.URGENT: 4,
    RequestPriority.HIGH: 8,
    RequestPriority.NORMAL: 24,
    RequestPriority.LOW: 72,
}


def can_transition(from_state: RequestStatus, transition: Transition) -> bool:
    """Check if a transition is valid from the given state."""
    return transition in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: RequestStatus, transition: Transition) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, transition))


def get_target_state(from_state: RequestStatus, transition: Transition) -> Optional[RequestStatus]:
    """Get the target state for a transition."""
    rule = get_transition_rule(from_state, transition)
    return rule.to_state if rule else None


def sla_hours_for(priority: RequestPriority) -> int:
    """SLA target in hours for a priority."""
    return SLA_TARGET_HOURS[priority]
