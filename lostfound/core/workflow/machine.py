"""Work request state machine implementation.

Handles state transitions with validation and caller checks. Audit history
lives on the request; notification happens in the service once persisted.
"""

from datetime import datetime

from .errors import InvalidApproverError, InvalidStateError, UnauthorizedError, ValidationError
from .request import ApprovalHistoryEntry, WorkRequest
from .states import (
    RequestStatus,
    Transition,
    get_transition_rule,
)


class WorkRequestStateMachine:
    """
    State machine for a single work request.

    Manages transitions between request states with:
    - Validation of valid transitions
    - Caller checks (assigned approver, original requester)

    A failed transition raises before touching the request.
    """

    def __init__(self, request: WorkRequest):
        """
        Initialize the state machine.

        Args:
            request: The request to drive; mutated in place
        """
        self.request = request

    def advance_approval(self, approver_id: str, approver_name: str, now: datetime) -> RequestStatus:
        """
        Record an approval of the current step.

        Moves to APPROVED once every step of the chain is approved, otherwise
        to IN_PROGRESS. Clearing or replacing the current approver for the
        next step is left to routing.

        Raises:
            InvalidStateError: If the request is not awaiting approval
            InvalidApproverError: If the caller is not the assigned approver
            ValidationError: If the request is a dispute with no award yet
        """
        request = self.request
        last_step = request.approval_step + 1 >= len(request.approval_chain)
        transition = Transition.APPROVE if last_step else Transition.ADVANCE
        rule = self._require_rule(transition)

        if rule.requires_current_approver and approver_id != request.current_approver_id:
            raise InvalidApproverError(approver_id, request.current_approver_id)
        if last_step and request.dispute is not None and not request.dispute.is_resolved:
            raise ValidationError("A dispute must be resolved before its final approval")

        request.approver_history.append(ApprovalHistoryEntry(approver_id, approver_name, now))
        request.approval_step += 1
        if rule.to_state == RequestStatus.APPROVED:
            request.current_approver_id = None

        return self._apply(rule.to_state, now)

    def reject(self, reason: str, now: datetime) -> RequestStatus:
        """
        Reject the request.

        Raises:
            InvalidStateError: If the request is not awaiting approval
            ValidationError: If no reason is given
        """
        rule = self._require_rule(Transition.REJECT)
        if rule.requires_comment and not (reason and reason.strip()):
            raise ValidationError("Rejecting a request requires a reason")

        self.request.notes = reason
        self.request.current_approver_id = None
        return self._apply(rule.to_state, now)

    def cancel(self, requester_id: str, now: datetime) -> RequestStatus:
        """
        Cancel the request on behalf of its requester.

        Raises:
            UnauthorizedError: If the caller is not the requester
            InvalidStateError: If the request can no longer be cancelled
        """
        if requester_id != self.request.requester_id:
            raise UnauthorizedError(requester_id, self.request.requester_id)

        rule = self._require_rule(Transition.CANCEL)
        self.request.current_approver_id = None
        return self._apply(rule.to_state, now)

    def complete(self, now: datetime) -> RequestStatus:
        """
        Mark an approved request as completed.

        Raises:
            InvalidStateError: If the request is not APPROVED
        """
        rule = self._require_rule(Transition.COMPLETE)
        self.request.completed_at = now
        return self._apply(rule.to_state, now)

    def _require_rule(self, transition: Transition):
        status = self.request.status
        rule = get_transition_rule(status, transition)
        if rule is None:
            raise InvalidStateError(
                f"Cannot perform {transition.value} from state {status.value}",
                status,
                transition,
            )
        return rule

    def _apply(self, to_state: RequestStatus, now: datetime) -> RequestStatus:
        self.request.status = to_state
        self.request.updated_at = now
        return to_state
