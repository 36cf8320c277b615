"""Workflow service for managing work request lifecycles.

Provides the high-level API callers use: creating requests, driving them
through their approval chain, and querying them. Combines the state machine,
the routing engine and the storage collaborator, and publishes every
persisted transition to the notifier.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from lostfound.core.clock import utcnow
from lostfound.core.locks import KeyedLock
from lostfound.services.notifications import TransitionEvent, TransitionNotifier

from . import sla
from .disputes import PanelVote, PoliceFindings
from .errors import InvalidApproverError, InvalidStateError, NoApproverAvailableError, ValidationError
from .machine import WorkRequestStateMachine
from .request import WorkRequest
from .states import RequestStatus, RequestType, Role
from .store import RequestStore
from .variants import RequestPayload

if TYPE_CHECKING:
    from lostfound.core.routing.engine import RoutingEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkRequestStats:
    """Request counts per status."""

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0
    completed: int = 0
    overdue: int = 0

    @property
    def active(self) -> int:
        return self.pending + self.in_progress


class WorkflowService:
    """
    High-level service for managing work requests.

    Handles:
    - Creating requests and routing them to their first approver
    - Approvals, rejections, cancellations and completion with persistence
    - Keeping approver workload in step with every transition
    - Dispute panel votes, police findings and awards
    - Querying requests, SLA status and statistics

    Mutations of one request are serialised by a per-request lock; requests
    with different ids never wait on each other. Each mutation works on a
    copy read from the store, so a failed operation leaves the stored request
    and the workload counters as they were.
    """

    def __init__(
        self,
        store: RequestStore,
        routing: "RoutingEngine",
        *,
        notifier: Optional[TransitionNotifier] = None,
        clock: Callable[[], datetime] = utcnow,
        approaching_threshold_hours: float = sla.DEFAULT_APPROACHING_THRESHOLD_HOURS,
    ):
        """
        Initialize the workflow service.

        Args:
            store: Storage collaborator
            routing: Routing engine owning the workload counters
            notifier: Receives an event for every persisted transition
            clock: Source of the current time
            approaching_threshold_hours: Window before the SLA deadline that
                counts as approaching breach
        """
        self.store = store
        self.routing = routing
        self.notifier = notifier or TransitionNotifier()
        self.clock = clock
        self.approaching_threshold_hours = approaching_threshold_hours
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_request(self, payload: RequestPayload) -> Optional[str]:
        """
        Create a request and route it to its first approver.

        Returns:
            The new request id, or None if the payload is invalid

        Raises:
            NoApproverAvailableError: If nobody can take the first step. The
                request is still stored, PENDING and unassigned, and its id is
                carried on the error.
        """
        now = self.clock()
        try:
            request = WorkRequest.create(payload, now)
        except ValidationError as e:
            logger.warning("Invalid work request not created: %s", e)
            return None

        with self._locks.hold(request.request_id):
            try:
                approver = self.routing.assign(request)
            except NoApproverAvailableError as e:
                self.store.create(request)
                e.request_id = request.request_id
                logger.warning("Work request %s stored without an approver: %s", request.request_id, e)
                self._publish(request, None, now)
                raise

            request.current_approver_id = approver.approver_id
            try:
                self.store.create(request)
            except Exception:
                self.routing.release(approver.approver_id)
                raise

            logger.info(
                "Created %s request %s (priority: %s, chain: %s)",
                request.request_type.value, request.request_id, request.priority.value,
                ", ".join(role.value for role in request.approval_chain),
            )
            self._publish(request, None, now)

        return request.request_id

    def approve_request(self, request_id: str, approver_id: str) -> bool:
        """
        Approve the current step of a request.

        Returns:
            True once persisted, False if the request does not exist

        Raises:
            InvalidStateError: If the request is not awaiting approval
            InvalidApproverError: If the caller is not the assigned approver
            NoApproverAvailableError: If nobody can take the next step; the
                approval is not recorded
            ValidationError: If the request is a dispute with no award yet
        """
        with self._locks.hold(request_id):
            request = self.store.find_by_id(request_id)
            if request is None:
                logger.warning("Approve failed: work request %s not found", request_id)
                return False

            self._advance(request, approver_id, self.clock())
        return True

    def reject_request(self, request_id: str, approver_id: str, reason: str) -> bool:
        """
        Reject a request on behalf of its current approver.

        Returns:
            True once persisted, False if the request does not exist

        Raises:
            InvalidStateError: If the request is no longer awaiting approval
            InvalidApproverError: If the caller is not the assigned approver
            ValidationError: If no reason is given
        """
        with self._locks.hold(request_id):
            request = self.store.find_by_id(request_id)
            if request is None:
                logger.warning("Reject failed: work request %s not found", request_id)
                return False

            if request.is_active and approver_id != request.current_approver_id:
                raise InvalidApproverError(approver_id, request.current_approver_id)

            now = self.clock()
            old_status = request.status
            released_id = request.current_approver_id

            WorkRequestStateMachine(request).reject(reason, now)
            self.routing.release(released_id)
            self._persist(request, released_id=released_id)

            logger.info("Work request %s rejected by %s: %s", request_id, approver_id, reason)
            self._publish(request, old_status, now, actor_id=approver_id)
        return True

    def cancel_request(self, request_id: str, requester_id: str) -> bool:
        """
        Withdraw a request on behalf of its requester.

        Returns:
            True once persisted, False if the request does not exist

        Raises:
            UnauthorizedError: If the caller is not the requester
            InvalidStateError: If the request can no longer be cancelled
        """
        with self._locks.hold(request_id):
            request = self.store.find_by_id(request_id)
            if request is None:
                logger.warning("Cancel failed: work request %s not found", request_id)
                return False

            now = self.clock()
            old_status = request.status
            released_id = request.current_approver_id

            WorkRequestStateMachine(request).cancel(requester_id, now)
            self.routing.release(released_id)
            self._persist(request, released_id=released_id)

            logger.info("Work request %s cancelled by requester %s", request_id, requester_id)
            self._publish(request, old_status, now, actor_id=requester_id)
        return True

    def complete_request(self, request_id: str) -> bool:
        """
        Mark an approved request as handed over.

        Returns:
            True once persisted, False if the request does not exist

        Raises:
            InvalidStateError: If the request is not APPROVED
        """
        with self._locks.hold(request_id):
            request = self.store.find_by_id(request_id)
            if request is None:
                logger.warning("Complete failed: work request %s not found", request_id)
                return False

            now = self.clock()
            old_status = request.status
            WorkRequestStateMachine(request).complete(now)
            self.store.update(request)

            logger.info("Work request %s completed", request_id)
            self._publish(request, old_status, now)
        return True

    def reassign_request(self, request_id: str) -> Optional[str]:
        """
        Route an in-flight request whose step has no usable approver.

        Covers requests stored without an approver and requests whose
        approver has since been deactivated. A request with an active
        approver keeps it.

        Returns:
            The approver now assigned, or None if the request does not exist

        Raises:
            InvalidStateError: If the request is not awaiting approval
            NoApproverAvailableError: If nobody can take the step
        """
        with self._locks.hold(request_id):
            request = self.store.find_by_id(request_id)
            if request is None:
                logger.warning("Reassign failed: work request %s not found", request_id)
                return None

            if not request.is_active:
                raise InvalidStateError(
                    f"Cannot reassign a request in state {request.status.value}",
                    request.status,
                )

            current_id = request.current_approver_id
            if current_id and not self._is_stale_assignment(request, current_id):
                return current_id

            assigned_id = self.routing.assign(request).approver_id
            request.current_approver_id = assigned_id
            request.updated_at = self.clock()
            self.routing.release(current_id)
            self._persist(request, assigned_id=assigned_id, released_id=current_id)

            logger.info("Work request %s reassigned from %s to %s", request_id, current_id, assigned_id)
        return assigned_id

    # ------------------------------------------------------------------
    # Disputes
    # ------------------------------------------------------------------

    def record_dispute_vote(
        self,
        request_id: str,
        voter_id: str,
        voter_name: str,
        voted_for_claimant_id: str,
        reason: str,
        *,
        voter_role: Optional[str] = None,
    ) -> bool:
        """
        Record a panel member's vote on an in-flight dispute.

        The vote that reaches the required count decides the dispute: a
        strict majority awards the item, anything else escalates to police.

        Returns:
            True once persisted, False if the request does not exist

        Raises:
            ValidationError: If the request is not a dispute or the vote is
                not acceptable
            InvalidStateError: If the request is no longer awaiting approval
        """
        with self._locks.hold(request_id):
            request = self._find_dispute(request_id, "Vote")
            if request is None:
                return False

            now = self.clock()
            resolution_status = request.dispute.record_vote(PanelVote(
                voter_id=voter_id,
                voter_name=voter_name,
                voter_role=voter_role,
                voted_for=voted_for_claimant_id,
                reason=reason,
                voted_at=now,
            ))
            request.updated_at = now
            self.store.update(request)

            logger.info(
                "Dispute %s: %s voted for %s (%d/%d, %s)",
                request_id, voter_id, voted_for_claimant_id,
                len(request.dispute.votes), request.dispute.votes_required, resolution_status.value,
            )
        return True

    def record_police_findings(
        self,
        request_id: str,
        officer_id: str,
        officer_name: str,
        report_number: str,
        findings: str,
    ) -> bool:
        """
        Attach a police report to an in-flight dispute.

        Returns:
            True once persisted, False if the request does not exist

        Raises:
            ValidationError: If the request is not a dispute, the dispute is
                already resolved, or the findings are empty
            InvalidStateError: If the request is no longer awaiting approval
        """
        with self._locks.hold(request_id):
            request = self._find_dispute(request_id, "Police findings")
            if request is None:
                return False

            now = self.clock()
            request.dispute.record_police_findings(PoliceFindings(
                officer_id=officer_id,
                officer_name=officer_name,
                report_number=report_number,
                findings=findings,
                recorded_at=now,
            ))
            request.updated_at = now
            self.store.update(request)

            logger.info("Dispute %s: police report %s filed by %s", request_id, report_number, officer_id)
        return True

    def resolve_dispute(
        self,
        request_id: str,
        winning_claimant_id: str,
        reason: str,
        decided_by: str,
    ) -> bool:
        """
        Award a disputed item and approve the dispute's current step.

        ``decided_by`` must be the approver assigned to the dispute. An award
        already made by the panel is replaced.

        Returns:
            True once persisted, False if the request does not exist

        Raises:
            ValidationError: If the request is not a dispute, the winner is
                not a claimant, or no reason is given
            InvalidStateError: If the request is no longer awaiting approval
            InvalidApproverError: If the caller is not the assigned approver
        """
        with self._locks.hold(request_id):
            request = self._find_dispute(request_id, "Resolve")
            if request is None:
                return False

            if decided_by != request.current_approver_id:
                raise InvalidApproverError(decided_by, request.current_approver_id)

            now = self.clock()
            request.dispute.award(winning_claimant_id, reason, decided_by, now)
            self._advance(request, decided_by, now)

            logger.info("Dispute %s resolved by %s in favor of %s", request_id, decided_by, winning_claimant_id)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request_by_id(self, request_id: str) -> Optional[WorkRequest]:
        return self.store.find_by_id(request_id)

    def get_all_requests(self) -> List[WorkRequest]:
        """All requests, oldest first."""
        return sorted(self.store.find_all(), key=lambda r: r.created_at)

    def get_requests_by_status(self, status: RequestStatus) -> List[WorkRequest]:
        return sorted(self.store.find_by_field("status", status), key=lambda r: r.created_at)

    def get_requests_by_type(self, request_type: RequestType) -> List[WorkRequest]:
        return sorted(self.store.find_by_field("request_type", request_type), key=lambda r: r.created_at)

    def get_requests_for_approver(self, approver_id: str) -> List[WorkRequest]:
        """In-flight requests waiting on an approver, most urgent deadline first."""
        now = self.clock()
        assigned = [
            r for r in self.store.find_by_field("current_approver_id", approver_id)
            if r.is_active
        ]
        return sorted(assigned, key=lambda r: sla.hours_until_sla(r, now))

    def get_requests_for_role(self, role: Role, organization_id: Optional[str] = None) -> List[WorkRequest]:
        """In-flight requests whose current step needs ``role``, optionally within one organization."""
        matches = []
        for request in self.store.find_all():
            if not request.needs_approval_from_role(role):
                continue
            if organization_id is not None:
                scope = request.payload.routing_scope(request.approval_step, role)
                if scope != organization_id:
                    continue
            matches.append(request)
        return sorted(matches, key=lambda r: r.created_at)

    def get_disputes_for_item(self, item_id: str) -> List[WorkRequest]:
        return [d for d in self._disputes() if d.payload.item_id == item_id]

    def get_disputes_for_user(self, user_id: str) -> List[WorkRequest]:
        """Disputes in which ``user_id`` is one of the claimants."""
        return [d for d in self._disputes() if user_id in d.dispute.claimant_ids]

    def get_disputes_requiring_police(self) -> List[WorkRequest]:
        """In-flight disputes escalated to or reported on by police and not yet awarded."""
        return [d for d in self._disputes() if d.is_active and d.dispute.requires_police]

    def get_overdue_requests(self) -> List[WorkRequest]:
        return sla.overdue_requests(self.store.find_all(), self.clock())

    def get_approaching_sla_requests(self, threshold_hours: Optional[float] = None) -> List[WorkRequest]:
        if threshold_hours is None:
            threshold_hours = self.approaching_threshold_hours
        return sla.approaching_breach_requests(self.store.find_all(), self.clock(), threshold_hours)

    def get_statistics(self) -> WorkRequestStats:
        now = self.clock()
        requests = self.store.find_all()
        counts: Dict[RequestStatus, int] = {status: 0 for status in RequestStatus}
        for request in requests:
            counts[request.status] += 1

        return WorkRequestStats(
            total=len(requests),
            pending=counts[RequestStatus.PENDING],
            in_progress=counts[RequestStatus.IN_PROGRESS],
            approved=counts[RequestStatus.APPROVED],
            rejected=counts[RequestStatus.REJECTED],
            cancelled=counts[RequestStatus.CANCELLED],
            completed=counts[RequestStatus.COMPLETED],
            overdue=sum(1 for r in requests if sla.is_overdue(r, now)),
        )

    def get_workload_statistics(self) -> Dict[str, int]:
        return self.routing.get_workload_statistics()

    def resync_workload(self) -> Dict[str, int]:
        """Rebuild the workload counters from stored in-flight requests.

        Runs with every request lock held so no transition lands between the
        snapshot and the swap.
        """
        with self._locks.hold_all():
            return self.routing.sync_workload(self.store.find_all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _persist(
        self,
        request: WorkRequest,
        *,
        assigned_id: Optional[str] = None,
        released_id: Optional[str] = None,
    ) -> None:
        """Write the request, undoing workload changes if the write fails."""
        try:
            self.store.update(request)
        except Exception:
            logger.error("Failed to persist work request %s, rolling back workload", request.request_id)
            self.routing.release(assigned_id)
            self.routing.restore(released_id)
            raise

    def _advance(self, request: WorkRequest, approver_id: str, now: datetime) -> RequestStatus:
        """Approve the current step, route the next one and persist."""
        old_status = request.status
        released_id = request.current_approver_id

        machine = WorkRequestStateMachine(request)
        new_status = machine.advance_approval(approver_id, self._approver_name(request, approver_id), now)

        assigned_id = None
        if new_status != RequestStatus.APPROVED:
            assigned_id = self.routing.assign(request).approver_id
            request.current_approver_id = assigned_id
        self.routing.release(released_id)

        self._persist(request, assigned_id=assigned_id, released_id=released_id)

        logger.info(
            "Work request %s approved by %s (step %d/%d, %s -> %s)",
            request.request_id, approver_id, request.approval_step, len(request.approval_chain),
            old_status.value, new_status.value,
        )
        self._publish(request, old_status, now, actor_id=approver_id)
        return new_status

    def _disputes(self) -> List[WorkRequest]:
        return self.get_requests_by_type(RequestType.MULTI_ENTERPRISE_DISPUTE)

    def _find_dispute(self, request_id: str, action: str) -> Optional[WorkRequest]:
        request = self.store.find_by_id(request_id)
        if request is None:
            logger.warning("%s failed: work request %s not found", action, request_id)
            return None
        if request.dispute is None:
            raise ValidationError(f"Work request {request_id} is not a dispute")
        if not request.is_active:
            raise InvalidStateError(
                f"Cannot change the dispute of a request in state {request.status.value}",
                request.status,
            )
        return request

    def _approver_name(self, request: WorkRequest, approver_id: str) -> str:
        approver = self.routing.lookup(approver_id)
        if approver is not None:
            return approver.name
        if approver_id == request.requester_id:
            return request.payload.requester_name or approver_id
        return approver_id

    def _is_stale_assignment(self, request: WorkRequest, approver_id: str) -> bool:
        if request.next_required_role == Role.REQUESTER_CONFIRMATION:
            return False
        approver = self.routing.lookup(approver_id)
        return approver is None or not approver.active

    def _publish(
        self,
        request: WorkRequest,
        old_status: Optional[RequestStatus],
        now: datetime,
        *,
        actor_id: Optional[str] = None,
    ) -> None:
        self.notifier.publish(TransitionEvent(
            request_id=request.request_id,
            old_status=old_status,
            new_status=request.status,
            actor_id=actor_id,
            current_approver_id=request.current_approver_id,
            occurred_at=now,
        ))
