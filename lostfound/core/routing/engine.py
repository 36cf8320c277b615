"""Routing engine for work requests.

Picks which approver handles the current step of a request and keeps the
per-approver workload counters in step with assignments and releases.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from lostfound.core.workflow.errors import NoApproverAvailableError
from lostfound.core.workflow.request import WorkRequest
from lostfound.core.workflow.states import Role

from .directory import Approver, ApproverDirectory
from .workload import WorkloadTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingRecommendation:
    """Preview of where a request would be routed."""

    can_route: bool
    reason: str
    approver: Optional[Approver] = None


class RoutingEngine:
    """
    Least-loaded approver selection.

    Candidates are the active directory identities holding the required role,
    restricted to the organization the request's payload names for the step.
    The candidate with the fewest open items wins; ties go to the identity
    registered first. Every priority goes through the same rule, so an urgent
    request is never parked behind a busy approver by tie-breaking alone.

    One instance per service process; the facade owns it.
    """

    def __init__(
        self,
        directory: ApproverDirectory,
        workload: Optional[WorkloadTracker] = None,
        *,
        allow_scope_fallback: bool = False,
    ):
        """
        Args:
            directory: Source of approver identities, re-queried on every assignment
            workload: Counter store; a fresh tracker is created if omitted
            allow_scope_fallback: Consider every holder of the role when nobody
                in the required organization holds it
        """
        self.directory = directory
        self.workload = workload or WorkloadTracker()
        self.allow_scope_fallback = allow_scope_fallback

    def find_candidates(self, role: Role, organization_id: Optional[str] = None) -> List[Approver]:
        """Active holders of ``role`` in directory order, scoped when asked."""
        holders = [a for a in self.directory.find_all() if a.active and a.role == role]
        if organization_id is None:
            return holders

        scoped = [a for a in holders if a.organization_id == organization_id]
        if scoped or not self.allow_scope_fallback:
            return scoped

        if holders:
            logger.info(
                "No %s in organization %s, falling back to any holder of the role",
                role.value, organization_id,
            )
        return holders

    def has_available_approvers(self, role: Role, organization_id: Optional[str] = None) -> bool:
        return bool(self.find_candidates(role, organization_id))

    def assign(self, request: WorkRequest) -> Approver:
        """
        Select and count an approver for the request's current step.

        Does not write to the request; the caller records the returned
        approver as ``current_approver_id``.

        Raises:
            ValueError: If the request has no remaining step
            NoApproverAvailableError: If nobody can take the step
        """
        role = request.next_required_role
        if role is None:
            raise ValueError(f"Request {request.request_id} has no step awaiting approval")

        if role == Role.REQUESTER_CONFIRMATION:
            approver = self._requester_as_approver(request)
            self.workload.increment(approver.approver_id)
            logger.info("Request %s routed back to requester %s for confirmation",
                        request.request_id, approver.approver_id)
            return approver

        organization_id = request.payload.routing_scope(request.approval_step, role)
        candidates = self.find_candidates(role, organization_id)
        if not candidates:
            logger.warning("No approvers found for role %s (organization: %s)",
                           role.value, organization_id)
            raise NoApproverAvailableError(role, organization_id, request.request_id)

        chosen_id = self.workload.acquire_least_loaded([c.approver_id for c in candidates])
        chosen = next(c for c in candidates if c.approver_id == chosen_id)

        logger.info(
            "Request %s assigned to %s (%s, priority: %s, workload: %d)",
            request.request_id, chosen.name, role.value,
            request.priority.value, self.workload.get(chosen_id),
        )
        return chosen

    def release(self, approver_id: Optional[str]) -> None:
        """Drop one open item from an approver's count."""
        if approver_id:
            self.workload.release(approver_id)

    def restore(self, approver_id: Optional[str]) -> None:
        """Put back an open item released by an operation that was rolled back."""
        if approver_id:
            self.workload.increment(approver_id)

    def sync_workload(self, requests: Iterable[WorkRequest]) -> Dict[str, int]:
        """Recount workload from the in-flight requests in storage."""
        counts = self.workload.rebuild(requests)
        logger.info("Workload resynchronised for %d approvers", len(counts))
        return counts

    def recommend(self, request: WorkRequest) -> RoutingRecommendation:
        """Where ``assign`` would route the request right now, without counting it."""
        role = request.next_required_role
        if role is None:
            return RoutingRecommendation(False, "Request fully approved")

        if role == Role.REQUESTER_CONFIRMATION:
            approver = self._requester_as_approver(request)
            return RoutingRecommendation(True, "Awaiting requester confirmation", approver)

        organization_id = request.payload.routing_scope(request.approval_step, role)
        candidates = self.find_candidates(role, organization_id)
        if not candidates:
            return RoutingRecommendation(False, f"No approvers available for role: {role.value}")

        loads = self.workload.snapshot()
        best = min(candidates, key=lambda c: loads.get(c.approver_id, 0))
        reason = (
            f"Best match: {best.name} "
            f"(workload: {loads.get(best.approver_id, 0)}, role: {role.value})"
        )
        return RoutingRecommendation(True, reason, best)

    def lookup(self, approver_id: str) -> Optional[Approver]:
        """Find an identity in the directory by id."""
        for approver in self.directory.find_all():
            if approver.approver_id == approver_id:
                return approver
        return None

    def get_workload_statistics(self) -> Dict[str, int]:
        """Open item count per approver, for monitoring only."""
        return self.workload.snapshot()

    def reset_workload_tracking(self) -> None:
        self.workload.reset()
        logger.info("Workload tracking reset")

    def _requester_as_approver(self, request: WorkRequest) -> Approver:
        payload = request.payload
        return Approver(
            approver_id=payload.requester_id,
            name=payload.requester_name or payload.requester_id,
            role=Role.REQUESTER_CONFIRMATION,
            organization_id=payload.requester_organization_id,
        )
