"""Tests for approver selection."""

import pytest

from lostfound.core.routing.directory import InMemoryApproverDirectory
from lostfound.core.routing.engine import RoutingEngine
from lostfound.core.workflow.errors import NoApproverAvailableError
from lostfound.core.workflow.request import WorkRequest
from lostfound.core.workflow.states import RequestStatus, Role

from tests.factories import (
    CAMPUS_A,
    CAMPUS_B,
    START,
    item_claim_payload,
    make_approver,
    police_evidence_payload,
    transfer_payload,
)


def claim_request(**overrides) -> WorkRequest:
    return WorkRequest.create(item_claim_payload(**overrides), START)


def coordinators(count: int, organization_id: str = CAMPUS_A):
    return [
        make_approver(Role.CAMPUS_COORDINATOR, organization_id=organization_id, approver_id=f"coord-{i}")
        for i in range(1, count + 1)
    ]


class TestFindCandidates:

    def test_filters_role_and_activity(self, routing, directory):
        directory.deactivate("police-2")
        candidates = routing.find_candidates(Role.POLICE_EVIDENCE_CUSTODIAN)
        assert [c.approver_id for c in candidates] == ["police-1"]

    def test_scoped_to_organization(self, routing):
        candidates = routing.find_candidates(Role.CAMPUS_COORDINATOR, CAMPUS_A)
        assert [c.approver_id for c in candidates] == ["coord-a1", "coord-a2"]

    def test_no_fallback_by_default(self, routing):
        assert routing.find_candidates(Role.CAMPUS_COORDINATOR, "campus-z") == []
        assert not routing.has_available_approvers(Role.CAMPUS_COORDINATOR, "campus-z")

    def test_fallback_when_enabled(self, directory):
        routing = RoutingEngine(directory, allow_scope_fallback=True)
        candidates = routing.find_candidates(Role.CAMPUS_COORDINATOR, "campus-z")
        assert [c.approver_id for c in candidates] == ["coord-a1", "coord-a2", "coord-b1"]

    def test_directory_changes_seen_immediately(self, routing, directory):
        directory.register(make_approver(Role.CAMPUS_COORDINATOR, organization_id="campus-z", approver_id="coord-z1"))
        assert routing.has_available_approvers(Role.CAMPUS_COORDINATOR, "campus-z")


class TestAssign:

    def test_counts_assignment(self, routing):
        approver = routing.assign(claim_request())
        assert approver.approver_id == "coord-a1"
        assert routing.get_workload_statistics() == {"coord-a1": 1}

    def test_does_not_write_request(self, routing):
        request = claim_request()
        routing.assign(request)
        assert request.current_approver_id is None

    @pytest.mark.parametrize("count", [2, 3, 5])
    def test_spreads_before_doubling(self, count):
        routing = RoutingEngine(InMemoryApproverDirectory(coordinators(count)))

        first_round = [routing.assign(claim_request()).approver_id for _ in range(count)]

        assert sorted(first_round) == sorted(f"coord-{i}" for i in range(1, count + 1))
        assert set(routing.get_workload_statistics().values()) == {1}

    def test_ties_go_to_first_registered(self):
        routing = RoutingEngine(InMemoryApproverDirectory(coordinators(3)))
        assert routing.assign(claim_request()).approver_id == "coord-1"
        assert routing.assign(claim_request()).approver_id == "coord-2"

    def test_picks_minimum_after_release(self):
        routing = RoutingEngine(InMemoryApproverDirectory(coordinators(2)))
        for _ in range(4):
            routing.assign(claim_request())
        routing.release("coord-2")

        assert routing.assign(claim_request()).approver_id == "coord-2"

    def test_urgent_uses_same_rule(self):
        routing = RoutingEngine(InMemoryApproverDirectory(coordinators(2)))
        routing.assign(claim_request())

        approver = routing.assign(claim_request(item_value=2800.0))

        assert approver.approver_id == "coord-2"

    def test_scope_excludes_other_organizations(self, routing):
        approver = routing.assign(claim_request(target_organization_id=CAMPUS_B))
        assert approver.approver_id == "coord-b1"

    def test_none_available(self, routing):
        request = claim_request(target_organization_id="campus-z")

        with pytest.raises(NoApproverAvailableError) as exc_info:
            routing.assign(request)

        error = exc_info.value
        assert error.role == Role.CAMPUS_COORDINATOR
        assert error.organization_id == "campus-z"
        assert error.request_id == request.request_id
        assert routing.get_workload_statistics() == {}

    def test_unscoped_role(self, routing):
        request = WorkRequest.create(police_evidence_payload(), START)
        assert routing.assign(request).approver_id == "police-1"

    def test_requester_confirmation_binds_requester(self, routing):
        request = WorkRequest.create(transfer_payload(), START)
        request.approval_step = 2
        request.status = RequestStatus.IN_PROGRESS

        approver = routing.assign(request)

        assert approver.approver_id == "student-1"
        assert approver.name == "Sam Student"
        assert approver.role == Role.REQUESTER_CONFIRMATION
        assert routing.get_workload_statistics() == {"student-1": 1}

    def test_fully_approved_request_rejected(self, routing):
        request = claim_request()
        request.approval_step = 1
        with pytest.raises(ValueError):
            routing.assign(request)


class TestReleaseAndRestore:

    def test_release_ignores_none(self, routing):
        routing.release(None)
        assert routing.get_workload_statistics() == {}

    def test_restore_puts_item_back(self, routing):
        routing.assign(claim_request())
        routing.release("coord-a1")
        routing.restore("coord-a1")
        assert routing.get_workload_statistics() == {"coord-a1": 1}

    def test_reset(self, routing):
        routing.assign(claim_request())
        routing.reset_workload_tracking()
        assert routing.get_workload_statistics() == {}


class TestRecommend:

    def test_recommend_does_not_count(self, routing):
        recommendation = routing.recommend(claim_request())

        assert recommendation.can_route
        assert recommendation.approver.approver_id == "coord-a1"
        assert "Coordinator A1" in recommendation.reason
        assert routing.get_workload_statistics() == {}

    def test_recommend_follows_load(self, routing):
        routing.assign(claim_request())
        assert routing.recommend(claim_request()).approver.approver_id == "coord-a2"

    def test_recommend_without_candidates(self, routing):
        recommendation = routing.recommend(claim_request(target_organization_id="campus-z"))
        assert not recommendation.can_route
        assert recommendation.approver is None

    def test_recommend_for_confirmation(self, routing):
        request = WorkRequest.create(transfer_payload(), START)
        request.approval_step = 2
        assert routing.recommend(request).approver.approver_id == "student-1"


class TestSyncWorkload:

    def test_counts_only_in_flight_assignments(self, routing):
        active = claim_request()
        active.current_approver_id = "coord-a2"
        done = claim_request()
        done.current_approver_id = "coord-a1"
        done.status = RequestStatus.APPROVED
        stranded = claim_request()

        counts = routing.sync_workload([active, done, stranded])

        assert counts == {"coord-a2": 1}
        assert routing.get_workload_statistics() == {"coord-a2": 1}


def test_lookup(routing):
    assert routing.lookup("police-2").name == "Officer Two"
    assert routing.lookup("nobody") is None
