"""Tests for the work request envelope and state machine."""

import pytest

from lostfound.core.workflow.errors import (
    InvalidApproverError,
    InvalidStateError,
    UnauthorizedError,
    ValidationError,
)
from lostfound.core.workflow.machine import WorkRequestStateMachine
from lostfound.core.workflow.request import WorkRequest
from lostfound.core.workflow.states import RequestPriority, RequestStatus, Role

from tests.factories import START, item_claim_payload, transfer_payload


def make_request(value: float = 75.0, approver_id: str = "coord-a1") -> WorkRequest:
    request = WorkRequest.create(item_claim_payload(item_value=value), START)
    request.current_approver_id = approver_id
    return request


def assert_history_matches_step(request: WorkRequest):
    assert len(request.approver_history) == request.approval_step
    assert request.approval_step <= len(request.approval_chain)


class TestWorkRequestCreate:

    def test_freezes_derived_fields(self):
        request = WorkRequest.create(item_claim_payload(item_value=2800.0), START)
        assert request.status == RequestStatus.PENDING
        assert request.priority == RequestPriority.URGENT
        assert request.approval_chain == (Role.CAMPUS_COORDINATOR, Role.POLICE_EVIDENCE_CUSTODIAN)
        assert request.sla_target_hours == 4
        assert request.approval_step == 0
        assert request.approver_history == []
        assert request.created_at == request.updated_at == START
        assert request.completed_at is None

    def test_generates_unique_ids(self):
        first = WorkRequest.create(item_claim_payload(), START)
        second = WorkRequest.create(item_claim_payload(), START)
        assert first.request_id != second.request_id

    def test_invalid_payload_rejected(self):
        with pytest.raises(ValidationError):
            WorkRequest.create(item_claim_payload(claim_details=""), START)

    def test_next_required_role(self):
        request = make_request(value=750.0)
        assert request.next_required_role == Role.CAMPUS_COORDINATOR
        assert request.needs_approval_from_role(Role.CAMPUS_COORDINATOR)
        assert not request.needs_approval_from_role(Role.POLICE_EVIDENCE_CUSTODIAN)

    def test_clone_is_independent(self):
        request = make_request()
        copy = request.clone()
        copy.approver_history.append("x")
        assert request.approver_history == []


class TestAdvanceApproval:

    def test_single_step_chain_approves(self, clock):
        request = make_request()
        machine = WorkRequestStateMachine(request)

        status = machine.advance_approval("coord-a1", "Coordinator A1", clock.advance(hours=1))

        assert status == RequestStatus.APPROVED
        assert request.current_approver_id is None
        assert request.approver_ids() == ["coord-a1"]
        assert request.updated_at == clock.now
        assert_history_matches_step(request)

    def test_multi_step_chain_moves_to_in_progress(self, clock):
        request = make_request(value=2800.0)
        machine = WorkRequestStateMachine(request)

        status = machine.advance_approval("coord-a1", "Coordinator A1", clock())

        assert status == RequestStatus.IN_PROGRESS
        assert request.approval_step == 1
        assert request.next_required_role == Role.POLICE_EVIDENCE_CUSTODIAN
        assert_history_matches_step(request)

        request.current_approver_id = "police-1"
        assert machine.advance_approval("police-1", "Officer One", clock()) == RequestStatus.APPROVED
        assert len(request.approver_history) == 2
        assert_history_matches_step(request)

    def test_wrong_approver_leaves_request_unchanged(self, clock):
        request = make_request(value=2800.0)
        before = request.clone()

        with pytest.raises(InvalidApproverError) as exc_info:
            WorkRequestStateMachine(request).advance_approval("coord-a2", "Coordinator A2", clock())

        assert exc_info.value.expected_approver_id == "coord-a1"
        assert request == before

    def test_terminal_request_cannot_be_approved(self, clock):
        request = make_request()
        machine = WorkRequestStateMachine(request)
        machine.reject("Not the owner", clock())

        with pytest.raises(InvalidStateError) as exc_info:
            machine.advance_approval("coord-a1", "Coordinator A1", clock())

        assert exc_info.value.from_state == RequestStatus.REJECTED
        assert request.status == RequestStatus.REJECTED


class TestReject:

    def test_reject_sets_notes_and_clears_approver(self, clock):
        request = make_request()
        WorkRequestStateMachine(request).reject("Description does not match", clock())

        assert request.status == RequestStatus.REJECTED
        assert request.notes == "Description does not match"
        assert request.current_approver_id is None

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_reason_required(self, clock, reason):
        request = make_request()
        before = request.clone()

        with pytest.raises(ValidationError):
            WorkRequestStateMachine(request).reject(reason, clock())

        assert request == before


class TestCancel:

    def test_requester_can_cancel(self, clock):
        request = make_request()
        WorkRequestStateMachine(request).cancel("student-1", clock())

        assert request.status == RequestStatus.CANCELLED
        assert request.current_approver_id is None

    def test_other_identity_unauthorized(self, clock):
        request = make_request()
        before = request.clone()

        with pytest.raises(UnauthorizedError):
            WorkRequestStateMachine(request).cancel("someone-else", clock())

        assert request == before

    def test_approved_request_cannot_be_cancelled(self, clock):
        request = make_request()
        machine = WorkRequestStateMachine(request)
        machine.advance_approval("coord-a1", "Coordinator A1", clock())

        with pytest.raises(InvalidStateError):
            machine.cancel("student-1", clock())
        assert request.status == RequestStatus.APPROVED


class TestComplete:

    def test_complete_sets_completed_at(self, clock):
        request = make_request()
        machine = WorkRequestStateMachine(request)
        machine.advance_approval("coord-a1", "Coordinator A1", clock())

        done_at = clock.advance(hours=2)
        assert machine.complete(done_at) == RequestStatus.COMPLETED
        assert request.completed_at == done_at

    @pytest.mark.parametrize("prepare", ["pending", "in_progress", "rejected", "cancelled"])
    def test_complete_requires_approved(self, clock, prepare):
        request = make_request(value=2800.0)
        machine = WorkRequestStateMachine(request)
        if prepare == "in_progress":
            machine.advance_approval("coord-a1", "Coordinator A1", clock())
        elif prepare == "rejected":
            machine.reject("No proof", clock())
        elif prepare == "cancelled":
            machine.cancel("student-1", clock())
        before = request.clone()

        with pytest.raises(InvalidStateError):
            machine.complete(clock())

        assert request == before
        assert request.completed_at is None


class TestHistory:

    def test_each_step_is_recorded_on_the_request(self, clock):
        request = WorkRequest.create(transfer_payload(), START)
        request.current_approver_id = "origin-1"
        machine = WorkRequestStateMachine(request)

        machine.advance_approval("origin-1", "Transit Manager", clock.advance(hours=1))
        request.current_approver_id = "dest-a1"
        second_at = clock.advance(hours=1)
        machine.advance_approval("dest-a1", "Campus Receiver", second_at)

        assert request.status == RequestStatus.IN_PROGRESS
        assert request.approver_ids() == ["origin-1", "dest-a1"]
        assert request.approver_history[1].timestamp == second_at
        assert request.updated_at == second_at
        assert_history_matches_step(request)

    def test_rejection_leaves_history_untouched(self, clock):
        request = make_request()
        machine = WorkRequestStateMachine(request)

        rejected_at = clock.advance(hours=2)
        machine.reject("Features do not match", rejected_at)

        assert request.approver_history == []
        assert request.updated_at == rejected_at
        assert request.notes == "Features do not match"
