"""API tests over an in-memory workflow service."""

import pytest
from fastapi.testclient import TestClient

from lostfound.api.main import create_app
from lostfound.core.config import Settings
from lostfound.core.routing.directory import InMemoryApproverDirectory
from lostfound.core.routing.engine import RoutingEngine
from lostfound.core.workflow.service import WorkflowService
from lostfound.core.workflow.store import InMemoryRequestStore


pytestmark = pytest.mark.integration


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://")


@pytest.fixture
def client(service, settings):
    return TestClient(create_app(service=service, settings=settings))


def claim_body(**overrides):
    body = {
        "request_type": "item_claim",
        "requester_id": "student-1",
        "requester_name": "Sam Student",
        "requester_organization_id": "campus-a",
        "target_organization_id": "campus-a",
        "item_id": "item-42",
        "item_name": "Blue backpack",
        "item_value": 100.0,
        "claim_details": "Lost it in the library on the second floor",
        "identifying_features": "Keychain with a small red fox",
        "proof_description": "Photo of me wearing it at orientation",
    }
    body.update(overrides)
    return body


def create(client, **overrides):
    response = client.post("/api/work-requests", json=claim_body(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestCreate:

    def test_create_item_claim(self, client):
        data = create(client)

        assert data["status"] == "pending"
        assert data["priority"] == "normal"
        assert data["approval_chain"] == ["campus_coordinator"]
        assert data["current_approver_id"] == "coord-a1"
        assert data["hours_until_sla"] == 24
        assert data["overdue"] is False
        assert data["payload"]["item_value"] == 100.0

    def test_create_emergency_transfer(self, client):
        response = client.post("/api/work-requests", json={
            "request_type": "emergency_transfer",
            "requester_id": "traveler-1",
            "target_organization_id": "airport",
            "origin_organization_id": "transit",
            "item_id": "item-7",
            "station_name": "Central Station",
            "flight_number": "LF123",
            "traveler_name": "Terry Traveler",
            "document_type": "passport",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["priority"] == "urgent"
        assert data["current_approver_id"] == "station-1"

    def test_invalid_payload(self, client, store):
        response = client.post("/api/work-requests", json=claim_body(claim_details="short"))

        assert response.status_code == 422
        assert store.find_all() == []

    def test_unknown_request_type(self, client):
        response = client.post("/api/work-requests", json=claim_body(request_type="lost_pet"))
        assert response.status_code == 422

    def test_no_approver_available(self, client):
        response = client.post("/api/work-requests", json=claim_body(target_organization_id="campus-z"))

        assert response.status_code == 503
        body = response.json()
        assert body["code"] == "no_approver_available"
        assert body["data"]["role"] == "campus_coordinator"

        stored = client.get(f"/api/work-requests/{body['data']['request_id']}")
        assert stored.status_code == 200
        assert stored.json()["current_approver_id"] is None


class TestActions:

    def test_approve_and_complete(self, client):
        request_id = create(client)["id"]

        approved = client.post(f"/api/work-requests/{request_id}/approve", json={"approver_id": "coord-a1"})
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["approver_history"][0]["approver_name"] == "Coordinator A1"

        completed = client.post(f"/api/work-requests/{request_id}/complete")
        assert completed.json()["status"] == "completed"
        assert completed.json()["completed_at"] is not None

    def test_wrong_approver_forbidden(self, client):
        request_id = create(client)["id"]

        response = client.post(f"/api/work-requests/{request_id}/approve", json={"approver_id": "coord-a2"})

        assert response.status_code == 403
        assert response.json()["code"] == "invalid_approver"

    def test_terminal_request_conflict(self, client):
        request_id = create(client)["id"]
        client.post(f"/api/work-requests/{request_id}/cancel", json={"requester_id": "student-1"})

        response = client.post(f"/api/work-requests/{request_id}/approve", json={"approver_id": "coord-a1"})

        assert response.status_code == 409
        assert response.json()["code"] == "invalid_state"

    def test_reject_requires_reason(self, client):
        request_id = create(client)["id"]

        response = client.post(f"/api/work-requests/{request_id}/reject", json={"approver_id": "coord-a1"})

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_reject(self, client):
        request_id = create(client)["id"]

        response = client.post(
            f"/api/work-requests/{request_id}/reject",
            json={"approver_id": "coord-a1", "reason": "Features do not match"},
        )

        assert response.json()["status"] == "rejected"
        assert response.json()["notes"] == "Features do not match"

    def test_cancel_by_other_identity(self, client):
        request_id = create(client)["id"]

        response = client.post(f"/api/work-requests/{request_id}/cancel", json={"requester_id": "student-2"})

        assert response.status_code == 403
        assert response.json()["code"] == "unauthorized"

    def test_complete_before_approval(self, client):
        request_id = create(client)["id"]
        assert client.post(f"/api/work-requests/{request_id}/complete").status_code == 409

    @pytest.mark.parametrize("path,body", [
        ("approve", {"approver_id": "coord-a1"}),
        ("reject", {"approver_id": "coord-a1", "reason": "No proof"}),
        ("cancel", {"requester_id": "student-1"}),
        ("complete", None),
        ("reassign", None),
    ])
    def test_unknown_request(self, client, path, body):
        response = client.post(f"/api/work-requests/missing/{path}", json=body)
        assert response.status_code == 404

    def test_reassign(self, client, directory):
        request_id = create(client)["id"]
        directory.deactivate("coord-a1")

        response = client.post(f"/api/work-requests/{request_id}/reassign")

        assert response.status_code == 200
        assert response.json() == {"id": request_id, "current_approver_id": "coord-a2"}


def create_dispute(client):
    response = client.post("/api/work-requests", json={
        "request_type": "multi_enterprise_dispute",
        "requester_id": "coord-a1",
        "item_id": "item-9",
        "item_name": "Phone",
        "dispute_reason": "Three students describe the same phone",
        "claimant_ids": ["student-1", "student-2", "student-3"],
        "evidence_descriptions": ["Lock screen photo"],
    })
    assert response.status_code == 201, response.text
    return response.json()


class TestDisputes:

    def test_created_with_resolution_record(self, client):
        data = create_dispute(client)

        assert data["current_approver_id"] == "police-1"
        assert data["dispute"]["status"] == "pending"
        assert data["dispute"]["votes_required"] == 3
        assert data["dispute"]["claim_statuses"] == {
            "student-1": "pending", "student-2": "pending", "student-3": "pending",
        }

    def test_claims_have_no_resolution_record(self, client):
        assert create(client)["dispute"] is None

    def test_panel_majority(self, client):
        request_id = create_dispute(client)["id"]
        for voter, claimant in (("panel-1", "student-2"), ("panel-2", "student-1"), ("panel-3", "student-2")):
            response = client.post(
                f"/api/work-requests/{request_id}/dispute/votes",
                json={"voter_id": voter, "claimant_id": claimant, "reason": "Panel review"},
            )
            assert response.status_code == 200

        dispute = response.json()["dispute"]
        assert dispute["status"] == "resolved"
        assert dispute["winning_claimant_id"] == "student-2"
        assert dispute["tally"] == {"student-1": 1, "student-2": 2, "student-3": 0}
        assert dispute["votes"][0]["voter_name"] == "panel-1"

        approved = client.post(f"/api/work-requests/{request_id}/approve", json={"approver_id": "police-1"})
        assert approved.json()["status"] == "approved"

    def test_escalation_findings_and_resolution(self, client):
        request_id = create_dispute(client)["id"]
        for voter, claimant in (("panel-1", "student-1"), ("panel-2", "student-2"), ("panel-3", "student-3")):
            client.post(
                f"/api/work-requests/{request_id}/dispute/votes",
                json={"voter_id": voter, "claimant_id": claimant},
            )

        flagged = client.get("/api/work-requests/disputes", params={"requires_police": True}).json()
        assert [d["id"] for d in flagged] == [request_id]
        assert flagged[0]["dispute"]["decision"] == "escalated_to_police"

        filed = client.post(
            f"/api/work-requests/{request_id}/dispute/police-findings",
            json={"officer_id": "police-1", "report_number": "PR-1", "findings": "IMEI belongs to student-3"},
        )
        assert filed.json()["dispute"]["police_findings"]["officer_name"] == "police-1"

        resolved = client.post(
            f"/api/work-requests/{request_id}/dispute/resolve",
            json={"approver_id": "police-1", "claimant_id": "student-3", "reason": "IMEI registration"},
        )
        assert resolved.status_code == 200
        assert resolved.json()["status"] == "approved"
        assert resolved.json()["dispute"]["claim_statuses"]["student-3"] == "approved"
        assert client.get("/api/work-requests/disputes", params={"requires_police": True}).json() == []

    def test_approval_before_award(self, client):
        request_id = create_dispute(client)["id"]

        response = client.post(f"/api/work-requests/{request_id}/approve", json={"approver_id": "police-1"})

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_vote_for_non_claimant(self, client):
        request_id = create_dispute(client)["id"]

        response = client.post(
            f"/api/work-requests/{request_id}/dispute/votes",
            json={"voter_id": "panel-1", "claimant_id": "student-9"},
        )

        assert response.status_code == 422

    def test_resolve_by_other_officer(self, client):
        request_id = create_dispute(client)["id"]

        response = client.post(
            f"/api/work-requests/{request_id}/dispute/resolve",
            json={"approver_id": "police-2", "claimant_id": "student-1", "reason": "Lock code"},
        )

        assert response.status_code == 403

    def test_filter_by_item_and_claimant(self, client):
        request_id = create_dispute(client)["id"]
        create(client, item_id="item-9")

        by_item = client.get("/api/work-requests/disputes", params={"item_id": "item-9"}).json()
        by_claimant = client.get("/api/work-requests/disputes", params={"claimant_id": "student-2"}).json()
        nobody = client.get("/api/work-requests/disputes", params={"claimant_id": "student-9"}).json()

        assert [d["id"] for d in by_item] == [request_id]
        assert [d["id"] for d in by_claimant] == [request_id]
        assert nobody == []

    def test_unknown_dispute(self, client):
        response = client.post(
            "/api/work-requests/missing/dispute/votes",
            json={"voter_id": "panel-1", "claimant_id": "student-1"},
        )
        assert response.status_code == 404


class TestQueries:

    def test_get_unknown(self, client):
        assert client.get("/api/work-requests/missing").status_code == 404

    def test_list_with_pagination(self, client):
        for _ in range(3):
            create(client)

        response = client.get("/api/work-requests", params={"page": 2, "per_page": 2})

        data = response.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert len(data["items"]) == 1

    def test_filter_by_status(self, client):
        approved_id = create(client)["id"]
        create(client)
        client.post(f"/api/work-requests/{approved_id}/approve", json={"approver_id": "coord-a1"})

        response = client.get("/api/work-requests", params={"status": "approved"})

        assert [item["id"] for item in response.json()["items"]] == [approved_id]

    def test_filter_by_approver(self, client):
        first = create(client)["id"]
        create(client)

        response = client.get("/api/work-requests", params={"approver_id": "coord-a1"})

        assert [item["id"] for item in response.json()["items"]] == [first]

    def test_filter_by_role_and_organization(self, client):
        create(client)
        in_b = create(client, target_organization_id="campus-b")["id"]

        response = client.get(
            "/api/work-requests",
            params={"role": "campus_coordinator", "organization_id": "campus-b"},
        )

        assert [item["id"] for item in response.json()["items"]] == [in_b]

    def test_sla_views(self, client, clock):
        urgent = create(client, item_value=2800.0)["id"]
        create(client)

        clock.advance(hours=3)
        approaching = client.get("/api/work-requests/approaching-sla").json()
        assert [item["id"] for item in approaching] == [urgent]

        clock.advance(hours=2)
        overdue = client.get("/api/work-requests/overdue").json()
        assert [item["id"] for item in overdue] == [urgent]
        assert overdue[0]["overdue"] is True

        wide = client.get("/api/work-requests/approaching-sla", params={"threshold_hours": 20}).json()
        assert len(wide) == 1

    def test_stats_and_workload(self, client):
        request_id = create(client)["id"]
        create(client)
        client.post(f"/api/work-requests/{request_id}/cancel", json={"requester_id": "student-1"})

        stats = client.get("/api/work-requests/stats").json()
        assert stats["total"] == 2
        assert stats["cancelled"] == 1
        assert stats["active"] == 1

        assert client.get("/api/work-requests/workload").json() == {"coord-a2": 1}


class TestHealth:

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_liveness(self, client):
        assert client.get("/health/live").json()["status"] == "alive"

    def test_ready(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["directory"]["active_approvers"] == 9

    def test_not_ready_without_approvers(self, settings, clock):
        service = WorkflowService(
            InMemoryRequestStore(), RoutingEngine(InMemoryApproverDirectory()), clock=clock,
        )
        client = TestClient(create_app(service=service, settings=settings))

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["failed"] == ["directory"]

    def test_root(self, client):
        assert client.get("/").json()["name"] == "Lost & Found Workflow"
