"""Work request API endpoints."""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from lostfound.api.deps import get_workflow_service
from lostfound.api.schemas.common import PaginatedResponse
from lostfound.api.schemas.work_requests import (
    ApproveAction,
    CancelAction,
    DisputeVoteAction,
    PoliceFindingsAction,
    ReassignResponse,
    RejectAction,
    ResolveDisputeAction,
    WorkRequestCreate,
    WorkRequestResponse,
    WorkRequestStatsResponse,
)
from lostfound.core.workflow.service import WorkflowService
from lostfound.core.workflow.states import RequestStatus, RequestType, Role

router = APIRouter(prefix="/work-requests", tags=["work-requests"])


def _not_found(request_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Work request {request_id} not found")


def _response(service: WorkflowService, request_id: str) -> WorkRequestResponse:
    request = service.get_request_by_id(request_id)
    if request is None:
        raise _not_found(request_id)
    return WorkRequestResponse.from_request(request, service.clock())


@router.post("", response_model=WorkRequestResponse, status_code=status.HTTP_201_CREATED)
def create_work_request(
    body: WorkRequestCreate,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Create a work request and route it to its first approver."""
    request_id = service.create_request(body.to_payload())
    if request_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid {body.request_type} request",
        )
    return _response(service, request_id)


@router.get("", response_model=PaginatedResponse[WorkRequestResponse])
def list_work_requests(
    service: WorkflowService = Depends(get_workflow_service),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    request_type: Optional[RequestType] = None,
    approver_id: Optional[str] = None,
    role: Optional[Role] = None,
    organization_id: Optional[str] = None,
):
    """List work requests. Per-approver listings come most urgent first, the rest oldest first."""
    if approver_id:
        requests = service.get_requests_for_approver(approver_id)
    elif role:
        requests = service.get_requests_for_role(role, organization_id)
    elif status_filter:
        requests = service.get_requests_by_status(status_filter)
    elif request_type:
        requests = service.get_requests_by_type(request_type)
    else:
        requests = service.get_all_requests()

    if status_filter:
        requests = [r for r in requests if r.status == status_filter]
    if request_type:
        requests = [r for r in requests if r.request_type == request_type]

    now = service.clock()
    return PaginatedResponse[WorkRequestResponse].paginate(
        requests, page, per_page, lambda r: WorkRequestResponse.from_request(r, now),
    )


@router.get("/overdue", response_model=List[WorkRequestResponse])
def list_overdue(service: WorkflowService = Depends(get_workflow_service)):
    """In-flight requests past their SLA target, oldest first."""
    now = service.clock()
    return [WorkRequestResponse.from_request(r, now) for r in service.get_overdue_requests()]


@router.get("/approaching-sla", response_model=List[WorkRequestResponse])
def list_approaching_sla(
    service: WorkflowService = Depends(get_workflow_service),
    threshold_hours: Optional[float] = Query(None, gt=0),
):
    """In-flight requests close to their SLA target, least time left first."""
    now = service.clock()
    return [
        WorkRequestResponse.from_request(r, now)
        for r in service.get_approaching_sla_requests(threshold_hours)
    ]


@router.get("/stats", response_model=WorkRequestStatsResponse)
def get_stats(service: WorkflowService = Depends(get_workflow_service)):
    return WorkRequestStatsResponse.from_stats(service.get_statistics())


@router.get("/workload", response_model=Dict[str, int])
def get_workload(service: WorkflowService = Depends(get_workflow_service)):
    """Open item count per approver."""
    return service.get_workload_statistics()


@router.get("/disputes", response_model=List[WorkRequestResponse])
def list_disputes(
    service: WorkflowService = Depends(get_workflow_service),
    item_id: Optional[str] = None,
    claimant_id: Optional[str] = None,
    requires_police: bool = False,
):
    """Disputes, optionally narrowed to one item, one claimant or those awaiting police."""
    if requires_police:
        disputes = service.get_disputes_requiring_police()
    elif claimant_id:
        disputes = service.get_disputes_for_user(claimant_id)
    elif item_id:
        disputes = service.get_disputes_for_item(item_id)
    else:
        disputes = service.get_requests_by_type(RequestType.MULTI_ENTERPRISE_DISPUTE)

    if item_id:
        disputes = [d for d in disputes if d.payload.item_id == item_id]
    if claimant_id:
        disputes = [d for d in disputes if claimant_id in d.dispute.claimant_ids]

    now = service.clock()
    return [WorkRequestResponse.from_request(d, now) for d in disputes]


@router.get("/{request_id}", response_model=WorkRequestResponse)
def get_work_request(
    request_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    return _response(service, request_id)


@router.post("/{request_id}/approve", response_model=WorkRequestResponse)
def approve_work_request(
    request_id: str,
    action: ApproveAction,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Approve the current step of a work request."""
    if not service.approve_request(request_id, action.approver_id):
        raise _not_found(request_id)
    return _response(service, request_id)


@router.post("/{request_id}/reject", response_model=WorkRequestResponse)
def reject_work_request(
    request_id: str,
    action: RejectAction,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Reject a work request. A reason is required."""
    if not service.reject_request(request_id, action.approver_id, action.reason):
        raise _not_found(request_id)
    return _response(service, request_id)


@router.post("/{request_id}/cancel", response_model=WorkRequestResponse)
def cancel_work_request(
    request_id: str,
    action: CancelAction,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Withdraw a work request on behalf of its requester."""
    if not service.cancel_request(request_id, action.requester_id):
        raise _not_found(request_id)
    return _response(service, request_id)


@router.post("/{request_id}/complete", response_model=WorkRequestResponse)
def complete_work_request(
    request_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Mark an approved work request as handed over."""
    if not service.complete_request(request_id):
        raise _not_found(request_id)
    return _response(service, request_id)


@router.post("/{request_id}/reassign", response_model=ReassignResponse)
def reassign_work_request(
    request_id: str,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Route a request whose step has no usable approver."""
    approver_id = service.reassign_request(request_id)
    if approver_id is None:
        raise _not_found(request_id)
    return ReassignResponse(id=request_id, current_approver_id=approver_id)


@router.post("/{request_id}/dispute/votes", response_model=WorkRequestResponse)
def vote_on_dispute(
    request_id: str,
    action: DisputeVoteAction,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Record a panel member's vote on a dispute."""
    recorded = service.record_dispute_vote(
        request_id,
        action.voter_id,
        action.voter_name or action.voter_id,
        action.claimant_id,
        action.reason,
        voter_role=action.voter_role,
    )
    if not recorded:
        raise _not_found(request_id)
    return _response(service, request_id)


@router.post("/{request_id}/dispute/police-findings", response_model=WorkRequestResponse)
def file_police_findings(
    request_id: str,
    action: PoliceFindingsAction,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Attach a police report to a dispute."""
    recorded = service.record_police_findings(
        request_id,
        action.officer_id,
        action.officer_name or action.officer_id,
        action.report_number,
        action.findings,
    )
    if not recorded:
        raise _not_found(request_id)
    return _response(service, request_id)


@router.post("/{request_id}/dispute/resolve", response_model=WorkRequestResponse)
def resolve_dispute(
    request_id: str,
    action: ResolveDisputeAction,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Award a disputed item and approve the dispute's current step."""
    if not service.resolve_dispute(request_id, action.claimant_id, action.reason, action.approver_id):
        raise _not_found(request_id)
    return _response(service, request_id)
