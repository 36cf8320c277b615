"""Work request schemas."""

from datetime import datetime
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, Field

from lostfound.core.workflow import sla
from lostfound.core.workflow.disputes import DisputeResolution
from lostfound.core.workflow.request import WorkRequest
from lostfound.core.workflow.service import WorkRequestStats
from lostfound.core.workflow.variants import (
    CrossEnterpriseTransferPayload,
    DisputeResolutionPayload,
    EmergencyTransferPayload,
    ItemClaimPayload,
    PoliceEvidencePayload,
    RequestPayload,
    payload_to_dict,
)


# Creation payloads, one per request type
class WorkRequestCreateBase(BaseModel):
    payload_class: ClassVar[Type[RequestPayload]]

    requester_id: str = Field(..., min_length=1)
    requester_name: str = ""
    requester_organization_id: Optional[str] = None
    target_organization_id: Optional[str] = None
    description: str = ""

    def to_payload(self) -> RequestPayload:
        return self.payload_class(**self.model_dump(exclude={"request_type"}))


class ItemClaimCreate(WorkRequestCreateBase):
    payload_class: ClassVar[Type[RequestPayload]] = ItemClaimPayload

    request_type: Literal["item_claim"]
    item_id: str
    item_name: str = ""
    item_category: str = ""
    item_value: float = Field(0.0, ge=0)
    lost_item_id: Optional[str] = None
    claim_details: str = ""
    identifying_features: str = ""
    proof_description: str = ""
    claim_photo_url: Optional[str] = None
    found_location_name: Optional[str] = None


class PoliceEvidenceCreate(WorkRequestCreateBase):
    payload_class: ClassVar[Type[RequestPayload]] = PoliceEvidencePayload

    request_type: Literal["police_evidence_request"]
    item_id: str
    item_name: str = ""
    verification_reason: str = ""
    estimated_value: float = Field(0.0, ge=0)
    serial_number: Optional[str] = None
    imei_number: Optional[str] = None
    other_identifiers: Optional[str] = None
    is_stolen_check: bool = False


class CrossEnterpriseTransferCreate(WorkRequestCreateBase):
    payload_class: ClassVar[Type[RequestPayload]] = CrossEnterpriseTransferPayload

    request_type: Literal["cross_enterprise_transfer"]
    item_id: str
    item_name: str = ""
    origin_organization_id: Optional[str] = None
    origin_enterprise_name: str = ""
    destination_enterprise_name: str = ""
    pickup_location: str = ""
    item_description: str = ""


class EmergencyTransferCreate(WorkRequestCreateBase):
    payload_class: ClassVar[Type[RequestPayload]] = EmergencyTransferPayload

    request_type: Literal["emergency_transfer"]
    item_id: str
    item_name: str = ""
    origin_organization_id: Optional[str] = None
    station_name: str = ""
    flight_number: str = ""
    traveler_name: str = ""
    document_type: Optional[str] = None


class DisputeResolutionCreate(WorkRequestCreateBase):
    payload_class: ClassVar[Type[RequestPayload]] = DisputeResolutionPayload

    request_type: Literal["multi_enterprise_dispute"]
    item_id: str
    item_name: str = ""
    dispute_reason: str = ""
    claimant_ids: List[str] = []
    evidence_descriptions: List[str] = []


WorkRequestCreate = Annotated[
    Union[
        ItemClaimCreate,
        PoliceEvidenceCreate,
        CrossEnterpriseTransferCreate,
        EmergencyTransferCreate,
        DisputeResolutionCreate,
    ],
    Field(discriminator="request_type"),
]


# Actions
class ApproveAction(BaseModel):
    approver_id: str = Field(..., min_length=1)


class RejectAction(BaseModel):
    approver_id: str = Field(..., min_length=1)
    reason: str = ""


class CancelAction(BaseModel):
    requester_id: str = Field(..., min_length=1)


class DisputeVoteAction(BaseModel):
    voter_id: str = Field(..., min_length=1)
    voter_name: str = ""
    voter_role: Optional[str] = None
    claimant_id: str = Field(..., min_length=1)
    reason: str = ""


class PoliceFindingsAction(BaseModel):
    officer_id: str = Field(..., min_length=1)
    officer_name: str = ""
    report_number: str = Field(..., min_length=1)
    findings: str = ""


class ResolveDisputeAction(BaseModel):
    approver_id: str = Field(..., min_length=1)
    claimant_id: str = Field(..., min_length=1)
    reason: str = ""


# Responses
class ApprovalHistoryResponse(BaseModel):
    approver_id: str
    approver_name: str
    timestamp: datetime

    class Config:
        from_attributes = True


class PanelVoteResponse(BaseModel):
    voter_id: str
    voter_name: str
    voter_role: Optional[str]
    voted_for: str
    reason: str
    voted_at: datetime

    class Config:
        from_attributes = True


class PoliceFindingsResponse(BaseModel):
    officer_id: str
    officer_name: str
    report_number: str
    findings: str
    recorded_at: datetime

    class Config:
        from_attributes = True


class DisputeResolutionResponse(BaseModel):
    status: str
    votes_required: int
    votes: List[PanelVoteResponse]
    tally: Dict[str, int]
    claim_statuses: Dict[str, str]
    police_involved: bool
    requires_police: bool
    police_findings: Optional[PoliceFindingsResponse]
    decision: Optional[str]
    winning_claimant_id: Optional[str]
    reason: Optional[str]
    decided_by: Optional[str]
    decided_at: Optional[datetime]

    @classmethod
    def from_resolution(cls, resolution: DisputeResolution) -> "DisputeResolutionResponse":
        findings = resolution.police_findings
        return cls(
            status=resolution.status.value,
            votes_required=resolution.votes_required,
            votes=[PanelVoteResponse.model_validate(v) for v in resolution.votes],
            tally=resolution.tally(),
            claim_statuses={k: v.value for k, v in resolution.claim_statuses.items()},
            police_involved=resolution.police_involved,
            requires_police=resolution.requires_police,
            police_findings=PoliceFindingsResponse.model_validate(findings) if findings is not None else None,
            decision=resolution.decision.value if resolution.decision else None,
            winning_claimant_id=resolution.winning_claimant_id,
            reason=resolution.reason,
            decided_by=resolution.decided_by,
            decided_at=resolution.decided_at,
        )


class WorkRequestResponse(BaseModel):
    id: str
    request_type: str
    status: str
    priority: str
    approval_chain: List[str]
    approval_step: int
    current_approver_id: Optional[str]
    requester_id: str
    requester_organization_id: Optional[str]
    target_organization_id: Optional[str]
    approver_history: List[ApprovalHistoryResponse]
    sla_target_hours: int
    hours_until_sla: float
    overdue: bool
    summary: str
    notes: Optional[str]
    payload: Dict[str, Any]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]
    dispute: Optional[DisputeResolutionResponse] = None

    @classmethod
    def from_request(cls, request: WorkRequest, now: datetime) -> "WorkRequestResponse":
        return cls(
            id=request.request_id,
            request_type=request.request_type.value,
            status=request.status.value,
            priority=request.priority.value,
            approval_chain=[role.value for role in request.approval_chain],
            approval_step=request.approval_step,
            current_approver_id=request.current_approver_id,
            requester_id=request.requester_id,
            requester_organization_id=request.requester_organization_id,
            target_organization_id=request.target_organization_id,
            approver_history=[ApprovalHistoryResponse.model_validate(e) for e in request.approver_history],
            sla_target_hours=request.sla_target_hours,
            hours_until_sla=round(sla.hours_until_sla(request, now), 2),
            overdue=sla.is_overdue(request, now),
            summary=request.summary(),
            notes=request.notes,
            payload=payload_to_dict(request.payload),
            created_at=request.created_at,
            updated_at=request.updated_at,
            completed_at=request.completed_at,
            dispute=(
                DisputeResolutionResponse.from_resolution(request.dispute)
                if request.dispute is not None else None
            ),
        )


class WorkRequestStatsResponse(BaseModel):
    total: int
    pending: int
    in_progress: int
    approved: int
    rejected: int
    cancelled: int
    completed: int
    overdue: int
    active: int

    @classmethod
    def from_stats(cls, stats: WorkRequestStats) -> "WorkRequestStatsResponse":
        return cls(
            total=stats.total,
            pending=stats.pending,
            in_progress=stats.in_progress,
            approved=stats.approved,
            rejected=stats.rejected,
            cancelled=stats.cancelled,
            completed=stats.completed,
            overdue=stats.overdue,
            active=stats.active,
        )


class ReassignResponse(BaseModel):
    id: str
    current_approver_id: str
