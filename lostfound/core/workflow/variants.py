"""Request payload variants.

Each payload type carries the fields of one request kind and knows how to
derive its approval chain, priority, SLA target and validity. The derivations
are pure: the envelope calls them once at creation and freezes the results.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from .states import RequestPriority, RequestType, Role, sla_hours_for


# Item claims above this value need police verification
HIGH_VALUE_THRESHOLD = 500.0

# Item claims above this value are urgent
URGENT_VALUE_THRESHOLD = 1000.0

# Minimum length of the free-text fields backing an item claim
MIN_CLAIM_FIELD_LENGTH = 10


def _has_text(value: Optional[str], min_length: int = 1) -> bool:
    return value is not None and len(value.strip()) >= min_length


@dataclass(frozen=True, kw_only=True)
class RequestPayload(ABC):
    """Fields shared by every request kind."""

    request_type: ClassVar[RequestType]

    requester_id: str = ""
    requester_name: str = ""
    requester_organization_id: Optional[str] = None
    target_organization_id: Optional[str] = None
    description: str = ""

    @abstractmethod
    def compute_approval_chain(self) -> List[Role]:
        """Ordered roles that must approve the request."""

    @abstractmethod
    def compute_priority(self) -> RequestPriority:
        """Priority for the request."""

    @abstractmethod
    def is_valid(self) -> bool:
        """Whether the payload has everything needed to start the workflow."""

    @abstractmethod
    def confidence_score(self) -> int:
        """How well supported the request is, from 0 to 100."""

    @abstractmethod
    def summary(self) -> str:
        """Human-readable one-line description."""

    def compute_sla_target_hours(self) -> int:
        return sla_hours_for(self.compute_priority())

    def routing_scope(self, step: int, role: Role) -> Optional[str]:
        """Organization the approver for ``step`` must belong to, if any."""
        return None


@dataclass(frozen=True, kw_only=True)
class ItemClaimPayload(RequestPayload):
    """A student claiming a found item.

    The campus coordinator of the holding organization always reviews the
    claim; items worth more than ``HIGH_VALUE_THRESHOLD`` also go to the
    police evidence custodian.
    """

    request_type: ClassVar[RequestType] = RequestType.ITEM_CLAIM

    item_id: str = ""
    item_name: str = ""
    item_category: str = ""
    item_value: float = 0.0
    lost_item_id: Optional[str] = None
    claim_details: str = ""
    identifying_features: str = ""
    proof_description: str = ""
    claim_photo_url: Optional[str] = None
    found_location_name: Optional[str] = None

    @property
    def is_high_value(self) -> bool:
        return self.item_value > HIGH_VALUE_THRESHOLD

    def compute_approval_chain(self) -> List[Role]:
        chain = [Role.CAMPUS_COORDINATOR]
        if self.is_high_value:
            chain.append(Role.POLICE_EVIDENCE_CUSTODIAN)
        return chain

    def compute_priority(self) -> RequestPriority:
        if self.item_value > URGENT_VALUE_THRESHOLD:
            return RequestPriority.URGENT
        return RequestPriority.NORMAL

    def is_valid(self) -> bool:
        if not _has_text(self.item_id) or not _has_text(self.requester_id):
            return False
        return (
            _has_text(self.claim_details, MIN_CLAIM_FIELD_LENGTH)
            and _has_text(self.identifying_features, MIN_CLAIM_FIELD_LENGTH)
            and _has_text(self.proof_description, MIN_CLAIM_FIELD_LENGTH)
        )

    def confidence_score(self) -> int:
        score = 0
        if self.claim_details and len(self.claim_details) > 50:
            score += 25
        if self.identifying_features and len(self.identifying_features) > 30:
            score += 25
        if _has_text(self.proof_description):
            score += 25
        if _has_text(self.claim_photo_url):
            score += 25
        return min(score, 100)

    def routing_scope(self, step: int, role: Role) -> Optional[str]:
        # The coordinator must work where the item is held
        if role == Role.CAMPUS_COORDINATOR:
            return self.target_organization_id
        return None

    def summary(self) -> str:
        tag = " [HIGH VALUE]" if self.is_high_value else ""
        return f"Item Claim: {self.item_name}{tag} - Claimed by {self.requester_name}"


@dataclass(frozen=True, kw_only=True)
class PoliceEvidencePayload(RequestPayload):
    """Coordinator asking the police to verify an item against their records."""

    request_type: ClassVar[RequestType] = RequestType.POLICE_EVIDENCE_REQUEST

    item_id: str = ""
    item_name: str = ""
    verification_reason: str = ""
    estimated_value: float = 0.0
    serial_number: Optional[str] = None
    imei_number: Optional[str] = None
    other_identifiers: Optional[str] = None
    is_stolen_check: bool = False

    def has_identifier(self) -> bool:
        return any(
            _has_text(value)
            for value in (self.serial_number, self.imei_number, self.other_identifiers)
        )

    def compute_approval_chain(self) -> List[Role]:
        return [Role.POLICE_EVIDENCE_CUSTODIAN]

    def compute_priority(self) -> RequestPriority:
        if self.is_stolen_check:
            return RequestPriority.URGENT
        return RequestPriority.HIGH

    def is_valid(self) -> bool:
        return (
            _has_text(self.item_id)
            and _has_text(self.verification_reason)
            and self.has_identifier()
        )

    def confidence_score(self) -> int:
        score = 0
        if _has_text(self.serial_number):
            score += 50
        if _has_text(self.imei_number):
            score += 30
        if _has_text(self.other_identifiers):
            score += 20
        return min(score, 100)

    def summary(self) -> str:
        tag = " [STOLEN CHECK]" if self.is_stolen_check else ""
        return f"Police Verification: {self.item_name} - {self.verification_reason}{tag}"


@dataclass(frozen=True, kw_only=True)
class CrossEnterpriseTransferPayload(RequestPayload):
    """Moving an item from one enterprise to another (e.g. transit -> university).

    The origin releases the item, the destination accepts it and the requester
    confirms the pickup.
    """

    request_type: ClassVar[RequestType] = RequestType.CROSS_ENTERPRISE_TRANSFER

    item_id: str = ""
    item_name: str = ""
    origin_organization_id: Optional[str] = None
    origin_enterprise_name: str = ""
    destination_enterprise_name: str = ""
    pickup_location: str = ""
    item_description: str = ""

    def compute_approval_chain(self) -> List[Role]:
        return [
            Role.ORIGIN_ENTERPRISE_MANAGER,
            Role.DESTINATION_COORDINATOR,
            Role.REQUESTER_CONFIRMATION,
        ]

    def compute_priority(self) -> RequestPriority:
        return RequestPriority.HIGH

    def is_valid(self) -> bool:
        if not (
            _has_text(self.item_id)
            and _has_text(self.origin_organization_id)
            and _has_text(self.target_organization_id)
            and _has_text(self.pickup_location)
        ):
            return False
        return self.origin_organization_id != self.target_organization_id

    def confidence_score(self) -> int:
        present = [
            _has_text(self.item_description),
            _has_text(self.origin_enterprise_name),
            _has_text(self.destination_enterprise_name),
            _has_text(self.pickup_location),
        ]
        return 25 * sum(present)

    def routing_scope(self, step: int, role: Role) -> Optional[str]:
        if role == Role.ORIGIN_ENTERPRISE_MANAGER:
            return self.origin_organization_id
        if role == Role.DESTINATION_COORDINATOR:
            return self.target_organization_id
        return None

    def summary(self) -> str:
        return (
            f"Transfer: {self.item_name} from {self.origin_enterprise_name or 'origin'} "
            f"to {self.destination_enterprise_name or 'destination'} for {self.requester_name}"
        )


@dataclass(frozen=True, kw_only=True)
class EmergencyTransferPayload(RequestPayload):
    """Rushing an item found on transit to a traveler at the airport."""

    request_type: ClassVar[RequestType] = RequestType.EMERGENCY_TRANSFER

    item_id: str = ""
    item_name: str = ""
    origin_organization_id: Optional[str] = None
    station_name: str = ""
    flight_number: str = ""
    traveler_name: str = ""
    document_type: Optional[str] = None

    @property
    def is_passport_emergency(self) -> bool:
        return (self.document_type or "").upper() == "PASSPORT"

    def compute_approval_chain(self) -> List[Role]:
        return [Role.STATION_MANAGER, Role.AIRPORT_SPECIALIST]

    def compute_priority(self) -> RequestPriority:
        return RequestPriority.URGENT

    def is_valid(self) -> bool:
        return (
            _has_text(self.item_id)
            and _has_text(self.station_name)
            and _has_text(self.flight_number)
        )

    def confidence_score(self) -> int:
        score = 0
        if _has_text(self.flight_number):
            score += 40
        if _has_text(self.traveler_name):
            score += 30
        if _has_text(self.document_type):
            score += 30
        return score

    def routing_scope(self, step: int, role: Role) -> Optional[str]:
        if role == Role.STATION_MANAGER:
            return self.origin_organization_id
        if role == Role.AIRPORT_SPECIALIST:
            return self.target_organization_id
        return None

    def summary(self) -> str:
        return (
            f"EMERGENCY: {self.item_name} from {self.station_name} "
            f"for flight {self.flight_number} ({self.traveler_name})"
        )


@dataclass(frozen=True, kw_only=True)
class DisputeResolutionPayload(RequestPayload):
    """Several people from different enterprises claim the same item."""

    request_type: ClassVar[RequestType] = RequestType.MULTI_ENTERPRISE_DISPUTE

    item_id: str = ""
    item_name: str = ""
    dispute_reason: str = ""
    claimant_ids: Tuple[str, ...] = ()
    evidence_descriptions: Tuple[str, ...] = ()

    def __post_init__(self):
        # Storage round-trips sequences as lists
        object.__setattr__(self, "claimant_ids", tuple(self.claimant_ids))
        object.__setattr__(self, "evidence_descriptions", tuple(self.evidence_descriptions))

    def compute_approval_chain(self) -> List[Role]:
        return [Role.POLICE_EVIDENCE_CUSTODIAN]

    def compute_priority(self) -> RequestPriority:
        return RequestPriority.HIGH

    def is_valid(self) -> bool:
        return (
            _has_text(self.item_id)
            and _has_text(self.dispute_reason)
            and len(set(self.claimant_ids)) >= 2
        )

    def confidence_score(self) -> int:
        return min(20 * len([e for e in self.evidence_descriptions if _has_text(e)]), 100)

    def summary(self) -> str:
        return f"DISPUTE: {self.item_name} - {len(set(self.claimant_ids))} claimants"


PAYLOAD_TYPES: Dict[RequestType, Type[RequestPayload]] = {
    cls.request_type: cls
    for cls in (
        ItemClaimPayload,
        PoliceEvidencePayload,
        CrossEnterpriseTransferPayload,
        EmergencyTransferPayload,
        DisputeResolutionPayload,
    )
}


def payload_to_dict(payload: RequestPayload) -> Dict[str, Any]:
    """Serialize a payload for storage."""
    data = asdict(payload)
    for key, value in data.items():
        if isinstance(value, tuple):
            data[key] = list(value)
    data["request_type"] = payload.request_type.value
    return data


def payload_from_dict(data: Dict[str, Any]) -> RequestPayload:
    """Rebuild a payload from its stored form.

    Raises:
        ValueError: If the request type is unknown
    """
    request_type = RequestType(data["request_type"])
    cls = PAYLOAD_TYPES[request_type]
    known = {f.name for f in fields(cls)}
    return cls(**{key: value for key, value in data.items() if key in known})
