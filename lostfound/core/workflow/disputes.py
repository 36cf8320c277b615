"""Dispute resolution records.

A multi-enterprise dispute carries a resolution record next to its approval
chain. Panel members vote for one claimant, police may attach findings, and
an award names the claimant who receives the item. The approval chain still
decides when the request is done; the record decides who gets the item.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import ValidationError

DEFAULT_VOTES_REQUIRED = 3
PANEL_DECIDER = "panel"


class ResolutionStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


class ResolutionDecision(str, Enum):
    AWARDED = "awarded"
    ESCALATED_TO_POLICE = "escalated_to_police"


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class PanelVote:
    voter_id: str
    voter_name: str
    voted_for: str
    reason: str
    voted_at: datetime
    voter_role: Optional[str] = None


@dataclass(frozen=True)
class PoliceFindings:
    officer_id: str
    officer_name: str
    report_number: str
    findings: str
    recorded_at: datetime


@dataclass
class DisputeResolution:
    """
    Outcome of a dispute between several claimants.

    Once ``votes_required`` votes are in, a strict majority awards the item
    and anything else escalates to police. A RESOLVED record is final.
    """

    claimant_ids: Tuple[str, ...]
    votes_required: int = DEFAULT_VOTES_REQUIRED
    status: ResolutionStatus = ResolutionStatus.PENDING
    votes: List[PanelVote] = field(default_factory=list)
    claim_statuses: Dict[str, ClaimStatus] = field(default_factory=dict)
    police_involved: bool = False
    police_findings: Optional[PoliceFindings] = None
    decision: Optional[ResolutionDecision] = None
    winning_claimant_id: Optional[str] = None
    reason: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None

    @classmethod
    def open(cls, claimant_ids: Iterable[str], *, votes_required: int = DEFAULT_VOTES_REQUIRED) -> "DisputeResolution":
        claimants = tuple(dict.fromkeys(claimant_ids))
        return cls(
            claimant_ids=claimants,
            votes_required=votes_required,
            claim_statuses={claimant: ClaimStatus.PENDING for claimant in claimants},
        )

    @property
    def is_resolved(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED

    @property
    def requires_police(self) -> bool:
        return self.police_involved and not self.is_resolved

    def tally(self) -> Dict[str, int]:
        """Votes per claimant, in claimant order."""
        counts = Counter(vote.voted_for for vote in self.votes)
        return {claimant: counts[claimant] for claimant in self.claimant_ids}

    def record_vote(self, vote: PanelVote) -> ResolutionStatus:
        """
        Add a panel vote and decide once enough votes are in.

        Raises:
            ValidationError: If the dispute is resolved, the vote is for
                someone who is not a claimant, the voter is a claimant, or
                the voter already voted
        """
        self._require_open()
        if vote.voted_for not in self.claimant_ids:
            raise ValidationError(f"{vote.voted_for} is not a claimant in this dispute")
        if vote.voter_id in self.claimant_ids:
            raise ValidationError(f"Claimant {vote.voter_id} cannot vote on their own dispute")
        if any(v.voter_id == vote.voter_id for v in self.votes):
            raise ValidationError(f"Panel member {vote.voter_id} has already voted")

        self.votes.append(vote)
        if self.status == ResolutionStatus.PENDING:
            self.status = ResolutionStatus.UNDER_REVIEW
        if len(self.votes) >= self.votes_required:
            self._decide_from_votes(vote.voted_at)
        return self.status

    def record_police_findings(self, findings: PoliceFindings) -> None:
        """
        Attach a police report.

        Raises:
            ValidationError: If the dispute is resolved or the findings are empty
        """
        self._require_open()
        if not findings.findings.strip():
            raise ValidationError("Police findings must not be empty")
        self.police_involved = True
        self.police_findings = findings

    def award(self, winning_claimant_id: str, reason: str, decided_by: str, now: datetime) -> None:
        """
        Award the item to one claimant and reject every other claim.

        Raises:
            ValidationError: If the winner is not a claimant or no reason is given
        """
        if winning_claimant_id not in self.claimant_ids:
            raise ValidationError(f"{winning_claimant_id} is not a claimant in this dispute")
        if not (reason and reason.strip()):
            raise ValidationError("Resolving a dispute requires a reason")

        self.claim_statuses = {
            claimant: ClaimStatus.APPROVED if claimant == winning_claimant_id else ClaimStatus.REJECTED
            for claimant in self.claimant_ids
        }
        self.status = ResolutionStatus.RESOLVED
        self.decision = ResolutionDecision.AWARDED
        self.winning_claimant_id = winning_claimant_id
        self.reason = reason
        self.decided_by = decided_by
        self.decided_at = now

    def _decide_from_votes(self, now: datetime) -> None:
        ranked = sorted(self.tally().items(), key=lambda item: item[1], reverse=True)
        (leader, top), runner_up = ranked[0], ranked[1][1]
        if top > self.votes_required // 2 and top > runner_up:
            reason = f"Panel voted {top} of {len(self.votes)} in favor of {leader}"
            self.award(leader, reason, PANEL_DECIDER, now)
            return

        self.status = ResolutionStatus.ESCALATED
        self.decision = ResolutionDecision.ESCALATED_TO_POLICE
        self.police_involved = True
        self.reason = "No clear majority. Escalated to police for further investigation."

    def _require_open(self) -> None:
        if self.is_resolved:
            raise ValidationError(f"Dispute already resolved in favor of {self.winning_claimant_id}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def resolution_to_dict(resolution: DisputeResolution) -> Dict[str, Any]:
    """Serialize a resolution record for storage."""
    findings = resolution.police_findings
    return {
        "claimant_ids": list(resolution.claimant_ids),
        "votes_required": resolution.votes_required,
        "status": resolution.status.value,
        "votes": [
            {
                "voter_id": v.voter_id,
                "voter_name": v.voter_name,
                "voter_role": v.voter_role,
                "voted_for": v.voted_for,
                "reason": v.reason,
                "voted_at": v.voted_at.isoformat(),
            }
            for v in resolution.votes
        ],
        "claim_statuses": {k: v.value for k, v in resolution.claim_statuses.items()},
        "police_involved": resolution.police_involved,
        "police_findings": None if findings is None else {
            "officer_id": findings.officer_id,
            "officer_name": findings.officer_name,
            "report_number": findings.report_number,
            "findings": findings.findings,
            "recorded_at": findings.recorded_at.isoformat(),
        },
        "decision": resolution.decision.value if resolution.decision else None,
        "winning_claimant_id": resolution.winning_claimant_id,
        "reason": resolution.reason,
        "decided_by": resolution.decided_by,
        "decided_at": _iso(resolution.decided_at),
    }


def resolution_from_dict(data: Dict[str, Any]) -> DisputeResolution:
    """Rebuild a resolution record from its stored form."""
    findings = data.get("police_findings")
    return DisputeResolution(
        claimant_ids=tuple(data["claimant_ids"]),
        votes_required=data.get("votes_required", DEFAULT_VOTES_REQUIRED),
        status=ResolutionStatus(data["status"]),
        votes=[
            PanelVote(
                voter_id=v["voter_id"],
                voter_name=v["voter_name"],
                voter_role=v.get("voter_role"),
                voted_for=v["voted_for"],
                reason=v["reason"],
                voted_at=datetime.fromisoformat(v["voted_at"]),
            )
            for v in data.get("votes", [])
        ],
        claim_statuses={k: ClaimStatus(v) for k, v in data.get("claim_statuses", {}).items()},
        police_involved=data.get("police_involved", False),
        police_findings=None if findings is None else PoliceFindings(
            officer_id=findings["officer_id"],
            officer_name=findings["officer_name"],
            report_number=findings["report_number"],
            findings=findings["findings"],
            recorded_at=datetime.fromisoformat(findings["recorded_at"]),
        ),
        decision=ResolutionDecision(data["decision"]) if data.get("decision") else None,
        winning_claimant_id=data.get("winning_claimant_id"),
        reason=data.get("reason"),
        decided_by=data.get("decided_by"),
        decided_at=_parse(data.get("decided_at")),
    )
