"""SQLAlchemy implementations of the workflow storage collaborators.

``SqlRequestStore`` satisfies the ``RequestStore`` protocol and
``SqlApproverDirectory`` the ``ApproverDirectory`` protocol. Each call runs
in its own session and commits before returning.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from lostfound.core.routing.directory import Approver
from lostfound.core.workflow.disputes import resolution_from_dict, resolution_to_dict
from lostfound.core.workflow.errors import RequestNotFoundError
from lostfound.core.workflow.request import ApprovalHistoryEntry, WorkRequest
from lostfound.core.workflow.states import RequestPriority, RequestStatus, RequestType, Role
from lostfound.core.workflow.variants import payload_from_dict, payload_to_dict
from lostfound.db.models import ApproverRecord, WorkRequestRecord
from lostfound.db.session import access_lock

logger = logging.getLogger(__name__)

# Request attributes that map onto an indexed column
QUERYABLE_FIELDS = {
    "status": WorkRequestRecord.status,
    "request_type": WorkRequestRecord.request_type,
    "priority": WorkRequestRecord.priority,
    "current_approver_id": WorkRequestRecord.current_approver_id,
    "requester_id": WorkRequestRecord.requester_id,
    "requester_organization_id": WorkRequestRecord.requester_organization_id,
    "target_organization_id": WorkRequestRecord.target_organization_id,
}


def _history_to_json(history: Iterable[ApprovalHistoryEntry]) -> List[Dict[str, Any]]:
    return [
        {
            "approver_id": entry.approver_id,
            "approver_name": entry.approver_name,
            "timestamp": entry.timestamp.isoformat(),
        }
        for entry in history
    ]


def _history_from_json(data: Iterable[Dict[str, Any]]) -> List[ApprovalHistoryEntry]:
    return [
        ApprovalHistoryEntry(
            approver_id=item["approver_id"],
            approver_name=item["approver_name"],
            timestamp=datetime.fromisoformat(item["timestamp"]),
        )
        for item in data
    ]


def request_to_record(request: WorkRequest, record: Optional[WorkRequestRecord] = None) -> WorkRequestRecord:
    """Copy a request onto a (new or existing) row."""
    if record is None:
        record = WorkRequestRecord(id=request.request_id)

    record.request_type = request.request_type.value
    record.status = request.status.value
    record.priority = request.priority.value
    record.approval_chain = [role.value for role in request.approval_chain]
    record.approval_step = request.approval_step
    record.approver_history = _history_to_json(request.approver_history)
    record.current_approver_id = request.current_approver_id
    record.requester_id = request.requester_id
    record.requester_organization_id = request.requester_organization_id
    record.target_organization_id = request.target_organization_id
    record.payload = payload_to_dict(request.payload)
    record.dispute = resolution_to_dict(request.dispute) if request.dispute is not None else None
    record.sla_target_hours = request.sla_target_hours
    record.notes = request.notes
    record.created_at = request.created_at
    record.updated_at = request.updated_at
    record.completed_at = request.completed_at
    return record


def record_to_request(record: WorkRequestRecord) -> WorkRequest:
    return WorkRequest(
        request_id=record.id,
        request_type=RequestType(record.request_type),
        payload=payload_from_dict(record.payload),
        priority=RequestPriority(record.priority),
        approval_chain=tuple(Role(role) for role in record.approval_chain),
        sla_target_hours=record.sla_target_hours,
        created_at=record.created_at,
        updated_at=record.updated_at,
        status=RequestStatus(record.status),
        approval_step=record.approval_step,
        approver_history=_history_from_json(record.approver_history or []),
        current_approver_id=record.current_approver_id,
        completed_at=record.completed_at,
        notes=record.notes,
        dispute=resolution_from_dict(record.dispute) if record.dispute else None,
    )


class _SqlRepository:

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._guard = access_lock(session_factory.kw.get("bind"))

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._guard, self._session_factory() as session:
            yield session


class SqlRequestStore(_SqlRepository):
    """Work request storage in the ``work_requests`` table."""

    def create(self, request: WorkRequest) -> str:
        with self._session() as session:
            session.add(request_to_record(request))
            session.commit()
        return request.request_id

    def find_by_id(self, request_id: str) -> Optional[WorkRequest]:
        with self._session() as session:
            record = session.get(WorkRequestRecord, request_id)
            return record_to_request(record) if record else None

    def find_all(self) -> List[WorkRequest]:
        with self._session() as session:
            query = select(WorkRequestRecord).order_by(WorkRequestRecord.created_at.asc())
            return [record_to_request(r) for r in session.scalars(query)]

    def find_by_field(self, name: str, value: Any) -> List[WorkRequest]:
        """
        Requests whose attribute ``name`` equals ``value``.

        Raises:
            ValueError: If the attribute has no column to filter on
        """
        column = QUERYABLE_FIELDS.get(name)
        if column is None:
            raise ValueError(f"Cannot query work requests by {name}")
        if isinstance(value, Enum):
            value = value.value

        with self._session() as session:
            query = (
                select(WorkRequestRecord)
                .where(column == value)
                .order_by(WorkRequestRecord.created_at.asc())
            )
            return [record_to_request(r) for r in session.scalars(query)]

    def update(self, request: WorkRequest) -> None:
        """
        Overwrite the stored row for ``request``.

        Raises:
            RequestNotFoundError: If the request was never created
        """
        with self._session() as session:
            record = session.get(WorkRequestRecord, request.request_id, with_for_update=True)
            if record is None:
                raise RequestNotFoundError(request.request_id)
            request_to_record(request, record)
            session.commit()


def _approver_from_record(record: ApproverRecord) -> Approver:
    return Approver(
        approver_id=record.approver_id,
        name=record.name,
        role=Role(record.role),
        organization_id=record.organization_id,
        enterprise_id=record.enterprise_id,
        email=record.email,
        active=record.active,
    )


class SqlApproverDirectory(_SqlRepository):
    """Approver identities in the ``approvers`` table, in registration order."""

    def find_all(self) -> List[Approver]:
        with self._session() as session:
            query = select(ApproverRecord).order_by(ApproverRecord.id.asc())
            return [_approver_from_record(r) for r in session.scalars(query)]

    def register(self, approver: Approver) -> Approver:
        """
        Add an identity.

        Raises:
            ValueError: If the approver id is already registered
        """
        with self._session() as session:
            if self._get(session, approver.approver_id) is not None:
                raise ValueError(f"Approver {approver.approver_id} already registered")
            session.add(ApproverRecord(
                approver_id=approver.approver_id,
                name=approver.name,
                role=approver.role.value,
                organization_id=approver.organization_id,
                enterprise_id=approver.enterprise_id,
                email=approver.email,
                active=approver.active,
            ))
            session.commit()
        return approver

    def deactivate(self, approver_id: str) -> None:
        """
        Stop routing new steps to an identity.

        Raises:
            KeyError: If the approver is unknown
        """
        with self._session() as session:
            record = self._get(session, approver_id)
            if record is None:
                raise KeyError(approver_id)
            record.active = False
            session.commit()

    def __len__(self) -> int:
        return len(self.find_all())

    @staticmethod
    def _get(session: Session, approver_id: str) -> Optional[ApproverRecord]:
        query = select(ApproverRecord).where(ApproverRecord.approver_id == approver_id)
        return session.scalars(query).first()
