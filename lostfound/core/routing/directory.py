"""Approver identities and the directory the routing engine reads them from."""

import threading
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Protocol

from lostfound.core.workflow.states import Role


@dataclass(frozen=True)
class Approver:
    """An identity that may be assigned approval steps."""

    approver_id: str
    name: str
    role: Role
    organization_id: Optional[str] = None
    enterprise_id: Optional[str] = None
    email: Optional[str] = None
    active: bool = True


class ApproverDirectory(Protocol):
    """Read-mostly source of approver identities.

    ``find_all`` must return identities in registration order; routing uses
    that order to break ties.
    """

    def find_all(self) -> List[Approver]: ...


class InMemoryApproverDirectory:
    """Directory kept in process memory, in registration order."""

    def __init__(self, approvers: Optional[Iterable[Approver]] = None):
        self._approvers: Dict[str, Approver] = {}
        self._lock = threading.Lock()
        for approver in approvers or []:
            self.register(approver)

    def register(self, approver: Approver) -> Approver:
        with self._lock:
            if approver.approver_id in self._approvers:
                raise ValueError(f"Approver {approver.approver_id} already registered")
            self._approvers[approver.approver_id] = approver
        return approver

    def deactivate(self, approver_id: str) -> None:
        with self._lock:
            current = self._approvers.get(approver_id)
            if current is None:
                raise KeyError(approver_id)
            # Replacing the value keeps the key's insertion position
            self._approvers[approver_id] = replace(current, active=False)

    def find_all(self) -> List[Approver]:
        with self._lock:
            return list(self._approvers.values())

    def __len__(self) -> int:
        return len(self._approvers)
