"""Per-approver open item counters."""

import logging
import threading
from typing import Dict, Iterable, Sequence

from lostfound.core.workflow.request import WorkRequest

logger = logging.getLogger(__name__)


class WorkloadTracker:
    """Thread-safe count of in-flight requests assigned to each approver.

    The authoritative value is the set of PENDING/IN_PROGRESS requests whose
    ``current_approver_id`` is the approver; the counters mirror it so that
    routing does not rescan storage. ``rebuild`` resynchronises them.
    """

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, approver_id: str) -> int:
        with self._lock:
            return self._counts.get(approver_id, 0)

    def increment(self, approver_id: str) -> int:
        with self._lock:
            self._counts[approver_id] = self._counts.get(approver_id, 0) + 1
            return self._counts[approver_id]

    def release(self, approver_id: str) -> int:
        """Decrement an approver's count, never below zero."""
        with self._lock:
            current = self._counts.get(approver_id, 0)
            if current <= 0:
                logger.warning("Release for approver %s with no open items", approver_id)
                return 0
            if current == 1:
                del self._counts[approver_id]
                return 0
            self._counts[approver_id] = current - 1
            return current - 1

    def acquire_least_loaded(self, candidate_ids: Sequence[str]) -> str:
        """
        Pick the candidate with the fewest open items and count the new one.

        Ties go to the earliest candidate in ``candidate_ids``. Selection and
        increment happen under one lock so concurrent callers never pick from
        the same stale snapshot.

        Raises:
            ValueError: If no candidates are given
        """
        if not candidate_ids:
            raise ValueError("No candidates to choose from")

        with self._lock:
            chosen = min(candidate_ids, key=lambda cid: self._counts.get(cid, 0))
            self._counts[chosen] = self._counts.get(chosen, 0) + 1
            return chosen

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    def rebuild(self, requests: Iterable[WorkRequest]) -> Dict[str, int]:
        """Recount from the live set of assigned in-flight requests."""
        counts: Dict[str, int] = {}
        for request in requests:
            if request.is_active and request.current_approver_id:
                counts[request.current_approver_id] = counts.get(request.current_approver_id, 0) + 1

        with self._lock:
            self._counts = counts
            return dict(counts)
