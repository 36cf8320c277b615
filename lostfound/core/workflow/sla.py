"""SLA deadline arithmetic.

Everything here is computed at read time from ``created_at`` and the frozen
``sla_target_hours``; nothing is stored on the request.
"""

from datetime import datetime
from typing import Iterable, List

from .request import WorkRequest

# Default window before the deadline in which a request is "approaching breach"
DEFAULT_APPROACHING_THRESHOLD_HOURS = 2.0


def hours_elapsed(created_at: datetime, now: datetime) -> float:
    """Fractional hours between creation and ``now``."""
    return (now - created_at).total_seconds() / 3600.0


def hours_until_sla(request: WorkRequest, now: datetime) -> float:
    """Hours left before the SLA target; negative once overdue."""
    return request.sla_target_hours - hours_elapsed(request.created_at, now)


def is_overdue(request: WorkRequest, now: datetime) -> bool:
    return request.is_active and hours_until_sla(request, now) < 0


def is_approaching_breach(
    request: WorkRequest,
    now: datetime,
    threshold_hours: float = DEFAULT_APPROACHING_THRESHOLD_HOURS,
) -> bool:
    if not request.is_active:
        return False
    remaining = hours_until_sla(request, now)
    return 0 <= remaining <= threshold_hours


def overdue_requests(requests: Iterable[WorkRequest], now: datetime) -> List[WorkRequest]:
    """Overdue requests, oldest first."""
    return sorted(
        (r for r in requests if is_overdue(r, now)),
        key=lambda r: r.created_at,
    )


def approaching_breach_requests(
    requests: Iterable[WorkRequest],
    now: datetime,
    threshold_hours: float = DEFAULT_APPROACHING_THRESHOLD_HOURS,
) -> List[WorkRequest]:
    """Requests close to their deadline, least time remaining first."""
    return sorted(
        (r for r in requests if is_approaching_breach(r, now, threshold_hours)),
        key=lambda r: hours_until_sla(r, now),
    )
