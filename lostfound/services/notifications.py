"""Transition notifications.

Handles:
- Publishing persisted state changes to in-process subscribers
- Isolating the workflow from subscriber failures

Delivery (email, push, webhooks) is left to subscribers.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional

if TYPE_CHECKING:
    from lostfound.core.workflow.states import RequestStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionEvent:
    """A state change that has been persisted."""

    request_id: str
    old_status: Optional["RequestStatus"]
    new_status: "RequestStatus"
    actor_id: Optional[str] = None
    current_approver_id: Optional[str] = None
    occurred_at: Optional[datetime] = None


Subscriber = Callable[[TransitionEvent], None]


class TransitionNotifier:
    """Fan-out of transition events to registered subscribers."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that removes it."""
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: TransitionEvent) -> int:
        """
        Deliver an event to every subscriber.

        Returns:
            Number of subscribers that handled the event without error
        """
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Subscriber failed for request %s (%s -> %s)",
                    event.request_id,
                    event.old_status.value if event.old_status else None,
                    event.new_status.value,
                )
        return delivered

