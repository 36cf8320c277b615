"""Services layered on top of the workflow core."""

from lostfound.services.notifications import (
    TransitionEvent,
    TransitionNotifier,
)

__all__ = [
    "TransitionEvent",
    "TransitionNotifier",
]
