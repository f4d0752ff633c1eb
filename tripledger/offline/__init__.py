"""Mini README: Client-side offline support.

``OfflineActionQueue`` keeps a durable FIFO of mutations that could not be
delivered, ``HttpTransport`` talks to the server, and ``TripView`` re-fetches
trip resources whenever an invalidation hint arrives.
"""

from .queue import (
    ActionState,
    DrainReport,
    DrainTrigger,
    OfflineActionQueue,
    QueuedAction,
    QueueStateError,
    SubmitResult,
)
from .transport import HttpTransport, Transport
from .viewer import EVENT_RESOURCES, TripView

__all__ = [
    "ActionState",
    "DrainReport",
    "DrainTrigger",
    "EVENT_RESOURCES",
    "HttpTransport",
    "OfflineActionQueue",
    "QueueStateError",
    "QueuedAction",
    "SubmitResult",
    "Transport",
    "TripView",
]
