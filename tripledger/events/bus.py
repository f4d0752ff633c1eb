"""Mini README: Per-trip publish/subscribe channels for invalidation hints.

Structure:
    * EventName - catalogue of events clients react to.
    * TripEvent - one published hint (name, trip, payload, timestamp).
    * Subscription - handle returned by ``EventBus.subscribe``.
    * EventBus - thread-safe channel table with synchronous fan-out.

Delivery is at-most-once and unbuffered: subscribers that join after a
publish never see it, and there is no replay log. Each subscriber receives
events from one channel in publish order because ``publish`` delivers
synchronously on the caller's thread. Callbacks must be quick; the WebSocket
bridge only hands events to an asyncio queue. Payloads are hints, so
consumers re-fetch the canonical resource instead of applying them.
"""

from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..logging_utils import get_logger

LOGGER = get_logger(__name__)


class EventName(str, Enum):
    """Events broadcast on a trip channel."""

    EXPENSE_ADDED = "expense-added"
    SETTLEMENT_RECORDED = "settlement-recorded"
    ACTIVITY_ADDED = "activity-added"
    ACTIVITY_UPDATED = "activity-updated"
    ACTIVITY_DELETED = "activity-deleted"
    VOTE_CREATED = "vote-created"
    VOTE_RESPONSE = "vote-response"
    DOCUMENT_ADDED = "document-added"
    MEMBER_ADDED = "member-added"

    @classmethod
    def from_str(cls, value: str) -> "EventName":
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError) as error:
            raise ValueError(f"Unsupported event name: {value}") from error


@dataclass(slots=True, frozen=True)
class TripEvent:
    name: EventName
    trip_id: str
    payload: Mapping[str, Any]
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_message(self) -> Dict[str, Any]:
        """Render the wire message pushed to WebSocket subscribers."""

        return {
            "event": self.name.value,
            "trip_id": self.trip_id,
            "payload": dict(self.payload),
            "published_at": self.published_at.isoformat(),
        }


EventCallback = Callable[[TripEvent], None]


@dataclass(slots=True, frozen=True)
class Subscription:
    subscription_id: int
    trip_id: str
    callback: EventCallback = field(compare=False, repr=False)


class EventBus:
    """Map trip ids to their current subscribers and fan events out."""

    def __init__(self) -> None:
        self._channels: Dict[str, Dict[int, Subscription]] = defaultdict(dict)
        self._lock = threading.RLock()
        self._ids = itertools.count(1)

    def subscribe(self, trip_id: str, callback: EventCallback) -> Subscription:
        """Join a trip channel; the callback sees every later publish."""

        with self._lock:
            subscription = Subscription(next(self._ids), trip_id, callback)
            self._channels[trip_id][subscription.subscription_id] = subscription
            LOGGER.debug(
                "Subscription %s joined trip %s (%s subscribers)",
                subscription.subscription_id,
                trip_id,
                len(self._channels[trip_id]),
            )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Leave a channel. Returns ``False`` when the handle was already gone."""

        with self._lock:
            channel = self._channels.get(subscription.trip_id)
            if not channel or subscription.subscription_id not in channel:
                return False
            del channel[subscription.subscription_id]
            if not channel:
                del self._channels[subscription.trip_id]
        LOGGER.debug("Subscription %s left trip %s", subscription.subscription_id, subscription.trip_id)
        return True

    def subscriber_count(self, trip_id: str) -> int:
        with self._lock:
            return len(self._channels.get(trip_id, {}))

    def publish(
        self,
        trip_id: str,
        name: EventName | str,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Deliver an event to everyone currently on the channel.

        Returns the number of subscribers that accepted the event. A callback
        that raises is logged and skipped; the rest still receive the event.
        """

        event_name = name if isinstance(name, EventName) else EventName.from_str(name)
        event = TripEvent(name=event_name, trip_id=trip_id, payload=dict(payload or {}))
        with self._lock:
            recipients: List[Subscription] = list(self._channels.get(trip_id, {}).values())

        delivered = 0
        for subscription in recipients:
            try:
                subscription.callback(event)
            except Exception:
                LOGGER.exception(
                    "Subscriber %s failed to handle %s for trip %s",
                    subscription.subscription_id,
                    event_name.value,
                    trip_id,
                )
                continue
            delivered += 1
        LOGGER.debug("Published %s to trip %s (%s/%s delivered)", event_name.value, trip_id, delivered, len(recipients))
        return delivered
