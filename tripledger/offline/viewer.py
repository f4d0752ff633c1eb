"""Mini README: Client-side view of one trip driven by invalidation hints.

Structure:
    * EVENT_RESOURCES - which cached resources each event makes stale.
    * TripView - holds the last fetched expenses, balances, settlement plan,
      members, and payments, re-fetching whatever an event invalidates.

Event payloads are never applied to the cached data. They only say that
something changed; the view always re-reads the canonical resource, so a
missed or reordered event costs at most one stale render until the next
hint or ``refresh``.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Mapping, Optional, Set

from ..errors import ApiError, NetworkError
from ..events import EventName
from ..logging_utils import get_logger
from .transport import Transport

LOGGER = get_logger(__name__)

EXPENSES = "expenses"
BALANCES = "balances"
SETTLEMENT = "settlement"
MEMBERS = "members"
PAYMENTS = "settlements"

RESOURCES: FrozenSet[str] = frozenset({EXPENSES, BALANCES, SETTLEMENT, MEMBERS, PAYMENTS})

EVENT_RESOURCES: Dict[EventName, FrozenSet[str]] = {
    EventName.EXPENSE_ADDED: frozenset({EXPENSES, BALANCES, SETTLEMENT}),
    EventName.SETTLEMENT_RECORDED: frozenset({PAYMENTS, BALANCES, SETTLEMENT}),
    EventName.MEMBER_ADDED: frozenset({MEMBERS, BALANCES, SETTLEMENT}),
}


class TripView:
    """Cache of trip resources refreshed on invalidation hints."""

    def __init__(self, transport: Transport, trip_id: str) -> None:
        self._transport = transport
        self.trip_id = trip_id
        self.data: Dict[str, Any] = {}
        self.stale: Set[str] = set(RESOURCES)

    def _path(self, resource: str) -> str:
        return f"/api/trips/{self.trip_id}/{resource}"

    def fetch(self, resource: str) -> bool:
        """Re-read one resource; on failure it stays marked stale."""

        try:
            self.data[resource] = self._transport.send("GET", self._path(resource))
        except (NetworkError, ApiError) as error:
            LOGGER.warning("Could not refresh %s for trip %s: %s", resource, self.trip_id, error)
            self.stale.add(resource)
            return False
        self.stale.discard(resource)
        return True

    def refresh(self) -> Set[str]:
        """Re-fetch every resource, e.g. after reconnecting."""

        return {resource for resource in sorted(RESOURCES) if self.fetch(resource)}

    def handle_event(self, message: Mapping[str, Any]) -> Set[str]:
        """React to a pushed WebSocket message; returns the resources re-fetched."""

        if message.get("trip_id") != self.trip_id:
            return set()
        try:
            name = EventName.from_str(str(message.get("event", "")))
        except ValueError:
            # Channel acknowledgements and errors are not invalidations.
            return set()

        affected = EVENT_RESOURCES.get(name, frozenset())
        if not affected:
            LOGGER.debug("Event %s does not touch the ledger views", name.value)
            return set()
        self.stale.update(affected)
        return {resource for resource in sorted(affected) if self.fetch(resource)}

    @property
    def balances(self) -> Optional[Dict[str, Any]]:
        return self.data.get(BALANCES)

    @property
    def settlement(self) -> Optional[Dict[str, Any]]:
        return self.data.get(SETTLEMENT)

    @property
    def expenses(self) -> Optional[Any]:
        return self.data.get(EXPENSES)
