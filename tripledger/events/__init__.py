"""Mini README: Real-time invalidation channels.

Re-exports the in-process ``EventBus`` and its event types. The WebSocket
bridge that exposes channels to remote clients lives in
``tripledger.interface.web_app``.
"""

from .bus import EventBus, EventCallback, EventName, Subscription, TripEvent

__all__ = ["EventBus", "EventCallback", "EventName", "Subscription", "TripEvent"]
