"""Mini README: Core package initializer for the trip ledger service.

The package records shared trip expenses, derives per-person balances,
proposes settlement payments, and keeps viewers in sync through per-trip
invalidation channels. A client-side offline queue lives in
``tripledger.offline`` so the same package serves both ends of the wire.
Only the logger factory is re-exported here to keep imports cheap.
"""

from .logging_utils import get_logger

__all__ = ["get_logger"]
