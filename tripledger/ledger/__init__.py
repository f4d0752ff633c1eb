"""Mini README: Ledger records, storage, and the minimal trip directory.

``LedgerStore`` owns expenses, their splits, and settlement payments;
``TripDirectory`` answers who belongs to a trip. Both write through a
``LedgerDatabase`` and announce accepted writes on the ``EventBus``.
"""

from .directory import TripDirectory
from .models import (
    Expense,
    ExpenseSplit,
    MemberRole,
    SettlementPayment,
    SplitRequest,
    Trip,
    TripMember,
    User,
)
from .splits import split_equally, validate_splits
from .store import LedgerStore, PaymentRow, SplitRow

__all__ = [
    "Expense",
    "ExpenseSplit",
    "LedgerStore",
    "MemberRole",
    "PaymentRow",
    "SettlementPayment",
    "SplitRequest",
    "SplitRow",
    "Trip",
    "TripDirectory",
    "TripMember",
    "User",
    "split_equally",
    "validate_splits",
]
