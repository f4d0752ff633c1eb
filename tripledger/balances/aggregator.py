"""Mini README: Derive per-user balances from the full ledger history.

Structure:
    * Balance - paid/owed/net totals for one user.
    * aggregate_balances - pure fold over split and payment rows.
    * BalanceAggregator - reads a trip from the store and names the users.

For each (expense, split) pair the payer is credited (``paid`` and ``net``)
and the split owner is debited (``owed`` up, ``net`` down) by the split
amount, so a payer who also holds a share nets toward zero on it.
Recorded payments move money the other way: the sender is credited and the
receiver debited. Totals accumulate as exact decimals and are only rounded
to cents when rendered, which keeps the sum of all nets at zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from ..errors import NotFoundError
from ..ledger import LedgerStore, PaymentRow, SplitRow, TripDirectory
from ..ledger.models import to_cents
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

ZERO = Decimal("0")


@dataclass(slots=True)
class Balance:
    user_id: str
    paid: Decimal = ZERO
    owed: Decimal = ZERO
    net: Decimal = ZERO
    name: str = "Unknown"

    def credit(self, amount: Decimal) -> None:
        self.paid += amount
        self.net += amount

    def debit(self, amount: Decimal) -> None:
        self.owed += amount
        self.net -= amount

    def rounded(self) -> "Balance":
        return Balance(
            user_id=self.user_id,
            paid=to_cents(self.paid),
            owed=to_cents(self.owed),
            net=to_cents(self.net),
            name=self.name,
        )

    def as_dict(self) -> Dict[str, object]:
        """Render cent-rounded figures for JSON responses."""

        rounded = self.rounded()
        return {
            "paid": float(rounded.paid),
            "owed": float(rounded.owed),
            "net": float(rounded.net),
            "name": self.name,
        }


def aggregate_balances(
    splits: Iterable[SplitRow],
    payments: Iterable[PaymentRow] = (),
    *,
    members: Optional[Iterable[str]] = None,
) -> Dict[str, Balance]:
    """Fold ledger rows into unrounded balances keyed by user id."""

    balances: Dict[str, Balance] = {}

    def _entry(user_id: str) -> Balance:
        if user_id not in balances:
            balances[user_id] = Balance(user_id=user_id)
        return balances[user_id]

    for user_id in members or ():
        _entry(user_id)
    for row in splits:
        _entry(row.payer_id).credit(row.amount)
        _entry(row.user_id).debit(row.amount)
    for row in payments:
        _entry(row.from_user_id).credit(row.amount)
        _entry(row.to_user_id).debit(row.amount)
    return balances


def net_balances(balances: Mapping[str, Balance]) -> Dict[str, Decimal]:
    """Extract cent-rounded nets in the shape the settlement simplifier expects."""

    return {user_id: to_cents(balance.net) for user_id, balance in balances.items()}


class BalanceAggregator:
    """Recompute trip balances on demand; nothing is cached between calls."""

    def __init__(self, store: LedgerStore, directory: TripDirectory) -> None:
        self._store = store
        self._directory = directory

    def compute(self, trip_id: str) -> Dict[str, Balance]:
        names = self._directory.member_names(trip_id)
        splits = self._store.split_rows(trip_id)
        balances = aggregate_balances(splits, self._store.payment_rows(trip_id), members=names.keys())
        for user_id, balance in balances.items():
            balance.name = names.get(user_id, "Unknown")
        LOGGER.debug("Computed %s balances for trip %s from %s splits", len(balances), trip_id, len(splits))
        return balances

    def balance_for(self, trip_id: str, user_id: str) -> Balance:
        balances = self.compute(trip_id)
        if user_id not in balances:
            raise NotFoundError(f"User {user_id} has no balance in trip {trip_id}")
        return balances[user_id]

    def snapshot(self, trip_id: str) -> Dict[str, Dict[str, object]]:
        """Return the ``{userId: {paid, owed, net, name}}`` API payload."""

        return {user_id: balance.as_dict() for user_id, balance in self.compute(trip_id).items()}
