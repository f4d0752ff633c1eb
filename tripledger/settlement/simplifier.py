"""Mini README: Greedy debt simplification.

Structure:
    * SettlementTransaction - one proposed payment from a debtor to a creditor.
    * simplify - turn a net balance map into an ordered payment list.
    * SettlementSimplifier - wraps ``simplify`` with the configured epsilon and
      produces the ``{transactions, totalTransactions}`` payload.

Each round pairs the creditor owed the most with the debtor owing the most,
ties broken by the lower user id. The pair exchanges the smaller of the two
remainders, which zeroes at least one side, so the list never exceeds
``participants - 1`` payments. This is a heuristic: minimum-transaction
settlement is NP-hard in general and this rule is kept fixed rather than
tuned, so identical inputs always produce identical output.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping

from ..ledger.models import to_amount, to_cents
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

DEFAULT_EPSILON = Decimal("0.01")


@dataclass(slots=True, frozen=True)
class SettlementTransaction:
    from_user_id: str
    to_user_id: str
    amount: Decimal

    def as_dict(self) -> Dict[str, object]:
        return {"from": self.from_user_id, "to": self.to_user_id, "amount": float(self.amount)}


def _largest(remaining: Mapping[str, Decimal]) -> str:
    """Pick the id with the largest remainder, lower id first on ties."""

    return min(remaining, key=lambda user_id: (-remaining[user_id], user_id))


def simplify(
    balances: Mapping[str, object],
    *,
    epsilon: Decimal = DEFAULT_EPSILON,
) -> List[SettlementTransaction]:
    """Return the payments that settle ``balances`` (user id -> net)."""

    creditors: Dict[str, Decimal] = {}
    debtors: Dict[str, Decimal] = {}
    for user_id, value in balances.items():
        net = to_amount(value, field_name=f"balance for {user_id}", limit=None)
        if net > epsilon:
            creditors[str(user_id)] = net
        elif net < -epsilon:
            debtors[str(user_id)] = -net

    transactions: List[SettlementTransaction] = []
    while creditors and debtors:
        creditor = _largest(creditors)
        debtor = _largest(debtors)
        transfer = min(creditors[creditor], debtors[debtor])
        transactions.append(SettlementTransaction(debtor, creditor, to_cents(transfer)))

        creditors[creditor] -= transfer
        debtors[debtor] -= transfer
        if creditors[creditor] <= epsilon:
            del creditors[creditor]
        if debtors[debtor] <= epsilon:
            del debtors[debtor]

    if creditors or debtors:
        LOGGER.warning(
            "Balances do not sum to zero; %s creditors and %s debtors left unmatched",
            len(creditors),
            len(debtors),
        )
    return transactions


class SettlementSimplifier:
    """Produce settlement proposals for the API."""

    def __init__(self, epsilon: Decimal = DEFAULT_EPSILON) -> None:
        self.epsilon = epsilon

    def simplify(self, balances: Mapping[str, object]) -> List[SettlementTransaction]:
        transactions = simplify(balances, epsilon=self.epsilon)
        LOGGER.debug("Simplified %s balances into %s transactions", len(balances), len(transactions))
        return transactions

    def plan(self, balances: Mapping[str, object]) -> Dict[str, object]:
        """Return the ``{transactions, totalTransactions}`` payload."""

        transactions = self.simplify(balances)
        return {
            "transactions": [transaction.as_dict() for transaction in transactions],
            "totalTransactions": len(transactions),
        }
