"""Mini README: Settlement proposals derived from net balances."""

from .simplifier import DEFAULT_EPSILON, SettlementSimplifier, SettlementTransaction, simplify

__all__ = ["DEFAULT_EPSILON", "SettlementSimplifier", "SettlementTransaction", "simplify"]
