"""Mini README: Balance derivation for trips.

Balances are recomputed from the whole ledger on every query, so they
always reflect the latest committed write.
"""

from .aggregator import Balance, BalanceAggregator, aggregate_balances, net_balances

__all__ = ["Balance", "BalanceAggregator", "aggregate_balances", "net_balances"]
