"""Mini README: Tests for balance aggregation.

Checks the paid/owed/net fold, the conservation of net balances, payment
handling, and that rounding only happens on output.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from tripledger.balances import BalanceAggregator, aggregate_balances, net_balances
from tripledger.errors import NotFoundError
from tripledger.ledger import PaymentRow, SplitRequest, SplitRow, split_equally


def test_equal_three_way_split_nets_payer_share() -> None:
    """A pays 30 split A/B/C: A nets +20, B and C owe 10 each."""

    rows = [SplitRow("A", user, Decimal("10")) for user in ("A", "B", "C")]

    balances = aggregate_balances(rows)

    assert balances["A"].paid == Decimal("30")
    assert balances["A"].owed == Decimal("10")
    assert balances["A"].net == Decimal("20")
    assert balances["B"].net == Decimal("-10")
    assert balances["C"].net == Decimal("-10")
    assert sum(balance.net for balance in balances.values()) == 0


def test_rounding_happens_only_at_output() -> None:
    """Three shares of 33.3333 keep four places until rendered."""

    rows = [SplitRow("A", user, Decimal("33.3333")) for user in ("A", "B", "C")]

    balances = aggregate_balances(rows)

    assert balances["B"].net == Decimal("-33.3333")
    assert balances["A"].net == Decimal("66.6666")
    assert balances["A"].as_dict()["net"] == pytest.approx(66.67)
    assert net_balances(balances) == {"A": Decimal("66.67"), "B": Decimal("-33.33"), "C": Decimal("-33.33")}


def test_payments_move_balances_toward_zero() -> None:
    rows = [SplitRow("A", "A", Decimal("50")), SplitRow("A", "B", Decimal("50"))]
    payments = [PaymentRow("B", "A", Decimal("20"))]

    balances = aggregate_balances(rows, payments, members=["A", "B", "Z"])

    assert balances["A"].net == Decimal("30")
    assert balances["B"].net == Decimal("-30")
    assert balances["Z"].net == Decimal("0")


def test_aggregator_reads_trip_history_with_names(store, directory, trip) -> None:
    """Two expenses produce A +20, B -2.5, C -17.5 and sum to zero."""

    store.record_expense(trip.id, "Groceries", 30, "USD", trip.a, "2024-05-01", split_equally(30, [trip.a, trip.b, trip.c]))
    store.record_expense(trip.id, "Snacks", 15, "USD", trip.b, "2024-05-02", split_equally(15, [trip.b, trip.c]))

    aggregator = BalanceAggregator(store, directory)
    snapshot = aggregator.snapshot(trip.id)

    assert snapshot[trip.a] == {"paid": 30.0, "owed": 10.0, "net": 20.0, "name": "Alice"}
    assert snapshot[trip.b]["net"] == pytest.approx(-2.5)
    assert snapshot[trip.c]["net"] == pytest.approx(-17.5)
    assert sum(entry["net"] for entry in snapshot.values()) == pytest.approx(0.0)
    assert aggregator.balance_for(trip.id, trip.c).owed == Decimal("17.5")


def test_aggregator_lists_idle_members_and_rejects_unknown(store, directory, trip) -> None:
    aggregator = BalanceAggregator(store, directory)

    balances = aggregator.compute(trip.id)

    assert set(balances) == {trip.a, trip.b, trip.c}
    assert all(balance.net == 0 for balance in balances.values())
    with pytest.raises(NotFoundError):
        aggregator.balance_for(trip.id, "ghost")
    with pytest.raises(NotFoundError):
        aggregator.compute("missing-trip")


def test_aggregator_reflects_latest_write(store, directory, trip) -> None:
    """Balances are recomputed, so a new expense shows up immediately."""

    aggregator = BalanceAggregator(store, directory)
    assert aggregator.compute(trip.id)[trip.b].net == 0

    store.record_expense(trip.id, "Bus", 8, "USD", trip.a, "2024-05-01", [SplitRequest.build(trip.b, 8)])

    assert aggregator.compute(trip.id)[trip.b].net == Decimal("-8")
