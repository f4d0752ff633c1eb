"""Mini README: End-to-end tests through the FastAPI application.

Each test drives the HTTP routes and the ``/ws`` channel bridge with
Starlette's TestClient, so the same code paths the mobile and web clients
use are exercised together with the offline queue.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tripledger.configuration import TripLedgerSettings
from tripledger.interface import create_application
from tripledger.offline import HttpTransport, OfflineActionQueue, TripView


def _user(client, name):
    response = client.post("/api/users", json={"name": name})
    assert response.status_code == 200
    return response.json()["id"]


def _trip(client, *names):
    users = [_user(client, name) for name in names]
    response = client.post("/api/trips", json={"name": "Weekend", "organizerId": users[0], "startDate": "2024-05-01"})
    trip_id = response.json()["id"]
    for user_id in users[1:]:
        assert client.post(f"/api/trips/{trip_id}/members", json={"userId": user_id}).status_code == 200
    return trip_id, users


def _expense(description, amount, payer, splits, when="2024-05-01"):
    return {
        "description": description,
        "amount": amount,
        "currency": "USD",
        "payerId": payer,
        "date": when,
        "splits": [{"userId": user_id, "amount": share} for user_id, share in splits],
    }


def test_healthz(client) -> None:
    assert client.get("/healthz").json() == {"status": "ok"}


def test_dinner_split_settles_with_one_payment(client) -> None:
    """Dinner 100 USD paid by A, split 50/50, settles as B pays A 50."""

    trip_id, (a, b) = _trip(client, "A", "B")

    response = client.post(f"/api/trips/{trip_id}/expenses", json=_expense("Dinner", 100, a, [(a, 50), (b, 50)]))
    assert response.status_code == 200
    assert sum(split["amount"] for split in response.json()["splits"]) == pytest.approx(100)

    balances = client.get(f"/api/trips/{trip_id}/balances").json()
    assert balances[a]["net"] == pytest.approx(50)
    assert balances[b]["net"] == pytest.approx(-50)

    plan = client.get(f"/api/trips/{trip_id}/settlement").json()
    assert plan == {"transactions": [{"from": b, "to": a, "amount": 50.0}], "totalTransactions": 1}


def test_two_expenses_settle_in_two_payments(client) -> None:
    trip_id, (a, b, c) = _trip(client, "A", "B", "C")
    client.post(f"/api/trips/{trip_id}/expenses", json=_expense("Groceries", 30, a, [(a, 10), (b, 10), (c, 10)]))
    client.post(f"/api/trips/{trip_id}/expenses", json=_expense("Snacks", 15, b, [(b, 7.5), (c, 7.5)], "2024-05-02"))

    balances = client.get(f"/api/trips/{trip_id}/balances").json()
    assert {user: entry["net"] for user, entry in balances.items()} == pytest.approx({a: 20, b: -2.5, c: -17.5})
    assert balances[a]["name"] == "A"

    plan = client.get(f"/api/trips/{trip_id}/settlement").json()
    assert plan["totalTransactions"] <= 2
    assert sum(item["amount"] for item in plan["transactions"]) == pytest.approx(20)
    assert plan["transactions"][0] == {"from": c, "to": a, "amount": 17.5}

    single = client.get(f"/api/trips/{trip_id}/balances/{c}").json()
    assert single == {"userId": c, "paid": 0.0, "owed": 17.5, "net": -17.5, "name": "C"}

    listed = client.get(f"/api/trips/{trip_id}/expenses").json()
    assert [expense["description"] for expense in listed] == ["Snacks", "Groceries"]


def test_recorded_payment_clears_settlement(client) -> None:
    trip_id, (a, b) = _trip(client, "A", "B")
    client.post(f"/api/trips/{trip_id}/expenses", json=_expense("Dinner", 100, a, [(a, 50), (b, 50)]))

    response = client.post(f"/api/trips/{trip_id}/settlements", json={"fromUserId": b, "toUserId": a, "amount": 50})

    assert response.status_code == 200
    assert client.get(f"/api/trips/{trip_id}/settlement").json() == {"transactions": [], "totalTransactions": 0}
    assert len(client.get(f"/api/trips/{trip_id}/settlements").json()) == 1


@pytest.mark.parametrize(
    "override",
    [
        {"amount": 0},
        {"splits": [{"userId": "x", "amount": 10}]},
        {"date": "not-a-date"},
    ],
)
def test_invalid_expenses_return_validation_error(client, override) -> None:
    trip_id, (a, b) = _trip(client, "A", "B")
    body = _expense("Dinner", 100, a, [(a, 50), (b, 50)]) | override

    response = client.post(f"/api/trips/{trip_id}/expenses", json=body)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"
    assert client.get(f"/api/trips/{trip_id}/expenses").json() == []


def test_split_mismatch_message_is_returned(client) -> None:
    trip_id, (a, b) = _trip(client, "A", "B")

    response = client.post(f"/api/trips/{trip_id}/expenses", json=_expense("Dinner", 100, a, [(a, 60), (b, 30)]))

    assert response.status_code == 400
    assert "Sum of splits" in response.json()["error"]["message"]


def test_unknown_ids_return_not_found(client) -> None:
    trip_id, (a,) = _trip(client, "A")

    assert client.get("/api/trips/missing/balances").status_code == 404
    assert client.get(f"/api/trips/{trip_id}/expenses/missing").json()["error"]["code"] == "not_found"
    assert client.get(f"/api/trips/{trip_id}/balances/ghost").status_code == 404


def test_idempotency_key_header_prevents_duplicates(client) -> None:
    trip_id, (a, b) = _trip(client, "A", "B")
    body = _expense("Dinner", 100, a, [(a, 50), (b, 50)])
    headers = {"Idempotency-Key": "retry-1"}

    first = client.post(f"/api/trips/{trip_id}/expenses", json=body, headers=headers).json()
    second = client.post(f"/api/trips/{trip_id}/expenses", json=body, headers=headers).json()

    assert first["id"] == second["id"]
    assert len(client.get(f"/api/trips/{trip_id}/expenses").json()) == 1


def test_websocket_subscriber_receives_expense_hint(client) -> None:
    trip_id, (a, b) = _trip(client, "A", "B")

    with client.websocket_connect("/ws") as socket:
        socket.send_json({"action": "join", "trip_id": trip_id})
        assert socket.receive_json() == {"event": "joined", "trip_id": trip_id}

        created = client.post(f"/api/trips/{trip_id}/expenses", json=_expense("Dinner", 100, a, [(a, 50), (b, 50)]))
        message = socket.receive_json()

        assert message["event"] == "expense-added"
        assert message["trip_id"] == trip_id
        assert message["payload"]["id"] == created.json()["id"]

        socket.send_json({"action": "leave", "trip_id": trip_id})
        assert socket.receive_json() == {"event": "left", "trip_id": trip_id}
    assert client.app.state.event_bus.subscriber_count(trip_id) == 0


def test_websocket_rejects_unknown_trip_and_bad_messages(client) -> None:
    with client.websocket_connect("/ws") as socket:
        socket.send_json({"action": "join", "trip_id": "missing"})
        reply = socket.receive_json()
        assert reply["event"] == "error"
        assert reply["error"]["code"] == "not_found"

        socket.send_text("not json")
        assert socket.receive_json()["error"]["code"] == "validation_error"

        socket.send_json({"action": "dance", "trip_id": "missing"})
        assert socket.receive_json()["event"] == "error"


def test_offline_queue_replays_through_api(client, tmp_path) -> None:
    """Queued expenses are replayed in order once, even if a drain repeats a send."""

    trip_id, (a, b) = _trip(client, "A", "B")
    queue = OfflineActionQueue(HttpTransport(client=client), tmp_path / "queue.json", online=False)
    target = f"/api/trips/{trip_id}/expenses"
    for description in ("Breakfast", "Lunch"):
        queue.submit("POST", target, _expense(description, 20, a, [(a, 10), (b, 10)]))
    queue.submit("POST", target, _expense("Broken", 20, a, [(a, 5), (b, 5)]))

    first = queue.pending[0]
    HttpTransport(client=client).send("POST", target, first.payload, idempotency_key=first.idempotency_key)
    report = queue.set_online(True)

    assert [action.payload["description"] for action in report.applied] == ["Breakfast", "Lunch"]
    assert report.failed[0][1].is_validation_error
    descriptions = sorted(expense["description"] for expense in client.get(target).json())
    assert descriptions == ["Breakfast", "Lunch"]

    view = TripView(HttpTransport(client=client), trip_id)
    view.refresh()
    assert view.balances[b]["net"] == pytest.approx(-20)
    assert view.settlement["transactions"] == [{"from": b, "to": a, "amount": 20.0}]


@pytest.mark.parametrize(
    "environment, expected_message",
    [
        ("production", "An unexpected error occurred"),
        ("development", "disk on fire"),
    ],
)
def test_unexpected_errors_render_internal_error(monkeypatch, environment, expected_message) -> None:
    """Storage failures become 500 internal_error and only leak their text outside production."""

    app = create_application(TripLedgerSettings(environment=environment, database_url="sqlite://"))

    def broken(trip_id):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(app.state.store, "list_expenses", broken)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        response = test_client.get("/api/trips/any/expenses")

    assert response.status_code == 500
    assert response.json() == {"error": {"code": "internal_error", "message": expected_message}}


def test_out_of_range_amount_is_a_validation_error(client) -> None:
    trip_id, (a,) = _trip(client, "A")

    response = client.post(f"/api/trips/{trip_id}/expenses", json=_expense("Yacht", "1e30", a, [(a, "1e30")]))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"
    assert client.get(f"/api/trips/{trip_id}/expenses").json() == []
