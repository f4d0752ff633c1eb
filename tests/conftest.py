"""Mini README: Shared fixtures for the trip ledger tests.

Every test gets its own in-memory SQLite database, event bus, and stores.
``trip`` provides a trip whose members are Alice (organizer), Bob, and
Carol, exposed through a small namespace for readable assertions.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from tripledger.configuration import TripLedgerSettings
from tripledger.events import EventBus
from tripledger.interface import create_application
from tripledger.ledger import LedgerStore, TripDirectory
from tripledger.storage import LedgerDatabase


@pytest.fixture()
def database() -> LedgerDatabase:
    db = LedgerDatabase("sqlite://")
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture()
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def directory(database: LedgerDatabase, event_bus: EventBus) -> TripDirectory:
    return TripDirectory(database, event_bus)


@pytest.fixture()
def store(database: LedgerDatabase, event_bus: EventBus) -> LedgerStore:
    return LedgerStore(database, event_bus)


@pytest.fixture()
def trip(directory: TripDirectory) -> SimpleNamespace:
    alice = directory.create_user("Alice", "alice@example.com")
    bob = directory.create_user("Bob")
    carol = directory.create_user("Carol")
    created = directory.create_trip("Lisbon", alice.user_id, destination="Portugal")
    directory.add_member(created.trip_id, bob.user_id)
    directory.add_member(created.trip_id, carol.user_id)
    return SimpleNamespace(id=created.trip_id, a=alice.user_id, b=bob.user_id, c=carol.user_id)


@pytest.fixture()
def settings() -> TripLedgerSettings:
    return TripLedgerSettings(environment="testing", database_url="sqlite://")


@pytest.fixture()
def client(settings: TripLedgerSettings) -> TestClient:
    with TestClient(create_application(settings)) as test_client:
        yield test_client
