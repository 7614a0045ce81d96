from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from messagely.access import AccessGate
from messagely.config import Settings
from messagely.credentials import CredentialStore
from messagely.database import Database
from messagely.messages import MessageLedger
from messagely.service import create_app

TEST_ROUNDS = 1_000


class TickingClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(seconds=1)
        return value


@pytest.fixture()
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "messagely.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def store(database: Database, clock: TickingClock) -> CredentialStore:
    return CredentialStore(database, password_rounds=TEST_ROUNDS, clock=clock)


@pytest.fixture()
def ledger(database: Database, clock: TickingClock) -> MessageLedger:
    return MessageLedger(database, clock=clock)


@pytest.fixture()
def gate(ledger: MessageLedger) -> AccessGate:
    return AccessGate(ledger)


@pytest.fixture()
def people(store: CredentialStore) -> None:
    store.register("alice", "pw1", "Alice", "Anderson", "555-0101")
    store.register("bob", "pw2", "Bob", "Brown", "555-0102")
    store.register("carol", "pw3", "Carol", "Clark", "555-0103")


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        secret_key="tests-secret-key",
        database_path=tmp_path / "api.sqlite3",
        password_rounds=TEST_ROUNDS,
    )


@pytest.fixture()
def client(settings: Settings):
    app = create_app(settings=settings)
    with TestClient(app) as test_client:
        yield test_client
