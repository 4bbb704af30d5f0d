from __future__ import annotations

import pytest

from banana_backend.config import Settings
from banana_backend.registry import Connection
from banana_backend.schemas import UserIdentity
from banana_backend.state import PresenceState

from tests.helpers import TEST_SECRET, FakeStore, FakeTransport


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://:memory:",
        jwt_secret=TEST_SECRET,
        store_timeout_seconds=0.2,
        log_level="DEBUG",
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def presence(settings: Settings, store: FakeStore) -> PresenceState:
    return PresenceState(settings, store=store)


@pytest.fixture
def connect(presence: PresenceState):
    """Open an authenticated connection for *identity* through the dispatcher."""

    def _connect(identity: UserIdentity) -> Connection:
        connection = presence.new_connection(FakeTransport())
        presence.dispatcher.connect(connection, identity)
        return connection

    return _connect


@pytest.fixture
def client(settings: Settings):
    from fastapi.testclient import TestClient

    from banana_backend.app import create_app

    with TestClient(create_app(settings)) as test_client:
        yield test_client
