"""
Pytest fixtures for the GigFlow core tests.

Everything runs against InMemoryEntityStore with fake real-time connections,
so no network or database is needed.
"""

import asyncio
from typing import Any, List, Optional

import pytest

from gigflow import AccountService, GigFlowConfig, MarketplaceService, MessagingService, NotificationBus
from gigflow.models import Account, Gig, new_id
from gigflow.storage import InMemoryEntityStore


class FakeConnection:
    """Records what the bus sends. Can be told to fail or hang."""

    def __init__(self, fail: bool = False, hang: bool = False):
        self.sent: List[dict] = []
        self.fail = fail
        self.hang = hang
        self.closed_with: Optional[int] = None

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket is gone")
        if self.hang:
            await asyncio.sleep(60)
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def events(self, name: Optional[str] = None) -> List[dict]:
        return [m for m in self.sent if name is None or m["event"] == name]


@pytest.fixture
def config():
    """Test configuration with a cheap bcrypt cost and short send timeout."""
    return GigFlowConfig(notify_timeout_seconds=0.2, password_hash_rounds=4)


@pytest.fixture
def store():
    """Create in-memory store for testing."""
    return InMemoryEntityStore()


@pytest.fixture
def bus(config):
    return NotificationBus(send_timeout=config.notify_timeout_seconds)


@pytest.fixture
def marketplace(store, bus, config):
    return MarketplaceService(store, bus, config)


@pytest.fixture
def messaging(store, bus, config):
    return MessagingService(store, bus, config)


@pytest.fixture
def accounts(store, config):
    return AccountService(store, config)


@pytest.fixture
def make_account(store):
    """Factory that stores an account directly, skipping password hashing."""

    def _make(name: str = "Test User", role: str = "both", email: Optional[str] = None) -> Account:
        account_id = new_id()
        return store.create_account(
            Account(
                id=account_id,
                name=name,
                email=email or f"{account_id[:8]}@example.com",
                role=role,
            )
        )

    return _make


@pytest.fixture
def client_account(make_account):
    return make_account("Carol Client", role="client")


@pytest.fixture
def freelancer(make_account):
    return make_account("Fred Freelancer", role="freelancer")


@pytest.fixture
def open_gig(store, client_account):
    """An open gig owned by ``client_account``."""
    return store.save_gig(
        Gig(
            id=new_id(),
            owner_id=client_account.id,
            title="Build a landing page",
            description="Responsive landing page for a small bakery, three sections.",
            budget=500,
            category="Web",
        )
    )


@pytest.fixture
def connect(bus):
    """Factory: register a FakeConnection for an account on the bus."""

    def _connect(account_id: Optional[str] = None, **kwargs) -> FakeConnection:
        connection = FakeConnection(**kwargs)
        if account_id is not None:
            bus.register_connection(account_id, connection)
        return connection

    return _connect
