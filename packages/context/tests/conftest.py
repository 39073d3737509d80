"""
Shared fixtures for context tests.

The membership endpoint is an in-process FastAPI app reached through
httpx.ASGITransport; preferences live in SQLite files under tmp_path.
"""

import httpx
import pytest

from hearth_context.invalidation import GroupScopedCache, InvalidationRegistry
from hearth_context.manager import ActiveContextManager
from hearth_context.membership_store import MembershipStore
from hearth_context.metrics import MetricsCollector
from hearth_context.preferences import PreferenceStore
from hearth_context.session import Session

from mock_membership_api import (
    BASE_URL,
    MEMBERSHIPS_PATH,
    MembershipServerState,
    create_membership_app,
)


@pytest.fixture
def server_state():
    return MembershipServerState()


@pytest.fixture
def transport(server_state):
    return httpx.ASGITransport(app=create_membership_app(server_state))


@pytest.fixture
def alice():
    return Session(user_id="alice", token="tok-alice")


@pytest.fixture
def bob():
    return Session(user_id="bob", token="tok-bob")


@pytest.fixture
async def store(transport):
    s = MembershipStore(BASE_URL, MEMBERSHIPS_PATH, transport=transport)
    await s.open()
    yield s
    await s.close()


@pytest.fixture
async def preferences(tmp_path):
    p = PreferenceStore(str(tmp_path / "prefs.db"))
    await p.open()
    yield p
    await p.close()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def registry(metrics):
    return InvalidationRegistry(metrics)


@pytest.fixture
async def manager(transport, tmp_path, metrics, registry):
    m = ActiveContextManager(
        store=MembershipStore(BASE_URL, MEMBERSHIPS_PATH, transport=transport),
        preferences=PreferenceStore(str(tmp_path / "context_prefs.db")),
        invalidation=registry,
        metrics=metrics,
        cache=GroupScopedCache(),
    )
    await m.open()
    yield m
    await m.close()
