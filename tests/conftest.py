"""
tests/conftest.py -- Shared test fixtures for the portal test suite.

This module provides:
  - clock: a FakeClock (tests/helpers.py) injected into LockoutTracker
  - _make_test_stores(): isolated in-memory DB for identities + revocations
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - portal: a PortalHarness (TestClient + the live components) per test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs `def` route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG must be set before any app import so get_settings() auto-generates
JWT_SECRET instead of raising. BCRYPT_ROUNDS=4 keeps hashing fast.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, install_auth_state
from auth.lockout import LockoutTracker
from auth.revocation import RevocationLedger
from auth.store import IdentityStore
from auth.tokens import TokenAuthority
from core.config import get_settings
from tests.helpers import TEST_SECRET, FakeClock, PortalHarness

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores() -> tuple[IdentityStore, RevocationLedger]:
    """Create an isolated named shared-memory SQLite DB for one test."""
    url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    store = IdentityStore(db_url=url)
    ledger = RevocationLedger(engine=store.engine)
    return store, ledger


def _patch_lifespan(
    store: IdentityStore,
    ledger: RevocationLedger,
    tracker: LockoutTracker,
    authority: TokenAuthority,
):
    """Return an async context manager that replaces the real lifespan.

    The maintenance task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        install_auth_state(app, get_settings(), store, ledger, tracker, authority)
        app.state.maintenance_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.maintenance_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def portal(clock: FakeClock) -> Generator[PortalHarness, None, None]:
    """Yield a PortalHarness wired to a fresh DB and a fresh lockout tracker.

    The tracker runs on the fake clock so lockout expiry can be stepped over.
    The token authority uses real time so issued tokens stay valid.
    """
    store, ledger = _make_test_stores()
    tracker = LockoutTracker(threshold=5, lockout_seconds=200, clock=clock)
    authority = TokenAuthority(TEST_SECRET)

    app.router.lifespan_context = _patch_lifespan(store, ledger, tracker, authority)
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield PortalHarness(client, store, ledger, tracker, authority, clock)

    store.close()
