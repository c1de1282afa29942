"""
tests/conftest.py -- Shared test fixtures for AccessAdmin.

This module provides:
  - FixedClock: a settable clock injected into TokenService/AccessController
  - RecordingNotifier: captures recovery links instead of delivering them
  - store / hasher / tokens / controller: unit-level fixtures on in-memory SQLite
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: api_client uses a named shared-memory SQLite URI (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from auth.controller import AccessController
from auth.hashing import CredentialHasher
from auth.store import SqlUserStore
from auth.tokens import TokenService

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
# Minimum bcrypt cost keeps the suite fast; production uses Settings.bcrypt_rounds.
TEST_ROUNDS = 4


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send_recovery_link(self, email: str, token: str) -> None:
        self.sent.append((email, token))


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture(scope="session")
def hasher() -> CredentialHasher:
    return CredentialHasher(rounds=TEST_ROUNDS)


@pytest.fixture
def tokens(clock: FixedClock) -> TokenService:
    return TokenService(TEST_SECRET, clock=clock)


@pytest.fixture
def store() -> Generator[SqlUserStore, None, None]:
    s = SqlUserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def controller(store, hasher, tokens, notifier, clock) -> AccessController:
    return AccessController(store, hasher, tokens, notifier=notifier, clock=clock)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module
# ---------------------------------------------------------------------------


def _patch_lifespan(store: SqlUserStore, controller: AccessController):
    """Return a lifespan that wires test objects into app.state instead of real ones."""
    from core.config import get_settings

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = store
        app.state.controller = controller
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, AccessController, RecordingNotifier], None, None]:
    """Yield (client, controller, notifier) for API integration tests.

    The rate limiter is disabled so modules can log in more often than the
    production per-IP limit allows.
    """
    from api.limiter import limiter
    from api.main import app

    db_name = request.module.__name__.rsplit(".", 1)[-1]
    store = SqlUserStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    notifier = RecordingNotifier()
    controller = AccessController(
        store,
        CredentialHasher(rounds=TEST_ROUNDS),
        TokenService(TEST_SECRET),
        notifier=notifier,
    )

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(store, controller)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, controller, notifier

    app.router.lifespan_context = original_lifespan
    limiter.enabled = True
    store.close()
