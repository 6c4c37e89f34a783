"""
tests/conftest.py -- Shared test fixtures for AuthGate.

This module provides:
  - make_test_store(): UserStore on a fresh SQLite file under tmp_path
  - FakeClock / CountingHasher: deterministic time and hash-call counting
  - store / hasher / clock / service: unit-test fixtures for AuthService
  - api_client: TestClient over the real app with a patched lifespan

Design: every test gets its own SQLite file in pytest's tmp_path. File
databases give each unit of work its own pooled connection, which the
service relies on when several operations run concurrently; UserStore
refuses in-memory URLs for that reason.

Environment variables must be set before any api/auth/core import:
  DEBUG=true            -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4       -- bcrypt's minimum cost keeps the suite fast
  LOGIN_RATE_LIMIT      -- high enough that lockout tests never hit 429
  ALLOWED_HOSTS         -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

# CRITICAL: Set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app, configure_state
from auth.passwords import BcryptHasher
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_test_store(directory: Path, prefix: str = "auth") -> UserStore:
    """Create a UserStore on a fresh SQLite file inside directory."""
    return UserStore(db_url=f"sqlite:///{directory / (prefix + '.db')}")


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class CountingHasher(BcryptHasher):
    """BcryptHasher at minimum cost that records how often verify() ran."""

    def __init__(self) -> None:
        super().__init__(rounds=4)
        self.verify_calls = 0

    def verify(self, plain: str, hashed: str) -> bool:
        self.verify_calls += 1
        return super().verify(plain, hashed)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path: Path) -> Generator[UserStore, None, None]:
    s = make_test_store(tmp_path)
    yield s
    s.close()


@pytest.fixture
def hasher() -> CountingHasher:
    return CountingHasher()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store: UserStore, hasher: CountingHasher, clock: FakeClock) -> AuthService:
    """AuthService with the default policy (5 attempts, 15 minutes) and a fake clock."""
    return AuthService(store, hasher=hasher, clock=clock)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore):
    """Return a lifespan that wires the given test store into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        configure_state(app, get_settings(), user_store)
        yield

    return test_lifespan


@pytest.fixture
def api_client(tmp_path: Path) -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, user_store) over the real app with an isolated database.

    Function-scoped: lockout tests mutate account state, so every test gets
    its own database and its own service instance.
    """
    user_store = make_test_store(tmp_path, "api")
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()
