"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of hlt.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hlt.database.models import Base  # noqa: E402
from hlt.database.store import KeyValueStore  # noqa: E402
from hlt.services import account_service  # noqa: E402
from hlt.services.ledger_service import PointLedger  # noqa: E402


class FakeClock:
    """Controllable UTC clock.  Call it to read, ``advance`` to move it."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


# Wednesday: day, week, month and year windows all differ from the next
# Monday / first of month.
START = datetime(2026, 10, 14, 12, 0, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all hlt tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` behind ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def store(db_engine: Engine) -> KeyValueStore:
    return KeyValueStore(db_engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def ledger(store: KeyValueStore, clock: FakeClock) -> PointLedger:
    return PointLedger(store, clock=clock)


@pytest.fixture
def make_user(ledger: PointLedger):
    """Factory: register an account and return its id."""

    def _make(username: str, user_id: str | None = None) -> str:
        uid = user_id or f"uid-{username}"
        account_service.register(ledger, uid, username)
        return uid

    return _make


def make_token(sub: str = "uid-alice", **claims) -> str:
    """Create a bearer JWT for *sub*.  Usable from any test module."""
    import jwt

    from hlt.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub, **claims}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth(sub: str) -> dict:
    return {"Authorization": f"Bearer {make_token(sub)}"}


@pytest.fixture
def client(ledger: PointLedger):
    """FastAPI TestClient wired to the in-memory ledger.

    The lifespan is not entered, so no DATABASE_URL is needed.
    """
    from fastapi.testclient import TestClient

    from hlt.api.deps import get_config, get_ledger
    from hlt.api.main import app
    from hlt.config import HLTConfig

    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_config] = lambda: HLTConfig(app_name="test", api_port=8000)
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
