"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of vigil.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from vigil.config import VigilConfig  # noqa: E402
from vigil.database.models import Base, CommandHistory  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Vigil tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine, one connection per thread.

    Used where several ``run_db`` reads are gathered concurrently, which a
    single shared in-memory connection cannot serve.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'vigil.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def config() -> VigilConfig:
    return VigilConfig()


def seed_commands(
    engine: Engine,
    user_id: int,
    gaps: list[float],
    *,
    guild_id: str = "100",
    command_name: str = "work",
    end: datetime | None = None,
) -> list[datetime]:
    """Insert ``len(gaps) + 1`` commands spaced by *gaps* (seconds), ending at *end*.

    Returns the inserted timestamps oldest-first.
    """
    end = end or datetime.now(UTC) - timedelta(minutes=1)
    stamps = [end]
    for gap in reversed(gaps):
        stamps.append(stamps[-1] - timedelta(seconds=gap))
    stamps.reverse()
    with Session(engine) as session:
        for ts in stamps:
            session.add(CommandHistory(
                user_id=user_id,
                guild_id=guild_id,
                command_name=command_name,
                executed_at=ts,
                success=True,
                metadata_={},
            ))
        session.commit()
    return stamps


def make_token(sub: str = "99999", username: str = "FixtureBot", is_admin: bool = False) -> str:
    """Sign a bearer token with the test secret."""
    import jwt

    from vigil.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )
