"""Pytest configuration for test isolation.

Every test gets its own in-memory SQLite database. The engine uses a
``StaticPool`` so all sessions share the single connection (in-memory SQLite
databases are per-connection), and it is installed as the shared engine via
``db.client.bind_engine`` so the API functions' ``session_scope`` calls reach
it without a ``DATABASE_URL``.

Environment variables that would change behavior (a real database URL, a real
Splitwise key, custom limits) are removed so tests stay hermetic.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from db import Base
from db.client import bind_engine, reset_engine
from finance_import.config import Settings

_ENV_VARS = (
    "DATABASE_URL",
    "SPLITWISE_API_KEY",
    "SPLITWISE_API_BASE_URL",
    "FINANCE_IMPORT_MAX_ROWS",
    "FINANCE_IMPORT_MAX_FILE_BYTES",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def engine() -> Iterator[Engine]:
    eng = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    Base.metadata.create_all(eng)
    bind_engine(eng)
    try:
        yield eng
    finally:
        reset_engine()


@pytest.fixture
def settings() -> Settings:
    """Default limits, no database URL (the bound engine is used)."""

    return Settings()
