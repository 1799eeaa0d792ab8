"""Shared test fixtures for Flarecast tests."""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("USE_MOCK_DATA", "false")
    monkeypatch.setenv("MIN_ENTRIES_FOR_FORECAST", "5")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from flarecast.core.storage.models import LogEntry  # noqa: E402

TEST_USER = "user-123"
OTHER_USER = "user-456"

# A fixed Saturday noon, UTC.
FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


_counter = 0


def make_entry(
    timestamp: datetime,
    entry_type: str = "wellness",
    *,
    user_id: str = TEST_USER,
    severity: str | None = None,
    triggers: tuple[str, ...] = (),
    symptoms: tuple[str, ...] = (),
    note: str = "",
    physiological: dict[str, Any] | None = None,
    environmental: dict[str, Any] | None = None,
) -> LogEntry:
    """Create a journal entry with sensible defaults."""
    global _counter
    _counter += 1
    return LogEntry(
        id=f"entry-{_counter}",
        user_id=user_id,
        entry_type=entry_type,  # type: ignore[arg-type]
        timestamp=timestamp,
        severity=severity,  # type: ignore[arg-type]
        symptoms=symptoms,
        triggers=triggers,
        note=note,
        physiological_data=physiological or {},
        environmental_data=environmental or {},
    )


def sleep_history(
    days: int = 30,
    *,
    now: datetime = FIXED_NOW,
    low: float = 7.5,
    high: float = 8.5,
    user_id: str = TEST_USER,
) -> list[LogEntry]:
    """Daily morning check-ins alternating between ``low`` and ``high`` hours of sleep."""
    return [
        make_entry(
            now - timedelta(days=offset, hours=4),
            user_id=user_id,
            physiological={"sleep": {"duration": low if offset % 2 else high}},
        )
        for offset in range(days, 0, -1)
    ]


def dairy_history(*, now: datetime = FIXED_NOW, user_id: str = TEST_USER) -> list[LogEntry]:
    """A month of check-ins where every "ate dairy" is followed by a flare 1.5 days later.

    The trigger was logged again within the last day, so it is currently active.
    """
    day = timedelta(days=1)
    entries = [make_entry(now - offset * day, user_id=user_id) for offset in range(30, 0, -1)]
    for offset in (25, 20, 15, 10, 5):
        eaten = now - offset * day + timedelta(hours=2)
        entries.append(make_entry(
            eaten, "note", user_id=user_id, triggers=("ate dairy",), note="ate dairy"
        ))
        entries.append(make_entry(
            eaten + timedelta(days=1, hours=12), "flare", user_id=user_id, severity="moderate"
        ))
    entries.append(make_entry(
        now - timedelta(hours=20), "note", user_id=user_id, triggers=("Ate Dairy",)
    ))
    entries.sort(key=lambda e: e.timestamp)
    return entries


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def journal_db():
    """Create an in-memory JournalDatabase for testing."""
    from flarecast.core.storage.database import JournalDatabase

    db = JournalDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from flarecast.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def journal_repository(journal_db, field_encryptor):
    """Create a JournalRepository backed by in-memory SQLite."""
    from flarecast.core.storage.repository import JournalRepository

    return JournalRepository(journal_db, field_encryptor)


@pytest.fixture
def audit_logger(journal_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from flarecast.core.audit.logger import AuditLogger

    return AuditLogger(journal_db)


# ---------------------------------------------------------------------------
# Authentication fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def request_headers() -> dict[str, str]:
    """Mutable stand-in for the headers of the in-flight MCP request."""
    return {}


@pytest.fixture
def authenticator(journal_repository, request_headers):
    """TokenAuthenticator reading the ``request_headers`` fixture."""
    from flarecast.core.auth.tokens import TokenAuthenticator

    return TokenAuthenticator(journal_repository, header_source=lambda: request_headers)


@pytest.fixture
def bearer(authenticator, request_headers) -> str:
    """Issue a token for TEST_USER and attach it to the request headers."""
    token = authenticator.issue_token(TEST_USER)
    request_headers["authorization"] = f"Bearer {token}"
    return token


# ---------------------------------------------------------------------------
# MCP server fixtures
# ---------------------------------------------------------------------------

def run_async(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def call_tool(server, name: str, arguments: dict[str, Any] | None = None) -> Any:
    """Call one tool over an in-memory MCP client and decode its JSON reply."""
    from fastmcp import Client

    async def _call():
        async with Client(server) as client:
            return await client.call_tool(name, arguments or {})

    result = run_async(_call())
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


@pytest.fixture
def flare_server(journal_repository, request_headers):
    """Flarecast server over the in-memory journal, reading ``request_headers``."""
    from flarecast.core.config.settings import Settings
    from flarecast.core.server.app import create_app

    return create_app(
        settings=Settings(),
        repository_override=journal_repository,
        header_source=lambda: request_headers,
    )
