"""SQLite database management for the flare journal.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 3

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per user-authored journal record
CREATE TABLE IF NOT EXISTS log_entries (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    entry_type          TEXT NOT NULL,
    timestamp           TEXT NOT NULL,
    severity            TEXT,

    -- Encrypted JSON blobs (free text and reading bags)
    symptoms_enc        TEXT,
    triggers_enc        TEXT,
    medications_enc     TEXT,
    note_enc            TEXT,
    physiological_enc   TEXT,
    environmental_enc   TEXT,

    created_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Learned trigger -> outcome associations (written by the discovery process)
CREATE TABLE IF NOT EXISTS correlations (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    trigger_type        TEXT NOT NULL,
    trigger_value       TEXT NOT NULL,
    outcome_type        TEXT NOT NULL,
    outcome_value       TEXT NOT NULL,
    occurrence_count    INTEGER NOT NULL DEFAULT 0,
    confidence          REAL NOT NULL DEFAULT 0,
    avg_delay_minutes   REAL,
    last_occurred       TEXT,
    created_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

-- One row per user
CREATE TABLE IF NOT EXISTS profiles (
    user_id             TEXT PRIMARY KEY,
    conditions_enc      TEXT,
    known_symptoms_enc  TEXT,
    known_triggers_enc  TEXT,
    timezone            TEXT NOT NULL DEFAULT 'UTC',
    demographics_enc    TEXT,
    updated_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS medication_logs (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    medication_name     TEXT NOT NULL,
    dosage_enc          TEXT,
    taken_at            TEXT NOT NULL,
    created_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Indexes for the per-user forecast fetches
CREATE INDEX IF NOT EXISTS idx_entries_user_ts     ON log_entries(user_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_correlations_user   ON correlations(user_id, confidence);
CREATE INDEX IF NOT EXISTS idx_medlogs_user_ts     ON medication_logs(user_id, taken_at);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (PHI-free access logging)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    tool_input_hash TEXT,
    user_ref        TEXT,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_user      ON audit_log(user_ref);
"""

# ---------------------------------------------------------------------------
# V3: Bearer credentials
# ---------------------------------------------------------------------------

_SCHEMA_V3 = """
CREATE TABLE IF NOT EXISTS api_tokens (
    token_hash  TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    revoked     INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_tokens_user ON api_tokens(user_id);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class JournalDatabase:
    """SQLite database manager for the flare journal.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = JournalDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return  # Already initialized

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file))
        else:
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Journal database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        # V1: Core tables (always applied; CREATE IF NOT EXISTS is idempotent)
        conn.executescript(_SCHEMA_V1)

        current_version = self.get_schema_version()

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < 3:
            conn.executescript(_SCHEMA_V3)
            logger.info("Applied schema migration V3: api_tokens table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Journal database closed")

    def __enter__(self) -> JournalDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
