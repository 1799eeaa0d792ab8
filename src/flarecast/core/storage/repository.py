"""Journal repository: per-user CRUD over the encrypted journal.

The repository mediates between the record dataclasses in
:mod:`flarecast.core.storage.models` and the SQLite database, using
FieldEncryptor for free text and reading bags. Every read and write is
scoped to one user id.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from flarecast.core.storage.database import JournalDatabase
from flarecast.core.storage.encryption import FieldEncryptor
from flarecast.core.storage.models import (
    ENTRY_TYPES,
    SEVERITIES,
    ApiToken,
    CorrelationRecord,
    LogEntry,
    MedicationLogRecord,
    UserProfile,
)

logger = logging.getLogger(__name__)

# Tables holding a user's journal data (api_tokens and audit_log excluded).
USER_DATA_TABLES = ("log_entries", "correlations", "medication_logs", "profiles")


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def to_iso(ts: datetime) -> str:
    """Canonical UTC ISO 8601 form used for every stored timestamp."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class JournalRepository:
    """CRUD repository for journal entries, correlations, profiles and doses.

    Usage::

        db = JournalDatabase(":memory:")
        db.initialize()
        encryptor = FieldEncryptor(key="...")
        repo = JournalRepository(db, encryptor)

        repo.save_entry(entry)
        history = repo.get_entries(user_id, limit=1000)
    """

    def __init__(self, database: JournalDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @property
    def database(self) -> JournalDatabase:
        return self._db

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # ------------------------------------------------------------------
    # Log entries
    # ------------------------------------------------------------------

    def save_entry(self, entry: LogEntry) -> str:
        """Persist a journal entry with encrypted free text and reading bags.

        Args:
            entry: The entry to save. If ``entry.id`` is empty, a UUID is
                generated.

        Returns:
            The entry ID.

        Raises:
            RepositoryError: If the entry type or severity is not recognized.
        """
        if entry.entry_type not in ENTRY_TYPES:
            raise RepositoryError(
                f"Invalid entry type: {entry.entry_type!r}. Valid: {ENTRY_TYPES}"
            )
        if entry.severity is not None and entry.severity not in SEVERITIES:
            raise RepositoryError(
                f"Invalid severity: {entry.severity!r}. Valid: {SEVERITIES}"
            )

        eid = entry.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO log_entries (
                id, user_id, entry_type, timestamp, severity,
                symptoms_enc, triggers_enc, medications_enc, note_enc,
                physiological_enc, environmental_enc
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                eid,
                entry.user_id,
                entry.entry_type,
                to_iso(entry.timestamp),
                entry.severity,
                self._enc.encrypt(list(entry.symptoms)),
                self._enc.encrypt(list(entry.triggers)),
                self._enc.encrypt(list(entry.medications)),
                self._enc.encrypt(entry.note) if entry.note else "",
                self._enc.encrypt(entry.physiological_data or {}),
                self._enc.encrypt(entry.environmental_data or {}),
            ),
        )
        conn.commit()
        logger.info("Saved %s entry %s", entry.entry_type, eid)
        return eid

    def get_entries(self, user_id: str, *, limit: int = 1000) -> list[LogEntry]:
        """Return a user's most recent ``limit`` entries, oldest first."""
        rows = self._db.connection.execute(
            """SELECT * FROM log_entries WHERE user_id = ?
               ORDER BY timestamp DESC LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [self._row_to_entry(row) for row in reversed(rows)]

    def count_entries(self, user_id: str) -> int:
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM log_entries WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row[0]

    def purge_entries_before(self, user_id: str, before: datetime) -> int:
        """Delete a user's entries and medication logs older than ``before``.

        Returns:
            Number of journal entries deleted.
        """
        cutoff = to_iso(before)
        conn = self._db.connection
        cursor = conn.execute(
            "DELETE FROM log_entries WHERE user_id = ? AND timestamp < ?",
            (user_id, cutoff),
        )
        deleted = cursor.rowcount
        conn.execute(
            "DELETE FROM medication_logs WHERE user_id = ? AND taken_at < ?",
            (user_id, cutoff),
        )
        conn.commit()
        logger.info("Purged %d entries older than %s", deleted, cutoff)
        return deleted

    def purge_entries_before_days(self, user_id: str, days: int) -> int:
        """Delete a user's entries older than N days.

        Convenience wrapper around :meth:`purge_entries_before`.
        """
        if days < 1:
            raise RepositoryError("days must be at least 1")
        return self.purge_entries_before(
            user_id, datetime.now(timezone.utc) - timedelta(days=days)
        )

    # ------------------------------------------------------------------
    # Correlations
    # ------------------------------------------------------------------

    def save_correlation(self, record: CorrelationRecord) -> str:
        """Persist a learned trigger -> outcome correlation."""
        if not 0 <= record.confidence <= 1:
            raise RepositoryError("confidence must be between 0 and 1")
        cid = record.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO correlations (
                id, user_id, trigger_type, trigger_value, outcome_type, outcome_value,
                occurrence_count, confidence, avg_delay_minutes, last_occurred
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                cid,
                record.user_id,
                record.trigger_type,
                record.trigger_value,
                record.outcome_type,
                record.outcome_value,
                record.occurrence_count,
                record.confidence,
                record.avg_delay_minutes,
                to_iso(record.last_occurred) if record.last_occurred else None,
            ),
        )
        conn.commit()
        return cid

    def get_correlations(self, user_id: str) -> list[CorrelationRecord]:
        """Return a user's learned correlations, strongest first."""
        rows = self._db.connection.execute(
            """SELECT * FROM correlations WHERE user_id = ?
               ORDER BY confidence DESC, created_at ASC""",
            (user_id,),
        ).fetchall()
        return [
            CorrelationRecord(
                id=row["id"],
                user_id=row["user_id"],
                trigger_type=row["trigger_type"],
                trigger_value=row["trigger_value"],
                outcome_type=row["outcome_type"],
                outcome_value=row["outcome_value"],
                occurrence_count=row["occurrence_count"],
                confidence=row["confidence"],
                avg_delay_minutes=row["avg_delay_minutes"],
                last_occurred=from_iso(row["last_occurred"]) if row["last_occurred"] else None,
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def upsert_profile(self, profile: UserProfile) -> None:
        """Insert or replace a user's profile."""
        conn = self._db.connection
        conn.execute(
            """INSERT INTO profiles (
                user_id, conditions_enc, known_symptoms_enc, known_triggers_enc,
                timezone, demographics_enc, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                conditions_enc = excluded.conditions_enc,
                known_symptoms_enc = excluded.known_symptoms_enc,
                known_triggers_enc = excluded.known_triggers_enc,
                timezone = excluded.timezone,
                demographics_enc = excluded.demographics_enc,
                updated_at = excluded.updated_at""",
            (
                profile.user_id,
                self._enc.encrypt(list(profile.conditions)),
                self._enc.encrypt(list(profile.known_symptoms)),
                self._enc.encrypt(list(profile.known_triggers)),
                profile.timezone or "UTC",
                self._enc.encrypt({
                    "biological_sex": profile.biological_sex,
                    "date_of_birth": profile.date_of_birth,
                }),
                to_iso(datetime.now(timezone.utc)),
            ),
        )
        conn.commit()

    def get_profile(self, user_id: str) -> UserProfile | None:
        row = self._db.connection.execute(
            "SELECT * FROM profiles WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        demographics = self._enc.decrypt(row["demographics_enc"] or "") or {}
        return UserProfile(
            user_id=row["user_id"],
            conditions=tuple(self._enc.decrypt(row["conditions_enc"] or "") or ()),
            known_symptoms=tuple(self._enc.decrypt(row["known_symptoms_enc"] or "") or ()),
            known_triggers=tuple(self._enc.decrypt(row["known_triggers_enc"] or "") or ()),
            timezone=row["timezone"] or "UTC",
            biological_sex=demographics.get("biological_sex"),
            date_of_birth=demographics.get("date_of_birth"),
        )

    # ------------------------------------------------------------------
    # Medication logs
    # ------------------------------------------------------------------

    def save_medication_log(self, record: MedicationLogRecord) -> str:
        mid = record.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO medication_logs (id, user_id, medication_name, dosage_enc, taken_at)
               VALUES (?, ?, ?, ?, ?)""",
            (
                mid,
                record.user_id,
                record.medication_name,
                self._enc.encrypt(record.dosage) if record.dosage else "",
                to_iso(record.taken_at),
            ),
        )
        conn.commit()
        return mid

    def get_medication_logs(
        self, user_id: str, *, limit: int = 200
    ) -> list[MedicationLogRecord]:
        """Return a user's most recent medication logs, newest first."""
        rows = self._db.connection.execute(
            """SELECT * FROM medication_logs WHERE user_id = ?
               ORDER BY taken_at DESC LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [
            MedicationLogRecord(
                id=row["id"],
                user_id=row["user_id"],
                medication_name=row["medication_name"],
                taken_at=from_iso(row["taken_at"]),
                dosage=self._enc.decrypt(row["dosage_enc"] or "") or "",
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Deletion (right to deletion)
    # ------------------------------------------------------------------

    def delete_user_data(self, user_id: str) -> dict[str, int]:
        """Delete every journal record a user owns.

        Credentials are left in place so the user can keep using the
        service with an empty journal.

        Returns:
            Rows deleted per table.
        """
        conn = self._db.connection
        counts: dict[str, int] = {}
        for table in USER_DATA_TABLES:
            # Table name is safe: iterated from a fixed tuple
            cursor = conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
            counts[table] = cursor.rowcount
        conn.commit()
        logger.warning("Deleted all journal data for one user: %s", counts)
        return counts

    # ------------------------------------------------------------------
    # Bearer credentials
    # ------------------------------------------------------------------

    def save_token(self, token: ApiToken) -> None:
        conn = self._db.connection
        conn.execute(
            "INSERT INTO api_tokens (token_hash, user_id, created_at, revoked) VALUES (?, ?, ?, ?)",
            (
                token.token_hash,
                token.user_id,
                token.created_at or to_iso(datetime.now(timezone.utc)),
                int(token.revoked),
            ),
        )
        conn.commit()

    def get_token(self, token_hash: str) -> ApiToken | None:
        row = self._db.connection.execute(
            "SELECT * FROM api_tokens WHERE token_hash = ?", (token_hash,)
        ).fetchone()
        if row is None:
            return None
        return ApiToken(
            token_hash=row["token_hash"],
            user_id=row["user_id"],
            created_at=row["created_at"],
            revoked=bool(row["revoked"]),
        )

    def revoke_tokens(self, user_id: str) -> int:
        """Revoke every active credential for a user."""
        conn = self._db.connection
        cursor = conn.execute(
            "UPDATE api_tokens SET revoked = 1 WHERE user_id = ? AND revoked = 0",
            (user_id,),
        )
        conn.commit()
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_entry(self, row: Any) -> LogEntry:
        """Convert a database row to a LogEntry with decrypted fields."""
        return LogEntry(
            id=row["id"],
            user_id=row["user_id"],
            entry_type=row["entry_type"],
            timestamp=from_iso(row["timestamp"]),
            severity=row["severity"],
            symptoms=tuple(self._enc.decrypt(row["symptoms_enc"] or "") or ()),
            triggers=tuple(self._enc.decrypt(row["triggers_enc"] or "") or ()),
            medications=tuple(self._enc.decrypt(row["medications_enc"] or "") or ()),
            note=self._enc.decrypt(row["note_enc"] or "") or "",
            physiological_data=self._enc.decrypt(row["physiological_enc"] or "") or {},
            environmental_data=self._enc.decrypt(row["environmental_enc"] or "") or {},
        )
