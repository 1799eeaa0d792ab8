"""MCP tools for writing to the flare journal.

Entries, medication doses, profile settings and learned correlations feed
the forecast. Every tool acts on the caller resolved from the bearer
credential; data is persisted to the encrypted journal database.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from flarecast.core.audit.logger import AuditLogger
    from flarecast.core.auth.tokens import TokenAuthenticator
    from flarecast.core.storage.repository import JournalRepository

from flarecast.core.auth.tokens import UnauthenticatedError
from flarecast.core.storage.models import (
    CorrelationRecord,
    LogEntry,
    MedicationLogRecord,
    UserProfile,
)
from flarecast.core.storage.repository import RepositoryError
from flarecast.domains.flare.tools.forecast_tools import (
    UNAUTHORIZED_MESSAGE,
    error_payload,
)

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; empty means now, naive means UTC."""
    if not value:
        return datetime.now(timezone.utc)
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _tags(values: list[str] | None) -> tuple[str, ...]:
    return tuple(v.strip() for v in values or () if v and v.strip())


def register_journal_tools(
    mcp: FastMCP,
    repository: JournalRepository,
    authenticator: TokenAuthenticator,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register journal write tools on the MCP server."""

    def _audit(tool_name: str, user_id: str | None, start_time: float, error_type: str | None) -> None:
        if audit_logger is None:
            return
        audit_logger.log_tool_call(
            tool_name=tool_name,
            user_id=user_id,
            duration_ms=(time.monotonic() - start_time) * 1000,
            status="failure" if error_type else "success",
            error_type=error_type,
        )

    @mcp.tool
    async def log_entry(
        ctx: Context,
        entry_type: str,
        timestamp: str = "",
        severity: str | None = None,
        symptoms: list[str] | None = None,
        triggers: list[str] | None = None,
        medications: list[str] | None = None,
        note: str = "",
        physiological_data: dict[str, Any] | None = None,
        environmental_data: dict[str, Any] | None = None,
    ) -> str:
        """Record a journal entry (flare, wellness check-in, note, ...).

        Args:
            entry_type: One of 'flare', 'medication', 'wellness', 'note',
                'energy', 'other'.
            timestamp: When it happened (ISO 8601). Defaults to now.
            severity: For flares: 'mild', 'moderate' or 'severe'.
            symptoms: Symptom tags (e.g. ['joint pain', 'fatigue']).
            triggers: Suspected trigger tags (e.g. ['ate dairy']).
            medications: Medication tags mentioned in this entry.
            note: Free-text note.
            physiological_data: Wearable readings, e.g.
                {"sleep": {"duration": 7.2}, "heart_rate_variability": 41, "steps": 8200}.
            environmental_data: Weather readings, e.g.
                {"weather": {"pressure": 1012, "humidity": 64}}.
        """
        start_time = time.monotonic()
        user_id: str | None = None
        try:
            user_id = authenticator.current_user()
            entry = LogEntry(
                id="",
                user_id=user_id,
                entry_type=entry_type,  # type: ignore[arg-type]
                timestamp=_parse_timestamp(timestamp),
                severity=severity or None,  # type: ignore[arg-type]
                symptoms=_tags(symptoms),
                triggers=_tags(triggers),
                medications=_tags(medications),
                note=note,
                physiological_data=physiological_data or {},
                environmental_data=environmental_data or {},
            )
            entry_id = repository.save_entry(entry)
        except UnauthenticatedError as exc:
            _audit("log_entry", None, start_time, type(exc).__name__)
            return json.dumps(error_payload(UNAUTHORIZED_MESSAGE, 401))
        except (RepositoryError, ValueError) as exc:
            _audit("log_entry", user_id, start_time, type(exc).__name__)
            return json.dumps({"status": "error", "message": str(exc)})

        _audit("log_entry", user_id, start_time, None)
        return json.dumps({
            "status": "saved",
            "entry_id": entry_id,
            "entry_type": entry.entry_type,
            "timestamp": entry.timestamp.isoformat(),
        })

    @mcp.tool
    async def log_medication(
        ctx: Context,
        medication_name: str,
        dosage: str = "",
        taken_at: str = "",
    ) -> str:
        """Record that you took a dose of a medication.

        Regular dosing history lets the forecast notice missed doses.

        Args:
            medication_name: Name of the medication (e.g. 'naproxen').
            dosage: Optional dose (e.g. '500 mg').
            taken_at: When it was taken (ISO 8601). Defaults to now.
        """
        start_time = time.monotonic()
        user_id: str | None = None
        try:
            user_id = authenticator.current_user()
            if not medication_name.strip():
                raise ValueError("medication_name must not be empty")
            record = MedicationLogRecord(
                id="",
                user_id=user_id,
                medication_name=medication_name.strip(),
                taken_at=_parse_timestamp(taken_at),
                dosage=dosage,
            )
            log_id = repository.save_medication_log(record)
        except UnauthenticatedError as exc:
            _audit("log_medication", None, start_time, type(exc).__name__)
            return json.dumps(error_payload(UNAUTHORIZED_MESSAGE, 401))
        except ValueError as exc:
            _audit("log_medication", user_id, start_time, type(exc).__name__)
            return json.dumps({"status": "error", "message": str(exc)})

        _audit("log_medication", user_id, start_time, None)
        return json.dumps({
            "status": "saved",
            "medication_log_id": log_id,
            "medication_name": record.medication_name,
            "taken_at": record.taken_at.isoformat(),
        })

    @mcp.tool
    async def update_profile(
        ctx: Context,
        conditions: list[str] | None = None,
        known_symptoms: list[str] | None = None,
        known_triggers: list[str] | None = None,
        timezone_name: str = "UTC",
        biological_sex: str | None = None,
        date_of_birth: str | None = None,
    ) -> str:
        """Create or replace your profile.

        Conditions tune how strongly each signal family counts (for example
        weather for arthritis, sleep for fibromyalgia).

        Args:
            conditions: Diagnosed conditions (e.g. ['rheumatoid arthritis']).
            known_symptoms: Symptoms you usually track.
            known_triggers: Triggers you already know about.
            timezone_name: IANA timezone (e.g. 'Europe/Berlin'). Defaults to UTC.
            biological_sex: Optional.
            date_of_birth: Optional ISO 8601 date.
        """
        start_time = time.monotonic()
        user_id: str | None = None
        try:
            user_id = authenticator.current_user()
            try:
                ZoneInfo(timezone_name)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValueError(f"Unknown timezone: {timezone_name!r}") from exc
            profile = UserProfile(
                user_id=user_id,
                conditions=_tags(conditions),
                known_symptoms=_tags(known_symptoms),
                known_triggers=_tags(known_triggers),
                timezone=timezone_name,
                biological_sex=biological_sex,
                date_of_birth=date_of_birth,
            )
            repository.upsert_profile(profile)
        except UnauthenticatedError as exc:
            _audit("update_profile", None, start_time, type(exc).__name__)
            return json.dumps(error_payload(UNAUTHORIZED_MESSAGE, 401))
        except ValueError as exc:
            _audit("update_profile", user_id, start_time, type(exc).__name__)
            return json.dumps({"status": "error", "message": str(exc)})

        _audit("update_profile", user_id, start_time, None)
        return json.dumps({
            "status": "saved",
            "conditions": list(profile.conditions),
            "timezone": profile.timezone,
        })

    @mcp.tool
    async def record_correlation(
        ctx: Context,
        trigger_type: str,
        trigger_value: str,
        outcome_type: str,
        outcome_value: str,
        occurrence_count: int = 0,
        confidence: float = 0.0,
        avg_delay_minutes: float | None = None,
    ) -> str:
        """Store a learned trigger -> outcome correlation.

        Correlations are normally written by the pattern discovery job; the
        forecast matches their trigger values against recent entries.

        Args:
            trigger_type: Kind of trigger (e.g. 'food', 'activity').
            trigger_value: The trigger itself (e.g. 'dairy').
            outcome_type: Kind of outcome (e.g. 'symptom').
            outcome_value: The outcome (e.g. 'joint pain').
            occurrence_count: How many times the pair was observed.
            confidence: Strength of the association, 0-1.
            avg_delay_minutes: Typical delay between trigger and outcome.
        """
        start_time = time.monotonic()
        user_id: str | None = None
        try:
            user_id = authenticator.current_user()
            record = CorrelationRecord(
                id="",
                user_id=user_id,
                trigger_type=trigger_type,
                trigger_value=trigger_value.strip(),
                outcome_type=outcome_type,
                outcome_value=outcome_value,
                occurrence_count=occurrence_count,
                confidence=confidence,
                avg_delay_minutes=avg_delay_minutes,
                last_occurred=datetime.now(timezone.utc),
            )
            correlation_id = repository.save_correlation(record)
        except UnauthenticatedError as exc:
            _audit("record_correlation", None, start_time, type(exc).__name__)
            return json.dumps(error_payload(UNAUTHORIZED_MESSAGE, 401))
        except RepositoryError as exc:
            _audit("record_correlation", user_id, start_time, type(exc).__name__)
            return json.dumps({"status": "error", "message": str(exc)})

        _audit("record_correlation", user_id, start_time, None)
        return json.dumps({
            "status": "saved",
            "correlation_id": correlation_id,
            "trigger_value": record.trigger_value,
            "confidence": record.confidence,
        })
