"""Data models for the journal persistence layer.

These records are read-only inputs to the forecasting engine: the engine never
mutates them, and every forecast is recomputed from a fresh snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

EntryType = Literal["flare", "medication", "wellness", "note", "energy", "other"]
Severity = Literal["mild", "moderate", "severe"]

ENTRY_TYPES = ("flare", "medication", "wellness", "note", "energy", "other")
SEVERITIES = ("mild", "moderate", "severe")


@dataclass(frozen=True)
class LogEntry:
    """A single user-authored journal record.

    Free text and the nested reading bags are stored encrypted at rest;
    ``entry_type`` and ``timestamp`` stay in clear for indexed queries.
    """

    id: str
    user_id: str
    entry_type: EntryType
    timestamp: datetime  # timezone-aware
    severity: Severity | None = None
    symptoms: tuple[str, ...] = ()
    triggers: tuple[str, ...] = ()
    medications: tuple[str, ...] = ()
    note: str = ""

    # Loosely structured bags; each signal may live under several key paths.
    physiological_data: dict[str, Any] = field(default_factory=dict)
    environmental_data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_flare(self) -> bool:
        return self.entry_type == "flare"


@dataclass(frozen=True)
class CorrelationRecord:
    """A learned trigger -> outcome association from the discovery process."""

    id: str
    user_id: str
    trigger_type: str
    trigger_value: str
    outcome_type: str
    outcome_value: str
    occurrence_count: int = 0
    confidence: float = 0.0  # 0-1
    avg_delay_minutes: float | None = None
    last_occurred: datetime | None = None


@dataclass(frozen=True)
class MedicationLogRecord:
    """One medication administration event."""

    id: str
    user_id: str
    medication_name: str
    taken_at: datetime
    dosage: str = ""


@dataclass(frozen=True)
class UserProfile:
    """Per-user configuration read by the forecasting engine."""

    user_id: str
    conditions: tuple[str, ...] = ()
    known_symptoms: tuple[str, ...] = ()
    known_triggers: tuple[str, ...] = ()
    timezone: str = "UTC"
    biological_sex: str | None = None
    date_of_birth: str | None = None  # ISO 8601 date


@dataclass
class ApiToken:
    """Bearer credential record (the raw token is never stored)."""

    token_hash: str
    user_id: str
    created_at: str = ""
    revoked: bool = False
