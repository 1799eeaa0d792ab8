"""Mock journal generators for development and demos.

The synthetic user keeps a month of daily wellness check-ins with wearable
and weather readings, flares every eight days or so after a short night, and
has one learned correlation. Output is deterministic for a given ``now``.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

from flarecast.core.storage.models import (
    CorrelationRecord,
    LogEntry,
    MedicationLogRecord,
    UserProfile,
)

MOCK_SEED = 20240917
MOCK_DAYS = 30
MOCK_MEDICATION = "naproxen"


def _day_start(now: datetime) -> datetime:
    now = now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def get_mock_entries(
    user_id: str, *, now: datetime | None = None, days: int = MOCK_DAYS
) -> list[LogEntry]:
    """Return a synthetic journal, oldest first."""
    rng = random.Random(MOCK_SEED)
    today = _day_start(now or datetime.now(timezone.utc))
    entries: list[LogEntry] = []

    for offset in range(days, 0, -1):
        day = today - timedelta(days=offset)
        short_night = offset % 8 == 1
        sleep_hours = round(rng.uniform(4.8, 5.6) if short_night else rng.gauss(7.6, 0.4), 2)
        entries.append(LogEntry(
            id=f"mock-wellness-{offset}",
            user_id=user_id,
            entry_type="wellness",
            timestamp=day + timedelta(hours=8),
            physiological_data={
                "sleep": {"duration": sleep_hours},
                "deep_sleep_minutes": round(rng.gauss(75, 10)),
                "heart_rate_variability": round(rng.gauss(34 if short_night else 46, 3), 1),
                "resting_heart_rate": round(rng.gauss(62, 2)),
                "steps": round(rng.gauss(7500, 900)),
            },
            environmental_data={
                "weather": {
                    "pressure": round(rng.gauss(1014, 3), 1),
                    "humidity": round(rng.uniform(40, 75)),
                    "temperature": round(rng.gauss(18, 3), 1),
                },
            },
        ))
        if short_night:
            entries.append(LogEntry(
                id=f"mock-flare-{offset}",
                user_id=user_id,
                entry_type="flare",
                timestamp=day + timedelta(hours=19),
                severity="moderate",
                symptoms=("joint pain", "fatigue"),
                triggers=("poor sleep",),
            ))
        if offset % 6 == 3:
            entries.append(LogEntry(
                id=f"mock-note-{offset}",
                user_id=user_id,
                entry_type="note",
                timestamp=day + timedelta(hours=13),
                triggers=("ate dairy",),
                note="Pizza for lunch",
            ))
    entries.sort(key=lambda e: e.timestamp)
    return entries


def get_mock_correlations(user_id: str) -> list[CorrelationRecord]:
    """Return the synthetic user's learned correlations."""
    return [
        CorrelationRecord(
            id="mock-correlation-1",
            user_id=user_id,
            trigger_type="food",
            trigger_value="dairy",
            outcome_type="symptom",
            outcome_value="joint pain",
            occurrence_count=4,
            confidence=0.62,
            avg_delay_minutes=1440,
        ),
    ]


def get_mock_profile(user_id: str) -> UserProfile:
    """Return the synthetic user's profile."""
    return UserProfile(
        user_id=user_id,
        conditions=("rheumatoid arthritis",),
        known_symptoms=("joint pain", "fatigue"),
        known_triggers=("poor sleep", "dairy"),
        timezone="UTC",
    )


def get_mock_medication_logs(
    user_id: str, *, now: datetime | None = None, days: int = MOCK_DAYS
) -> list[MedicationLogRecord]:
    """Return twice-daily doses, newest first."""
    today = _day_start(now or datetime.now(timezone.utc))
    logs = [
        MedicationLogRecord(
            id=f"mock-dose-{offset}-{hour}",
            user_id=user_id,
            medication_name=MOCK_MEDICATION,
            taken_at=today - timedelta(days=offset) + timedelta(hours=hour),
            dosage="500 mg",
        )
        for offset in range(days, 0, -1)
        for hour in (8, 20)
    ]
    logs.reverse()
    return logs
