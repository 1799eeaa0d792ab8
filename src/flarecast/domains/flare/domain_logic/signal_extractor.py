"""Typed signal extraction from loosely structured reading bags.

Journal entries, wearable payloads and weather payloads all carry the same
physiological/environmental readings under different key spellings and
nesting depths. Extraction never raises: any miss is treated as absence and
absence means the signal contributes nothing this cycle.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


def deep_get(record: Any, path: str) -> float | None:
    """Resolve a dot-separated path to a numeric leaf, or None."""
    if not isinstance(record, Mapping):
        return None
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
        if value is None:
            return None
    # bool is an int subclass but never a sensor reading
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def try_get(
    record: Any,
    paths: tuple[str, ...] | list[str],
    *,
    lo: float | None = None,
    hi: float | None = None,
) -> float | None:
    """Return the first path that resolves to a numeric value.

    ``lo`` and ``hi`` are exclusive bounds; a resolved value outside them is
    absent rather than an error, and lookup does not fall through to later
    paths.
    """
    for path in paths:
        value = deep_get(record, path)
        if value is None:
            continue
        if lo is not None and value <= lo:
            return None
        if hi is not None and value >= hi:
            return None
        return value
    return None


# ---------------------------------------------------------------------------
# Signal table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SignalSpec:
    """Where a signal lives and what values are physically plausible."""

    name: str
    history_paths: tuple[str, ...]
    live_paths: tuple[str, ...] = ()
    lo: float | None = None
    hi: float | None = None
    alpha: float = 0.12
    minutes_to_hours: bool = False

    def from_history(self, bag: Any) -> float | None:
        return self._normalize(try_get(bag, self.history_paths, lo=self.lo, hi=self.hi))

    def from_live(self, bag: Any) -> float | None:
        paths = self.live_paths or self.history_paths
        return self._normalize(try_get(bag, paths, lo=self.lo, hi=self.hi))

    def _normalize(self, value: float | None) -> float | None:
        # Some sources report sleep in minutes.
        if value is not None and self.minutes_to_hours and value > 24:
            return value / 60
        return value


SLEEP_HOURS = SignalSpec(
    name="sleep_hours",
    history_paths=("sleep_hours", "sleepHours", "sleep.duration", "sleep.hours"),
    live_paths=("sleep.duration", "sleep.hours", "sleepHours", "sleep_hours"),
    lo=0,
    alpha=0.12,
    minutes_to_hours=True,
)

DEEP_SLEEP_MINUTES = SignalSpec(
    name="deep_sleep_minutes",
    history_paths=("sleep.stages.deep", "deep_sleep_minutes", "deepSleepMinutes"),
    lo=0,
)

HRV = SignalSpec(
    name="hrv",
    history_paths=(
        "heart_rate_variability", "heartRateVariability", "hrv_rmssd", "hrvRmssd",
    ),
    live_paths=(
        "hrv.current", "hrv.daily",
        "heart_rate_variability", "heartRateVariability", "hrv_rmssd", "hrvRmssd",
    ),
    lo=0,
    hi=300,
    alpha=0.12,
)

RESTING_HEART_RATE = SignalSpec(
    name="resting_heart_rate",
    history_paths=("resting_heart_rate", "restingHeartRate"),
    lo=30,
    hi=200,
    alpha=0.10,
)

STEPS = SignalSpec(
    name="steps",
    history_paths=("steps", "activity.steps"),
    lo=0,
    alpha=0.10,
)

SPO2 = SignalSpec(
    name="spo2",
    history_paths=("spo2", "spo2_avg", "spo2Avg"),
    lo=0,
    hi=101,
)

BREATHING_RATE = SignalSpec(
    name="breathing_rate",
    history_paths=("breathing_rate", "breathingRate"),
    lo=0,
)

SKIN_TEMPERATURE = SignalSpec(
    name="skin_temperature",
    history_paths=("skin_temperature", "skinTemperature"),
    alpha=0.12,
)

PRESSURE = SignalSpec(
    name="pressure",
    history_paths=("weather.pressure", "pressure"),
    live_paths=("pressure",),
    lo=900,
    hi=1100,
    alpha=0.15,
)

HUMIDITY = SignalSpec(
    name="humidity",
    history_paths=("weather.humidity", "humidity"),
    live_paths=("humidity",),
    lo=0,
)

TEMPERATURE = SignalSpec(
    name="temperature",
    history_paths=("weather.temperature", "temperature"),
    live_paths=("temperature",),
    alpha=0.12,
)

AQI = SignalSpec(
    name="aqi",
    history_paths=("aqi", "airQuality.aqi"),
    lo=0,
)

POLLEN = SignalSpec(
    name="pollen",
    history_paths=("pollen", "airQuality.pollen"),
    lo=0,
)

MENSTRUAL_DAY = SignalSpec(
    name="menstrual_day",
    history_paths=("menstrual_day",),
    lo=0,
)
