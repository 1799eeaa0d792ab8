"""Forecast orchestrator.

Sequences the signal families over one fetched snapshot, resolves
cross-signal interactions and turns the posterior into a :class:`Forecast`.
The computation is synchronous, does no I/O and keeps no state between
calls: for a fixed ``now`` the same inputs always produce the same forecast.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flarecast.core.storage.models import LogEntry, MedicationLogRecord, UserProfile
from flarecast.domains.flare.domain_logic import thresholds
from flarecast.domains.flare.domain_logic.bayesian import (
    AccumulatorState,
    BayesianRiskState,
    prior_from_history,
)
from flarecast.domains.flare.domain_logic.conditions import multipliers_for
from flarecast.domains.flare.domain_logic.interactions import (
    ActiveCategories,
    resolve_interactions,
)
from flarecast.domains.flare.domain_logic.narrative import (
    build_prediction,
    build_recommendations,
)
from flarecast.domains.flare.domain_logic.signal_families import (
    SIGNAL_FAMILIES,
    ForecastContext,
    ForecastInputs,
)
from flarecast.domains.flare.domain_logic.signal_models import (
    MAX_FACTORS,
    MIN_ENTRIES_FOR_FORECAST,
    MODEL_VERSION,
    Forecast,
    needs_more_data_forecast,
    risk_level_for_score,
)

logger = logging.getLogger(__name__)

# Baselines whose readiness counts toward data richness.
RICHNESS_BASELINES = ("sleep_hours", "hrv", "steps", "resting_heart_rate")


class ForecastComputationError(Exception):
    """Raised when scoring fails on an already-fetched snapshot."""


# ---------------------------------------------------------------------------
# Input normalization
# ---------------------------------------------------------------------------

def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _normalize_entries(entries: tuple[LogEntry, ...] | list[LogEntry]) -> tuple[LogEntry, ...]:
    normalized = [
        e if e.timestamp.tzinfo is not None else replace(e, timestamp=_aware(e.timestamp))
        for e in entries
    ]
    normalized.sort(key=lambda e: e.timestamp)
    return tuple(normalized)


def _normalize_medication_logs(
    logs: tuple[MedicationLogRecord, ...] | list[MedicationLogRecord],
) -> tuple[MedicationLogRecord, ...]:
    return tuple(
        m if m.taken_at.tzinfo is not None else replace(m, taken_at=_aware(m.taken_at))
        for m in logs
    )


def normalize_menstrual_day(value: Any) -> int | None:
    """Accept a 1-based cycle day; anything else is treated as absent."""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value >= 1 else None


def normalize_reading_bag(value: Any) -> Mapping[str, Any] | None:
    """Live-reading payloads must be mappings; anything else is absent."""
    return value if isinstance(value, Mapping) else None


def resolve_timezone(profile: UserProfile | None) -> tzinfo:
    """The user's IANA timezone, falling back to UTC when unknown."""
    name = profile.timezone if profile is not None and profile.timezone else "UTC"
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown profile timezone; falling back to UTC")
        return timezone.utc


def build_context(inputs: ForecastInputs, now: datetime) -> ForecastContext:
    """Derive the shared read-only view every signal family consumes."""
    flares = tuple(e for e in inputs.entries if e.is_flare)
    conditions = inputs.profile.conditions if inputs.profile is not None else ()
    return ForecastContext(
        inputs=inputs,
        now=now,
        multipliers=multipliers_for(conditions),
        tz=resolve_timezone(inputs.profile),
        flares=flares,
        flare_times=tuple(e.timestamp for e in flares),
    )


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def data_richness(state: AccumulatorState, inputs: ForecastInputs) -> float:
    """How much usable signal the snapshot carried, in [0.2, 0.9]."""
    c = thresholds.CONFIDENCE
    diversity = sum(state.baseline_ready(name) for name in RICHNESS_BASELINES)
    diversity += bool(inputs.correlations)
    diversity += inputs.current_weather is not None
    diversity += bool(inputs.medication_logs)
    return min(
        c.richness_cap,
        c.richness_base + diversity * c.richness_per_signal
        + len(inputs.entries) * c.richness_per_entry,
    )


def overall_confidence(state: AccumulatorState, inputs: ForecastInputs) -> float:
    c = thresholds.CONFIDENCE
    if state.factors:
        factor_confidence = statistics.fmean(f.confidence for f in state.factors)
    else:
        factor_confidence = c.no_factor_confidence
    return min(c.overall_cap, (data_richness(state, inputs) + factor_confidence) / 2)


def _finalize(
    state: AccumulatorState,
    inputs: ForecastInputs,
    *,
    prior: float,
    active: ActiveCategories,
    model_version: str,
) -> Forecast:
    score = state.risk.risk_percent
    ranked = sorted(state.risk_factors, key=lambda f: f.weight, reverse=True)
    non_risk = [f for f in state.factors if not f.is_risk]

    return Forecast(
        risk_score=score,
        risk_level=risk_level_for_score(score),
        confidence=overall_confidence(state, inputs),
        factors=(ranked + non_risk)[:MAX_FACTORS],
        prediction=build_prediction(
            score=score,
            factors=state.factors,
            ranked_risks=ranked,
            prior=prior,
            interactions=state.interactions,
            active_categories=active.distinct,
        ),
        recommendations=build_recommendations(ranked),
        protective_factors=[f.evidence for f in state.factors if f.impact < 0],
        model_version=model_version,
    )


def compute_forecast(
    inputs: ForecastInputs,
    *,
    now: datetime | None = None,
    min_entries: int = MIN_ENTRIES_FOR_FORECAST,
    model_version: str = MODEL_VERSION,
) -> Forecast:
    """Compute the 24h flare-risk forecast for one user's snapshot.

    Fewer than ``min_entries`` log entries bypasses the pipeline and returns
    the neutral "needs more data" forecast.
    """
    now = _aware(now or datetime.now(timezone.utc))
    entries = _normalize_entries(inputs.entries)
    if len(entries) < min_entries:
        logger.info("Insufficient history for a forecast (%d entries)", len(entries))
        return needs_more_data_forecast(model_version)

    inputs = replace(
        inputs,
        entries=entries,
        correlations=tuple(sorted(inputs.correlations, key=lambda c: -c.confidence)),
        medication_logs=_normalize_medication_logs(inputs.medication_logs),
        current_weather=normalize_reading_bag(inputs.current_weather),
        wearable_data=normalize_reading_bag(inputs.wearable_data),
        menstrual_day=normalize_menstrual_day(inputs.menstrual_day),
    )
    ctx = build_context(inputs, now)

    observation_days = (now - entries[0].timestamp) / timedelta(days=1)
    prior = prior_from_history(len(ctx.flares), observation_days)
    state = AccumulatorState(risk=BayesianRiskState(prior))

    for name, family in SIGNAL_FAMILIES:
        before = len(state.factors)
        family(state, ctx)
        logger.debug("Signal family %s fired %d factor(s)", name, len(state.factors) - before)

    active = resolve_interactions(state)
    forecast = _finalize(
        state, inputs, prior=prior, active=active, model_version=model_version
    )
    logger.info(
        "Forecast computed: score=%d level=%s factors=%d",
        forecast.risk_score, forecast.risk_level, len(state.factors),
    )
    return forecast
