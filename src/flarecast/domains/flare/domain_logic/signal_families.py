"""The signal families evaluated by the forecast orchestrator.

Each family is a function ``(state, ctx) -> None``: it extracts its signals
from the snapshot in ``ctx``, consults its baseline/trend/likelihood helpers
and, only when its threshold is met, fires a factor on ``state``. A family
without enough data returns without touching the state.
"""

from __future__ import annotations

import logging
import statistics
from collections import defaultdict
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any

from flarecast.core.storage.models import (
    CorrelationRecord,
    LogEntry,
    MedicationLogRecord,
    UserProfile,
)
from flarecast.domains.flare.domain_logic import signal_extractor as signals
from flarecast.domains.flare.domain_logic import thresholds
from flarecast.domains.flare.domain_logic.bayesian import AccumulatorState
from flarecast.domains.flare.domain_logic.conditions import ConditionMultipliers
from flarecast.domains.flare.domain_logic.ewma import EWMABaseline
from flarecast.domains.flare.domain_logic.likelihood import (
    compute_lr,
    count_followed_by_flare,
    estimate_lr,
    tiered_default,
)
from flarecast.domains.flare.domain_logic.signal_extractor import SignalSpec
from flarecast.domains.flare.domain_logic.signal_models import RiskFactor
from flarecast.domains.flare.domain_logic.trend import (
    TimedValue,
    compute_slope,
    is_deteriorating,
    recent_window,
)

logger = logging.getLogger(__name__)

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ForecastInputs:
    """Everything one forecast is computed from.

    ``entries`` are chronological (oldest first). The live readings are the
    optional request payloads and may be None.
    """

    entries: tuple[LogEntry, ...]
    correlations: tuple[CorrelationRecord, ...] = ()
    profile: UserProfile | None = None
    medication_logs: tuple[MedicationLogRecord, ...] = ()
    current_weather: Mapping[str, Any] | None = None
    wearable_data: Mapping[str, Any] | None = None
    menstrual_day: int | None = None


@dataclass(frozen=True)
class ForecastContext:
    """Derived, read-only view of the inputs shared by every family."""

    inputs: ForecastInputs
    now: datetime
    multipliers: ConditionMultipliers
    tz: tzinfo
    flares: tuple[LogEntry, ...] = field(default=())
    flare_times: tuple[datetime, ...] = field(default=())

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return self.inputs.entries

    @property
    def wearable(self) -> Mapping[str, Any]:
        return self.inputs.wearable_data or {}

    @property
    def weather(self) -> Mapping[str, Any] | None:
        return self.inputs.current_weather

    def entries_since(self, days: float) -> list[LogEntry]:
        cutoff = self.now - timedelta(days=days)
        return [e for e in self.entries if e.timestamp > cutoff]


SignalFamily = Callable[[AccumulatorState, ForecastContext], None]


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _readings(
    entries: tuple[LogEntry, ...], spec: SignalSpec, bag: str
) -> list[tuple[LogEntry, float]]:
    """Every (entry, value) pair where ``spec`` resolves in the named bag."""
    out = []
    for entry in entries:
        value = spec.from_history(getattr(entry, bag))
        if value is not None:
            out.append((entry, value))
    return out


def _series(readings: list[tuple[LogEntry, float]]) -> list[TimedValue]:
    return [TimedValue(value, entry.timestamp) for entry, value in readings]


def _baseline(
    state: AccumulatorState, spec: SignalSpec, series: list[TimedValue]
) -> EWMABaseline:
    baseline = EWMABaseline(spec.alpha)
    baseline.feed_sorted(p.value for p in series)
    state.baselines[spec.name] = baseline
    return baseline


def _protective_lr(value: float, floor: float) -> float:
    """The sub-1 side of a likelihood ratio, for factors that lower risk."""
    if value <= 0:
        return floor
    return max(floor, min(value, 1 / value))


def _rule(lr: float) -> str:
    return f"LR {lr:.1f}"


# ---------------------------------------------------------------------------
# 1. Sleep
# ---------------------------------------------------------------------------

def sleep_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.SLEEP
    mult = ctx.multipliers.sleep
    series = _series(_readings(ctx.entries, signals.SLEEP_HOURS, "physiological_data"))
    baseline = _baseline(state, signals.SLEEP_HOURS, series)
    current = signals.SLEEP_HOURS.from_live(ctx.wearable)
    if current is None:
        return

    if baseline.is_ready:
        z = baseline.z_score(current)

        poor_threshold = baseline.mean - baseline.std_dev
        poor_times = [p.timestamp for p in series if p.value < poor_threshold]
        followed = count_followed_by_flare(
            poor_times, ctx.flare_times,
            start=timedelta(0), end=timedelta(hours=t.lookahead_hours),
        )
        neutral = t.rested_default_lr if z > t.rested_default_z else 1.0
        estimate = estimate_lr(
            entries_with_signal=len(poor_times),
            total_entries=len(ctx.entries),
            flares_with_signal=followed,
            total_flares=len(ctx.flares),
            default=tiered_default(z, t.default_tiers, neutral),
        ).scaled(mult)

        if z < t.deficit_z:
            state.fire(RiskFactor(
                factor="Sleep deficit",
                impact=min(t.deficit_impact_cap, abs(z) * t.deficit_impact_per_z),
                confidence=min(
                    t.confidence_cap,
                    t.confidence_base + baseline.count * t.confidence_per_sample,
                ),
                evidence=(
                    f"{current:.1f}h vs your baseline {baseline.mean:.1f}h "
                    f"({abs(z):.1f}σ below), {estimate.describe()}"
                ),
                category="sleep",
                likelihood_ratio=estimate.value,
                evidence_source=estimate.source,
            ), estimate.value)
        elif z > t.surplus_z:
            lr = _protective_lr(estimate.value, t.surplus_min_lr)
            state.fire(RiskFactor(
                factor="Above-average sleep",
                impact=t.surplus_impact,
                confidence=t.surplus_confidence,
                evidence=f"{current:.1f}h is restorative ({z:.1f}σ above your baseline)",
                category="sleep",
                likelihood_ratio=lr,
                evidence_source=estimate.source,
            ), lr)

        # cumulative debt over the last few nights plus tonight
        window = recent_window(series, ctx.now, t.debt_window_days)
        window.append(TimedValue(current, ctx.now))
        if len(window) >= 2:
            rolling = statistics.fmean(p.value for p in window)
            rolling_z = baseline.z_score(rolling)
            if rolling_z < t.debt_z:
                lr = t.debt_lr * mult
                state.fire(RiskFactor(
                    factor="Cumulative sleep debt (3 nights)",
                    impact=min(t.debt_impact_cap, abs(rolling_z) * t.debt_impact_per_z),
                    confidence=t.debt_confidence,
                    evidence=(
                        f"Rolling average {rolling:.1f}h; cumulative debt elevates "
                        f"inflammatory markers, {_rule(lr)}"
                    ),
                    category="sleep",
                    likelihood_ratio=lr,
                ), lr)

        fit = compute_slope(recent_window(series, ctx.now, t.trend_window_days))
        if is_deteriorating(fit, slope_below=t.trend_slope, min_r2=t.trend_min_r2):
            state.fire(RiskFactor(
                factor="Deteriorating sleep trend",
                impact=min(t.trend_impact_cap, abs(fit.slope) * t.trend_impact_per_slope),
                confidence=t.trend_confidence * fit.r2,
                evidence=(
                    f"Losing {abs(fit.slope):.1f}h/day over the past week "
                    f"(R²={fit.r2:.2f})"
                ),
                category="sleep",
                likelihood_ratio=t.trend_lr,
            ), t.trend_lr)

    deep = signals.DEEP_SLEEP_MINUTES.from_live(ctx.wearable)
    if deep is not None and current > 0:
        ratio = deep / (current * 60)
        if ratio < t.deep_ratio_floor:
            lr = t.deep_lr * mult
            state.fire(RiskFactor(
                factor="Poor deep sleep quality",
                impact=t.deep_impact,
                confidence=t.deep_confidence,
                evidence=(
                    f"{round(ratio * 100)}% deep sleep (healthy: 15-20%), "
                    f"impaired physical recovery, {_rule(lr)}"
                ),
                category="sleep",
                likelihood_ratio=lr,
            ), lr)


# ---------------------------------------------------------------------------
# 2. HRV / autonomic stress
# ---------------------------------------------------------------------------

def hrv_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.HRV
    series = _series(_readings(ctx.entries, signals.HRV, "physiological_data"))
    baseline = _baseline(state, signals.HRV, series)
    current = signals.HRV.from_live(ctx.wearable)
    if current is None or not baseline.is_ready:
        return

    z = baseline.z_score(current)
    low_threshold = baseline.mean - baseline.std_dev
    low_times = [p.timestamp for p in series if p.value < low_threshold]
    followed = count_followed_by_flare(
        low_times, ctx.flare_times,
        start=timedelta(0), end=timedelta(hours=t.lookahead_hours),
    )
    estimate = estimate_lr(
        entries_with_signal=len(low_times),
        total_entries=len(ctx.entries),
        flares_with_signal=followed,
        total_flares=len(ctx.flares),
        default=tiered_default(z, t.default_tiers),
    ).scaled(ctx.multipliers.hrv)

    if z < t.low_z:
        state.fire(RiskFactor(
            factor="Low HRV (autonomic stress)",
            impact=min(t.low_impact_cap, abs(z) * t.low_impact_per_z),
            confidence=min(
                t.confidence_cap,
                t.confidence_base + baseline.count * t.confidence_per_sample,
            ),
            evidence=(
                f"HRV {current:.0f}ms vs your baseline {baseline.mean:.0f}ms "
                f"({abs(z):.1f}σ below), sympathetic dominance, {estimate.describe()}"
            ),
            category="stress",
            likelihood_ratio=estimate.value,
            evidence_source=estimate.source,
        ), estimate.value)
    elif z > t.high_z:
        state.fire(RiskFactor(
            factor="High HRV (parasympathetic recovery)",
            impact=t.high_impact,
            confidence=t.high_confidence,
            evidence=f"HRV {current:.0f}ms; vagal tone indicates good recovery",
            category="stress",
            likelihood_ratio=t.high_lr,
        ), t.high_lr)

    fit = compute_slope(recent_window(series, ctx.now, t.trend_window_days))
    if is_deteriorating(fit, slope_below=t.trend_slope, min_r2=t.trend_min_r2):
        state.fire(RiskFactor(
            factor="Declining HRV trend",
            impact=t.trend_impact,
            confidence=t.trend_confidence * fit.r2,
            evidence=(
                f"HRV dropping {abs(fit.slope):.1f}ms/day (R²={fit.r2:.2f}), "
                "stress accumulating"
            ),
            category="stress",
            likelihood_ratio=t.trend_lr,
        ), t.trend_lr)


def resting_heart_rate_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.RESTING_HR
    series = _series(
        _readings(ctx.entries, signals.RESTING_HEART_RATE, "physiological_data")
    )
    baseline = _baseline(state, signals.RESTING_HEART_RATE, series)
    current = signals.RESTING_HEART_RATE.from_live(ctx.wearable)
    if current is None or not baseline.is_ready:
        return

    z = baseline.z_score(current)
    if z > t.elevated_z:
        lr = t.lr * ctx.multipliers.hrv
        state.fire(RiskFactor(
            factor="Elevated resting heart rate",
            impact=min(t.impact_cap, z * t.impact_per_z),
            confidence=t.confidence,
            evidence=(
                f"{current:.0f} bpm vs your baseline {baseline.mean:.0f} bpm "
                f"({z:.1f}σ above), early illness or stress marker, {_rule(lr)}"
            ),
            category="physiological",
            likelihood_ratio=lr,
        ), lr)


# ---------------------------------------------------------------------------
# 3. Activity (boom-bust)
# ---------------------------------------------------------------------------

def activity_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.ACTIVITY
    series = _series(_readings(ctx.entries, signals.STEPS, "physiological_data"))
    baseline = _baseline(state, signals.STEPS, series)
    current = signals.STEPS.from_live(ctx.wearable)
    if current is None or not baseline.is_ready:
        return

    z = baseline.z_score(current)
    if z <= t.high_z:
        return

    high_threshold = baseline.mean + baseline.std_dev
    high_times = [p.timestamp for p in series if p.value > high_threshold]
    crashes = count_followed_by_flare(
        high_times, ctx.flare_times,
        start=timedelta(hours=t.crash_after_hours),
        end=timedelta(hours=t.crash_before_hours),
    )
    boom_bust_rate = crashes / len(high_times) if high_times else 0.0

    if boom_bust_rate > t.min_boom_bust_rate:
        estimate = estimate_lr(
            entries_with_signal=len(high_times),
            total_entries=len(ctx.entries),
            flares_with_signal=crashes,
            total_flares=len(ctx.flares),
            default=t.default_lr if z > t.default_z else 1.0,
        ).scaled(ctx.multipliers.activity)
        state.fire(RiskFactor(
            factor="Overexertion (boom-bust pattern)",
            impact=min(t.impact_cap, z * t.impact_per_z * (1 + boom_bust_rate)),
            confidence=min(t.confidence_cap, t.confidence_base + boom_bust_rate),
            evidence=(
                f"{round(current)} steps ({z:.1f}σ above your baseline); "
                f"{round(boom_bust_rate * 100)}% of high-activity days preceded "
                f"flares within 12-72h, {estimate.describe()}"
            ),
            category="activity",
            likelihood_ratio=estimate.value,
            evidence_source=estimate.source,
        ), estimate.value)
    else:
        lr = t.spike_lr * ctx.multipliers.activity
        state.fire(RiskFactor(
            factor="Unusually high activity",
            impact=t.spike_impact,
            confidence=t.spike_confidence,
            evidence=f"{round(current)} steps, {z:.1f}σ above your baseline",
            category="activity",
            likelihood_ratio=lr,
        ), lr)


# ---------------------------------------------------------------------------
# 4. Environment
# ---------------------------------------------------------------------------

def environment_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    weather = ctx.weather
    if not isinstance(weather, Mapping):
        return
    _pressure(state, ctx, weather)
    _air_quality(state, ctx, weather)
    _humidity(state, ctx, weather)
    _temperature(state, ctx, weather)
    _pollen(state, ctx, weather)


def _pressure(state: AccumulatorState, ctx: ForecastContext, weather: Mapping) -> None:
    t = thresholds.ENVIRONMENT
    mult = ctx.multipliers.pressure
    readings = _readings(ctx.entries, signals.PRESSURE, "environmental_data")
    series = _series(readings)
    baseline = _baseline(state, signals.PRESSURE, series)
    current = signals.PRESSURE.from_live(weather)
    if current is None or not baseline.is_ready:
        return

    recent = recent_window(series, ctx.now, t.pressure_recent_days)
    if recent:
        delta = current - statistics.fmean(p.value for p in recent)
        low_threshold = baseline.mean - baseline.std_dev
        low = [entry for entry, value in readings if value < low_threshold]
        estimate = estimate_lr(
            entries_with_signal=len(low),
            total_entries=len(ctx.entries),
            flares_with_signal=sum(1 for e in low if e.is_flare),
            total_flares=len(ctx.flares),
            default=tiered_default(delta, (
                (t.pressure_sharp_drop_mb, t.pressure_sharp_drop_lr),
                (t.pressure_drop_mb, t.pressure_drop_lr),
            )),
        ).scaled(mult)

        if delta < t.pressure_drop_mb:
            state.fire(RiskFactor(
                factor="Rapid barometric pressure drop",
                impact=min(t.pressure_impact_cap, abs(delta) / 10 * mult),
                confidence=min(
                    t.pressure_confidence_cap,
                    t.pressure_confidence_base + baseline.count * t.pressure_confidence_per_sample,
                ),
                evidence=(
                    f"{abs(delta):.1f}mb drop in 24h, vasodilation trigger, "
                    f"{estimate.describe()}"
                ),
                category="weather",
                likelihood_ratio=estimate.value,
                evidence_source=estimate.source,
            ), estimate.value)
        elif delta > t.pressure_rise_mb:
            state.fire(RiskFactor(
                factor="Rising barometric pressure",
                impact=t.pressure_rise_impact,
                confidence=t.pressure_rise_confidence,
                evidence="Pressure stabilizing, generally protective",
                category="weather",
                likelihood_ratio=t.pressure_rise_lr,
            ), t.pressure_rise_lr)

    trend_window = recent_window(series, ctx.now, t.pressure_trend_days)
    fit = compute_slope(trend_window)
    if is_deteriorating(fit, slope_below=t.pressure_trend_slope, min_r2=t.pressure_trend_min_r2):
        lr = t.pressure_trend_lr * mult
        state.fire(RiskFactor(
            factor="Multi-day pressure decline",
            impact=t.pressure_trend_impact,
            confidence=t.pressure_trend_confidence,
            evidence=(
                f"Pressure falling {abs(fit.slope):.1f}mb/day over "
                f"{len(trend_window)} readings, {_rule(lr)}"
            ),
            category="weather",
            likelihood_ratio=lr,
        ), lr)


def _air_quality(state: AccumulatorState, ctx: ForecastContext, weather: Mapping) -> None:
    t = thresholds.ENVIRONMENT
    aqi = signals.AQI.from_live(weather)
    if aqi is None or aqi <= t.aqi_fire_above:
        return

    base = next(lr for above, lr in t.aqi_tiers if aqi > above)
    lr = base * ctx.multipliers.aqi
    unhealthy = aqi > t.aqi_unhealthy_above
    state.fire(RiskFactor(
        factor="Unhealthy air quality" if unhealthy else "Moderate air quality",
        impact=min(t.aqi_impact_cap, (aqi - t.aqi_impact_offset) / t.aqi_impact_scale),
        confidence=t.aqi_unhealthy_confidence if unhealthy else t.aqi_moderate_confidence,
        evidence=f"AQI {aqi:.0f}; PM2.5 and ozone drive inflammation, {_rule(lr)}",
        category="environmental",
        likelihood_ratio=lr,
    ), lr)


def _humidity(state: AccumulatorState, ctx: ForecastContext, weather: Mapping) -> None:
    t = thresholds.ENVIRONMENT
    humidity = signals.HUMIDITY.from_live(weather)
    if humidity is None:
        return

    humid = [
        entry for entry, value in _readings(ctx.entries, signals.HUMIDITY, "environmental_data")
        if value > t.humid_history_above
    ]
    humid_flares = sum(1 for e in humid if e.is_flare)
    if len(humid) < 3:
        return
    base = compute_lr(len(humid), len(ctx.entries), humid_flares, len(ctx.flares))
    if humidity <= t.humid_fire_above or base <= t.humid_min_lr:
        return

    lr = base * ctx.multipliers.humidity
    state.fire(RiskFactor(
        factor="High humidity",
        impact=min(t.humid_impact_cap, (base - 1) * t.humid_impact_per_lr),
        confidence=min(
            t.humid_confidence_cap,
            t.humid_confidence_base + len(humid) * t.humid_confidence_per_entry,
        ),
        evidence=(
            f"{humidity:.0f}% humidity; {humid_flares}/{len(humid)} of your "
            f"high-humidity entries were flares, LR {lr:.1f} from your history"
        ),
        category="weather",
        likelihood_ratio=lr,
        evidence_source="empirical",
    ), lr)


def _temperature(state: AccumulatorState, ctx: ForecastContext, weather: Mapping) -> None:
    t = thresholds.ENVIRONMENT
    current = signals.TEMPERATURE.from_live(weather)
    if current is None:
        return
    series = _series(_readings(ctx.entries, signals.TEMPERATURE, "environmental_data"))
    baseline = _baseline(state, signals.TEMPERATURE, series)
    if not baseline.is_ready:
        return

    z = baseline.z_score(current)
    if abs(z) > t.temperature_z:
        lr = t.temperature_lr * ctx.multipliers.temperature
        state.fire(RiskFactor(
            factor="Unusually hot" if z > 0 else "Unusually cold",
            impact=min(t.temperature_impact_cap, abs(z) * t.temperature_impact_per_z),
            confidence=t.temperature_confidence,
            evidence=(
                f"{current:.0f}°C, {abs(z):.1f}σ from your usual exposure, {_rule(lr)}"
            ),
            category="weather",
            likelihood_ratio=lr,
        ), lr)


def _pollen(state: AccumulatorState, ctx: ForecastContext, weather: Mapping) -> None:
    t = thresholds.ENVIRONMENT
    pollen = signals.POLLEN.from_live(weather)
    if pollen is None or pollen <= t.pollen_above:
        return
    lr = t.pollen_lr * ctx.multipliers.aqi
    state.fire(RiskFactor(
        factor="Elevated pollen",
        impact=min(t.pollen_impact_cap, pollen / t.pollen_impact_scale),
        confidence=t.pollen_confidence,
        evidence=f"Pollen index {pollen:.0f}, {_rule(lr)}",
        category="environmental",
        likelihood_ratio=lr,
    ), lr)


# ---------------------------------------------------------------------------
# 5. Menstrual cycle
# ---------------------------------------------------------------------------

def _cycle_day(entry: LogEntry) -> int | None:
    day = signals.MENSTRUAL_DAY.from_history(entry.physiological_data)
    if day is None:
        day = signals.MENSTRUAL_DAY.from_history(entry.environmental_data)
    if day is None or not day.is_integer():
        return None
    return int(day)


def cycle_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.CYCLE
    today = ctx.inputs.menstrual_day
    if today is None:
        return

    by_day: dict[int, int] = defaultdict(int)
    for flare in ctx.flares:
        day = _cycle_day(flare)
        if day is not None:
            by_day[day] += 1
    tracked = sum(by_day.values())

    if tracked >= t.min_tracked_flares:
        in_window = sum(by_day.get(today + offset, 0) for offset in t.window_offsets)
        window_prob = in_window / tracked
        expected = len(t.window_offsets) / t.cycle_length
        base = window_prob / expected
        if base <= t.min_lr:
            return
        lr = base * ctx.multipliers.cycle
        state.fire(RiskFactor(
            factor=f"Cycle day {today} (high-risk window)",
            impact=min(t.impact_cap, (base - 1) * t.impact_per_lr),
            confidence=min(t.confidence_cap, t.confidence_base + tracked * t.confidence_per_flare),
            evidence=(
                f"{round(window_prob * 100)}% of your cycle-tracked flares cluster "
                f"here (expected {round(expected * 100)}%), LR {lr:.1f} from your "
                f"history ({tracked} instances)"
            ),
            category="cycle",
            likelihood_ratio=lr,
            evidence_source="empirical",
        ), lr)
    elif today in t.default_high_risk_days:
        lr = t.default_lr * ctx.multipliers.cycle
        state.fire(RiskFactor(
            factor=f"Cycle day {today} (prostaglandin peak)",
            impact=t.default_impact,
            confidence=t.default_confidence,
            evidence=(
                "Days 1-3 and 25-28 carry elevated PGE2 and inflammation, "
                f"LR {lr:.1f} (literature default, personalizes with more data)"
            ),
            category="cycle",
            likelihood_ratio=lr,
            evidence_source="default",
        ), lr)


# ---------------------------------------------------------------------------
# 6. Temporal patterns
# ---------------------------------------------------------------------------

def temporal_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.TEMPORAL
    total = len(ctx.entries)
    overall_rate = len(ctx.flares) / total if total else 0.0

    day_flares = [0] * 7
    day_totals = [0] * 7
    hour_flares = [0] * 24
    hour_totals = [0] * 24
    for entry in ctx.entries:
        local = entry.timestamp.astimezone(ctx.tz)
        day_totals[local.weekday()] += 1
        hour_totals[local.hour] += 1
        if entry.is_flare:
            day_flares[local.weekday()] += 1
            hour_flares[local.hour] += 1

    local_now = ctx.now.astimezone(ctx.tz)

    today = local_now.weekday()
    if day_flares[today] >= t.min_day_flares and day_totals[today] > 0:
        day_rate = day_flares[today] / day_totals[today]
        lr = day_rate / overall_rate if overall_rate > 0 else 1.0
        if lr > t.day_min_lr:
            name = DAY_NAMES[today]
            state.fire(RiskFactor(
                factor=f"{name}s are high-risk",
                impact=min(t.day_impact_cap, (lr - 1) * t.day_impact_per_lr),
                confidence=min(
                    t.day_confidence_cap,
                    t.day_confidence_base + day_flares[today] * t.day_confidence_per_flare,
                ),
                evidence=(
                    f"{round(day_rate * 100)}% flare rate on {name}s vs "
                    f"{round(overall_rate * 100)}% overall, LR {lr:.1f} from your "
                    f"history ({day_flares[today]} instances)"
                ),
                category="pattern",
                likelihood_ratio=lr,
                evidence_source="empirical",
            ), lr)

    hours = [(local_now.hour + offset) % 24 for offset in t.hour_offsets]
    window_flares = sum(hour_flares[h] for h in hours)
    window_total = sum(hour_totals[h] for h in hours)
    if window_flares >= t.min_hour_flares and window_total > 0:
        window_rate = window_flares / window_total
        lr = window_rate / overall_rate if overall_rate > 0 else 1.0
        if lr > t.hour_min_lr:
            state.fire(RiskFactor(
                factor="High-risk time window",
                impact=min(t.hour_impact_cap, (lr - 1) * t.hour_impact_per_lr),
                confidence=t.hour_confidence,
                evidence=(
                    f"{round(window_rate * 100)}% flare rate in this time window, "
                    f"LR {lr:.1f} from your history ({window_flares} instances)"
                ),
                category="pattern",
                likelihood_ratio=lr,
                evidence_source="empirical",
            ), lr)

    week = timedelta(days=7)
    this_week = sum(1 for ts in ctx.flare_times if ts > ctx.now - week)
    last_week = sum(1 for ts in ctx.flare_times if ctx.now - 2 * week <= ts < ctx.now - week)
    if this_week > last_week + t.trend_margin:
        state.fire(RiskFactor(
            factor="Worsening flare trend",
            impact=min(
                t.worsening_impact_cap,
                (this_week - last_week) * t.worsening_impact_per_flare,
            ),
            confidence=t.worsening_confidence,
            evidence=f"{this_week} flares this week vs {last_week} last week, escalating",
            category="pattern",
            likelihood_ratio=t.worsening_lr,
        ), t.worsening_lr)
    elif this_week == 0 and last_week >= t.streak_min_previous:
        state.fire(RiskFactor(
            factor="Flare-free streak",
            impact=t.streak_impact,
            confidence=t.streak_confidence,
            evidence="No flares in 7 days, good recovery trajectory",
            category="pattern",
            likelihood_ratio=t.streak_lr,
        ), t.streak_lr)


# ---------------------------------------------------------------------------
# 7. Multi-day lagged triggers
# ---------------------------------------------------------------------------

def _trigger_keys(entry: LogEntry) -> list[str]:
    return [trig.strip().lower() for trig in entry.triggers if trig and trig.strip()]


def lag_trigger_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.LAG
    delays: dict[str, list[float]] = {}
    for entry in ctx.entries:
        for trigger in _trigger_keys(entry):
            bucket = delays.setdefault(trigger, [])
            for flare_time in ctx.flare_times:
                delay = (flare_time - entry.timestamp).total_seconds() / 86400
                if t.min_delay_days < delay < t.max_delay_days:
                    bucket.append(delay)

    recent = {trig for e in ctx.entries_since(t.recent_days) for trig in _trigger_keys(e)}

    for trigger, observed in delays.items():
        if len(observed) < t.min_instances or trigger not in recent:
            continue
        mean_delay = statistics.fmean(observed)
        spread = statistics.pstdev(observed)
        consistency = next(
            (c for below, c in t.consistency_tiers if spread < below),
            t.loose_consistency,
        )
        count = len(observed)
        lr = 1 + count * t.lr_per_instance * consistency
        state.fire(RiskFactor(
            factor=f'Delayed trigger: "{trigger}"',
            impact=min(t.impact_cap, t.impact_base + count * t.impact_per_instance * consistency),
            confidence=consistency,
            evidence=(
                f'Flares follow "{trigger}" by ~{mean_delay:.0f} days '
                f"(±{spread:.1f}d), LR {lr:.1f} from your history ({count} instances)"
            ),
            category="trigger",
            likelihood_ratio=lr,
            evidence_source="empirical",
        ), lr)


# ---------------------------------------------------------------------------
# 8. Medication adherence
# ---------------------------------------------------------------------------

def medication_gap_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.MEDICATION
    logs = ctx.inputs.medication_logs
    if len(logs) < t.min_logs:
        return

    window = timedelta(days=t.window_days)
    cutoff = ctx.now - window
    doses: dict[str, list[datetime]] = {}
    for log in logs:
        if log.taken_at > cutoff:
            doses.setdefault(log.medication_name, []).append(log.taken_at)

    for name, taken in doses.items():
        if len(taken) < t.min_doses:
            continue
        expected = window / len(taken)
        gap = ctx.now - max(taken)
        if gap <= expected * t.gap_factor:
            continue
        ratio = gap / expected
        lr = min(t.lr_base + (ratio - t.gap_factor) * t.lr_per_gap, t.lr_cap)
        lr *= ctx.multipliers.medication
        state.fire(RiskFactor(
            factor=f"Medication gap: {name}",
            impact=min(t.impact_cap, (ratio - 1) * t.impact_per_gap),
            confidence=min(t.confidence_cap, t.confidence_base + len(taken) * t.confidence_per_dose),
            evidence=(
                f"Last taken {gap / timedelta(days=1):.1f} days ago (usual interval "
                f"{expected / timedelta(days=1):.1f} days), rebound risk, {_rule(lr)}"
            ),
            category="medication",
            likelihood_ratio=lr,
        ), lr)


# ---------------------------------------------------------------------------
# 9. Learned correlations
# ---------------------------------------------------------------------------

def _mentions(entry: LogEntry, needle: str) -> bool:
    if needle in entry.note.lower():
        return True
    return any(needle in tag.lower() for tag in (*entry.triggers, *entry.medications))


def learned_correlation_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.CORRELATION
    strong = [c for c in ctx.inputs.correlations if c.confidence >= t.min_confidence]
    recent = ctx.entries_since(t.recent_days)

    for corr in strong[: t.max_applied]:
        needle = corr.trigger_value.strip().lower()
        if not needle or not any(_mentions(e, needle) for e in recent):
            continue
        confidence = min(1.0, corr.confidence)
        lr = 1 + confidence * t.lr_per_confidence
        state.fire(RiskFactor(
            factor=f"Known trigger: {corr.trigger_value}",
            impact=min(t.impact_cap, confidence * t.impact_per_confidence),
            confidence=confidence,
            evidence=(
                f"{corr.trigger_value} → {corr.outcome_value} "
                f"({round(confidence * 100)}% confidence, {corr.occurrence_count}× "
                f"observed), LR {lr:.1f} from a learned correlation"
            ),
            category="trigger",
            likelihood_ratio=lr,
            evidence_source="learned",
        ), lr)


# ---------------------------------------------------------------------------
# 10. Physiological extras
# ---------------------------------------------------------------------------

def physiological_family(state: AccumulatorState, ctx: ForecastContext) -> None:
    t = thresholds.PHYSIOLOGICAL
    wearable = ctx.wearable

    spo2 = signals.SPO2.from_live(wearable)
    if spo2 is not None and spo2 < t.spo2_below:
        state.fire(RiskFactor(
            factor="Low blood oxygen",
            impact=min(t.spo2_impact_cap, (t.spo2_reference - spo2) * t.spo2_impact_per_pct),
            confidence=t.spo2_confidence,
            evidence=f"SpO2 {spo2:.0f}% (normal 95-100%), respiratory stress, {_rule(t.spo2_lr)}",
            category="physiological",
            likelihood_ratio=t.spo2_lr,
        ), t.spo2_lr)

    breathing = signals.BREATHING_RATE.from_live(wearable)
    if breathing is not None and breathing > t.breathing_above:
        state.fire(RiskFactor(
            factor="Elevated breathing rate",
            impact=min(
                t.breathing_impact_cap,
                (breathing - t.breathing_reference) * t.breathing_impact_per_breath,
            ),
            confidence=t.breathing_confidence,
            evidence=(
                f"{breathing:.0f} breaths/min (normal resting 12-20), "
                f"{_rule(t.breathing_lr)}"
            ),
            category="physiological",
            likelihood_ratio=t.breathing_lr,
        ), t.breathing_lr)

    skin = signals.SKIN_TEMPERATURE.from_live(wearable)
    if skin is None:
        return
    series = _series(
        _readings(ctx.entries, signals.SKIN_TEMPERATURE, "physiological_data")
    )
    baseline = _baseline(state, signals.SKIN_TEMPERATURE, series)
    if not baseline.is_ready:
        return
    z = baseline.z_score(skin)
    if z > t.skin_temp_z:
        state.fire(RiskFactor(
            factor="Elevated skin temperature",
            impact=t.skin_temp_impact,
            confidence=t.skin_temp_confidence,
            evidence=(
                f"{z:.1f}σ above your baseline, possible early inflammatory "
                f"response, {_rule(t.skin_temp_lr)}"
            ),
            category="physiological",
            likelihood_ratio=t.skin_temp_lr,
        ), t.skin_temp_lr)


# Evaluation order is fixed; interactions and scoring run afterwards.
SIGNAL_FAMILIES: tuple[tuple[str, SignalFamily], ...] = (
    ("sleep", sleep_family),
    ("hrv", hrv_family),
    ("resting_heart_rate", resting_heart_rate_family),
    ("activity", activity_family),
    ("environment", environment_family),
    ("cycle", cycle_family),
    ("temporal", temporal_family),
    ("lag_triggers", lag_trigger_family),
    ("medication_gap", medication_gap_family),
    ("learned_correlations", learned_correlation_family),
    ("physiological", physiological_family),
)
