"""Tunable thresholds, one table per signal family.

Every magic number the signal families use lives here so each family can be
tuned and tested without touching orchestration logic. Z-scores are against
the user's own EWMA baseline; impacts are on the 0-1 factor scale.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SleepThresholds:
    lookahead_hours: float = 36.0
    # (z below, default LR) tiers used when history is too thin
    default_tiers: tuple[tuple[float, float], ...] = ((-1.5, 2.5), (-1.0, 1.8), (-0.5, 1.3))
    rested_default_z: float = 0.5
    rested_default_lr: float = 0.7

    deficit_z: float = -1.0
    deficit_impact_per_z: float = 0.2
    deficit_impact_cap: float = 0.7
    confidence_base: float = 0.5
    confidence_per_sample: float = 0.008
    confidence_cap: float = 0.9

    surplus_z: float = 0.8
    surplus_impact: float = -0.15
    surplus_confidence: float = 0.6
    surplus_min_lr: float = 0.3

    debt_window_days: float = 3.0
    debt_z: float = -0.8
    debt_lr: float = 1.4
    debt_confidence: float = 0.65
    debt_impact_per_z: float = 0.15
    debt_impact_cap: float = 0.4

    trend_window_days: float = 7.0
    trend_slope: float = -0.3
    trend_min_r2: float = 0.3
    trend_lr: float = 1.5
    trend_confidence: float = 0.6
    trend_impact_per_slope: float = 0.2
    trend_impact_cap: float = 0.3

    deep_ratio_floor: float = 0.10
    deep_lr: float = 1.6
    deep_confidence: float = 0.6
    deep_impact: float = 0.25


@dataclass(frozen=True)
class HrvThresholds:
    lookahead_hours: float = 36.0
    default_tiers: tuple[tuple[float, float], ...] = ((-1.5, 2.8), (-1.0, 2.0))

    low_z: float = -1.0
    low_impact_per_z: float = 0.2
    low_impact_cap: float = 0.65
    confidence_base: float = 0.5
    confidence_per_sample: float = 0.008
    confidence_cap: float = 0.85

    high_z: float = 0.8
    high_lr: float = 0.5
    high_confidence: float = 0.6
    high_impact: float = -0.2

    trend_window_days: float = 5.0
    trend_slope: float = -2.0
    trend_min_r2: float = 0.3
    trend_lr: float = 1.4
    trend_confidence: float = 0.55
    trend_impact: float = 0.2


@dataclass(frozen=True)
class RestingHeartRateThresholds:
    elevated_z: float = 1.5
    lr: float = 1.8
    confidence: float = 0.7
    impact_per_z: float = 0.12
    impact_cap: float = 0.4


@dataclass(frozen=True)
class ActivityThresholds:
    # boom-bust: a flare 12-72h after a high-activity day
    crash_after_hours: float = 12.0
    crash_before_hours: float = 72.0
    high_z: float = 1.5
    default_z: float = 2.0
    default_lr: float = 2.0
    min_boom_bust_rate: float = 0.25
    confidence_base: float = 0.4
    confidence_cap: float = 0.8
    impact_per_z: float = 0.12
    impact_cap: float = 0.55

    spike_lr: float = 1.3
    spike_confidence: float = 0.5
    spike_impact: float = 0.15


@dataclass(frozen=True)
class EnvironmentThresholds:
    pressure_recent_days: float = 1.0
    pressure_drop_mb: float = -4.0
    pressure_sharp_drop_mb: float = -6.0
    pressure_sharp_drop_lr: float = 2.5
    pressure_drop_lr: float = 1.8
    pressure_confidence_base: float = 0.4
    pressure_confidence_per_sample: float = 0.005
    pressure_confidence_cap: float = 0.8
    pressure_impact_cap: float = 0.6
    pressure_rise_mb: float = 4.0
    pressure_rise_lr: float = 0.7
    pressure_rise_confidence: float = 0.5
    pressure_rise_impact: float = -0.1

    pressure_trend_days: float = 3.0
    pressure_trend_slope: float = -3.0
    pressure_trend_min_r2: float = 0.4
    pressure_trend_lr: float = 1.5
    pressure_trend_confidence: float = 0.6
    pressure_trend_impact: float = 0.2

    # (aqi above, LR), highest first
    aqi_tiers: tuple[tuple[float, float], ...] = ((150, 3.0), (100, 2.0), (50, 1.3))
    aqi_fire_above: float = 50
    aqi_unhealthy_above: float = 100
    aqi_unhealthy_confidence: float = 0.75
    aqi_moderate_confidence: float = 0.5
    aqi_impact_offset: float = 30
    aqi_impact_scale: float = 200
    aqi_impact_cap: float = 0.5

    humid_history_above: float = 75
    humid_fire_above: float = 80
    humid_min_lr: float = 1.2
    humid_confidence_base: float = 0.3
    humid_confidence_per_entry: float = 0.02
    humid_confidence_cap: float = 0.7
    humid_impact_per_lr: float = 0.3
    humid_impact_cap: float = 0.3

    temperature_z: float = 1.5
    temperature_lr: float = 1.5
    temperature_confidence: float = 0.5
    temperature_impact_per_z: float = 0.08
    temperature_impact_cap: float = 0.25

    pollen_above: float = 5
    pollen_lr: float = 1.3
    pollen_confidence: float = 0.55
    pollen_impact_scale: float = 30
    pollen_impact_cap: float = 0.25


@dataclass(frozen=True)
class CycleThresholds:
    min_tracked_flares: int = 5
    window_offsets: tuple[int, ...] = (-2, -1, 0, 1, 2)
    cycle_length: int = 28
    min_lr: float = 1.2
    confidence_base: float = 0.4
    confidence_per_flare: float = 0.015
    confidence_cap: float = 0.85
    impact_per_lr: float = 0.3
    impact_cap: float = 0.55

    # prostaglandin peaks, used until the user has tracked enough flares
    default_high_risk_days: tuple[int, ...] = (1, 2, 3, 25, 26, 27, 28)
    default_lr: float = 1.6
    default_confidence: float = 0.45
    default_impact: float = 0.3


@dataclass(frozen=True)
class TemporalThresholds:
    min_day_flares: int = 3
    day_min_lr: float = 1.3
    day_confidence_base: float = 0.3
    day_confidence_per_flare: float = 0.03
    day_confidence_cap: float = 0.7
    day_impact_per_lr: float = 0.15
    day_impact_cap: float = 0.3

    hour_offsets: tuple[int, ...] = (-1, 0, 1, 2, 3)
    min_hour_flares: int = 3
    hour_min_lr: float = 1.3
    hour_confidence: float = 0.55
    hour_impact_per_lr: float = 0.1
    hour_impact_cap: float = 0.2

    trend_margin: int = 2
    worsening_lr: float = 1.6
    worsening_confidence: float = 0.7
    worsening_impact_per_flare: float = 0.04
    worsening_impact_cap: float = 0.3
    streak_min_previous: int = 2
    streak_lr: float = 0.5
    streak_confidence: float = 0.6
    streak_impact: float = -0.25


@dataclass(frozen=True)
class LagThresholds:
    min_delay_days: float = 0.5
    max_delay_days: float = 5.0
    min_instances: int = 3
    recent_days: float = 2.0
    # (delay std-dev below, consistency), tightest first
    consistency_tiers: tuple[tuple[float, float], ...] = ((1.5, 0.8), (2.5, 0.5))
    loose_consistency: float = 0.3
    lr_per_instance: float = 0.1
    impact_base: float = 0.1
    impact_per_instance: float = 0.02
    impact_cap: float = 0.4


@dataclass(frozen=True)
class MedicationThresholds:
    min_logs: int = 5
    window_days: float = 14.0
    min_doses: int = 3
    gap_factor: float = 1.8
    lr_base: float = 1.5
    lr_per_gap: float = 0.3
    lr_cap: float = 4.0
    confidence_base: float = 0.4
    confidence_per_dose: float = 0.02
    confidence_cap: float = 0.7
    impact_per_gap: float = 0.12
    impact_cap: float = 0.45


@dataclass(frozen=True)
class CorrelationThresholds:
    min_confidence: float = 0.5
    max_applied: int = 8
    recent_days: float = 2.0
    lr_per_confidence: float = 2.0
    impact_per_confidence: float = 0.4
    impact_cap: float = 0.45


@dataclass(frozen=True)
class PhysiologicalThresholds:
    spo2_below: float = 95
    spo2_reference: float = 96
    spo2_lr: float = 2.0
    spo2_confidence: float = 0.65
    spo2_impact_per_pct: float = 0.08
    spo2_impact_cap: float = 0.35

    breathing_above: float = 20
    breathing_reference: float = 16
    breathing_lr: float = 1.5
    breathing_confidence: float = 0.5
    breathing_impact_per_breath: float = 0.025
    breathing_impact_cap: float = 0.2

    skin_temp_z: float = 1.2
    skin_temp_lr: float = 1.6
    skin_temp_confidence: float = 0.55
    skin_temp_impact: float = 0.2


@dataclass(frozen=True)
class ConfidenceCalibration:
    richness_base: float = 0.2
    richness_per_signal: float = 0.08
    richness_per_entry: float = 0.001
    richness_cap: float = 0.9
    no_factor_confidence: float = 0.3
    overall_cap: float = 0.95


SLEEP = SleepThresholds()
HRV = HrvThresholds()
RESTING_HR = RestingHeartRateThresholds()
ACTIVITY = ActivityThresholds()
ENVIRONMENT = EnvironmentThresholds()
CYCLE = CycleThresholds()
TEMPORAL = TemporalThresholds()
LAG = LagThresholds()
MEDICATION = MedicationThresholds()
CORRELATION = CorrelationThresholds()
PHYSIOLOGICAL = PhysiologicalThresholds()
CONFIDENCE = ConfidenceCalibration()
