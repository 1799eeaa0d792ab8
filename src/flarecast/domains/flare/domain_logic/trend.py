"""Short-window trend detection.

Distinguishes "one bad night" from "getting steadily worse" by fitting an
ordinary least-squares line over the last few days of a signal.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

SECONDS_PER_DAY = 86400.0
MIN_TREND_POINTS = 3


@dataclass(frozen=True)
class TimedValue:
    """A signal reading paired with when it was recorded."""

    value: float
    timestamp: datetime


@dataclass(frozen=True)
class TrendFit:
    """Least-squares fit in signal units per day."""

    slope: float
    intercept: float
    r2: float
    points: int


def compute_slope(points: Sequence[TimedValue]) -> TrendFit | None:
    """Fit slope/intercept/R² over chronologically ordered readings.

    Returns None with fewer than 3 points or when every reading shares a
    timestamp (no spread on the x axis).
    """
    if len(points) < MIN_TREND_POINTS:
        return None

    t0 = points[0].timestamp
    xs = [(p.timestamp - t0).total_seconds() / SECONDS_PER_DAY for p in points]
    ys = [p.value for p in points]

    try:
        slope, intercept = statistics.linear_regression(xs, ys)
    except statistics.StatisticsError:
        return None

    mean_y = statistics.fmean(ys)
    ss_tot = sum((y - mean_y) ** 2 for y in ys)
    ss_res = sum((y - (intercept + slope * x)) ** 2 for x, y in zip(xs, ys))
    r2 = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0

    return TrendFit(slope=slope, intercept=intercept, r2=r2, points=len(points))


def recent_window(
    series: Sequence[TimedValue], now: datetime, days: float
) -> list[TimedValue]:
    """Readings strictly newer than ``now - days``."""
    cutoff = now - timedelta(days=days)
    return [p for p in series if p.timestamp > cutoff]


def is_deteriorating(
    fit: TrendFit | None,
    *,
    slope_below: float,
    min_r2: float,
) -> bool:
    """True when the fit falls faster than ``slope_below`` with enough R²."""
    return fit is not None and fit.slope < slope_below and fit.r2 > min_r2
