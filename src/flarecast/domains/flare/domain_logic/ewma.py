"""Adaptive per-signal baselines (exponentially weighted mean and variance).

A baseline answers "is this value unusual for this specific person". It is
rebuilt from scratch on every forecast and never persisted.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

# Floor on the variance so constant histories do not divide by zero.
VARIANCE_FLOOR = 0.0001

# Minimum samples before a baseline may be used for scoring.
MIN_READY_SAMPLES = 5

# Control-limit multipliers (EWMA control chart convention).
WARNING_LIMIT = 2.0
ALARM_LIMIT = 3.0


class BaselineNotReadyError(Exception):
    """Raised when scoring against a baseline with too few samples."""


class EWMABaseline:
    """Exponentially weighted running mean/variance for one signal.

    Usage::

        baseline = EWMABaseline(alpha=0.12)
        baseline.feed_sorted([7.5, 8.0, 8.2, 7.9, 8.1])  # oldest first
        if baseline.is_ready:
            z = baseline.z_score(5.0)
    """

    def __init__(self, alpha: float = 0.15) -> None:
        if not 0 < alpha <= 1:
            raise ValueError(f"alpha must be in (0, 1], got {alpha!r}")
        self.alpha = alpha
        self.mean = 0.0
        self.variance = 0.0
        self.count = 0

    def feed_sorted(self, values: Iterable[float]) -> None:
        """Rebuild the baseline from chronologically ordered samples."""
        self.mean = 0.0
        self.variance = 0.0
        self.count = 0
        for value in values:
            self.update(value)

    def update(self, value: float) -> None:
        """Fold one newer sample into the baseline."""
        if self.count == 0:
            self.mean = value
            self.variance = 0.0
            self.count = 1
            return
        self.count += 1
        diff = value - self.mean
        self.mean = self.alpha * value + (1 - self.alpha) * self.mean
        self.variance = (1 - self.alpha) * (self.variance + self.alpha * diff * diff)

    @property
    def std_dev(self) -> float:
        return math.sqrt(max(self.variance, VARIANCE_FLOOR))

    @property
    def is_ready(self) -> bool:
        return self.count >= MIN_READY_SAMPLES

    def z_score(self, value: float) -> float:
        """Standard deviations between ``value`` and the baseline mean.

        Raises:
            BaselineNotReadyError: If fewer than 5 samples have been fed.
        """
        if not self.is_ready:
            raise BaselineNotReadyError(
                f"baseline has {self.count} samples, needs {MIN_READY_SAMPLES}"
            )
        return (value - self.mean) / self.std_dev

    def is_anomaly(self, value: float, limit: float = WARNING_LIMIT) -> bool:
        """True when ``value`` falls outside ``mean ± limit·σ``."""
        return abs(self.z_score(value)) > limit

    def __repr__(self) -> str:
        return (
            f"EWMABaseline(alpha={self.alpha}, mean={self.mean:.4f}, "
            f"std_dev={self.std_dev:.4f}, count={self.count})"
        )
