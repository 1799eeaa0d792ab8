"""Empirical likelihood ratios from a user's own history.

LR+ = P(signal | flare) / P(signal | no flare). Where the user has too few
historical instances of a condition, a literature-informed default is used
instead and tagged as such so the two kinds of evidence stay distinguishable.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from flarecast.domains.flare.domain_logic.signal_models import EvidenceSource

LR_CAP = 20.0
FALSE_POSITIVE_FLOOR = 0.01
MIN_EMPIRICAL_INSTANCES = 3


def compute_lr(
    entries_with_signal: int,
    total_entries: int,
    flares_with_signal: int,
    total_flares: int,
    *,
    cap: float = LR_CAP,
) -> float:
    """Positive likelihood ratio from co-occurrence counts.

    Never negative, never above ``cap``; zero false positives hit the floored
    denominator instead of dividing by zero.
    """
    if total_flares <= 0 or total_entries <= 0:
        return 1.0

    non_flare_entries = total_entries - total_flares
    non_flares_with_signal = max(entries_with_signal - flares_with_signal, 0)

    sensitivity = max(flares_with_signal, 0) / total_flares
    false_positive_rate = (
        non_flares_with_signal / non_flare_entries if non_flare_entries > 0 else 0.0
    )

    lr = sensitivity / max(false_positive_rate, FALSE_POSITIVE_FLOOR)
    return min(max(lr, 0.0), cap)


@dataclass(frozen=True)
class LikelihoodEstimate:
    """A likelihood ratio plus where it came from."""

    value: float
    source: EvidenceSource
    instances: int = 0

    def scaled(self, multiplier: float) -> LikelihoodEstimate:
        """Apply a condition multiplier, keeping provenance."""
        return LikelihoodEstimate(self.value * multiplier, self.source, self.instances)

    def describe(self) -> str:
        """Evidence suffix naming the provenance of the ratio."""
        if self.source == "empirical":
            return f"LR {self.value:.1f} from your history ({self.instances} instances)"
        return f"LR {self.value:.1f} (literature default, personalizes with more data)"


def estimate_lr(
    *,
    entries_with_signal: int,
    total_entries: int,
    flares_with_signal: int,
    total_flares: int,
    default: float,
    min_instances: int = MIN_EMPIRICAL_INSTANCES,
) -> LikelihoodEstimate:
    """Empirical LR when there is enough history, else the tiered default."""
    if entries_with_signal >= min_instances:
        value = compute_lr(
            entries_with_signal, total_entries, flares_with_signal, total_flares
        )
        return LikelihoodEstimate(value, "empirical", entries_with_signal)
    return LikelihoodEstimate(default, "default", entries_with_signal)


def tiered_default(z: float, tiers: Sequence[tuple[float, float]], neutral: float = 1.0) -> float:
    """Pick the first ``(z_below, lr)`` tier whose bound ``z`` falls under."""
    for bound, lr in tiers:
        if z < bound:
            return lr
    return neutral


def count_followed_by_flare(
    times: Iterable[datetime],
    flare_times: Sequence[datetime],
    *,
    start: timedelta,
    end: timedelta,
) -> int:
    """Count condition timestamps followed by a flare in ``(t+start, t+end)``.

    ``flare_times`` must be sorted ascending.
    """
    hits = 0
    for t in times:
        lo = bisect.bisect_right(flare_times, t + start)
        hi = bisect.bisect_left(flare_times, t + end)
        if hi > lo:
            hits += 1
    return hits
