"""Condition-specific signal sensitivity multipliers.

Each supported diagnosis amplifies the signal families it is known to be
sensitive to (migraine and barometric pressure, asthma and air quality, ...).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, fields
from enum import Enum

logger = logging.getLogger(__name__)


class Condition(str, Enum):
    """Closed set of conditions with a tuned sensitivity profile."""

    MIGRAINE = "migraine"
    FIBROMYALGIA = "fibromyalgia"
    ASTHMA = "asthma"
    RHEUMATOID_ARTHRITIS = "rheumatoid arthritis"
    ENDOMETRIOSIS = "endometriosis"
    CROHNS_DISEASE = "crohn's disease"
    IBS = "ibs"
    ACNE = "acne"
    GERD = "gerd"
    LOWER_BACK_PAIN = "lower back pain"
    ECZEMA = "eczema"
    PSORIASIS = "psoriasis"
    LUPUS = "lupus"
    MULTIPLE_SCLEROSIS = "multiple sclerosis"
    ANKYLOSING_SPONDYLITIS = "ankylosing spondylitis"

    @classmethod
    def parse(cls, name: str) -> Condition | None:
        """Normalize a free-text diagnosis; None when unsupported."""
        if not isinstance(name, str):
            return None
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ConditionMultipliers:
    """Per-signal-family likelihood-ratio multipliers (1.0 = neutral)."""

    sleep: float = 1.0
    hrv: float = 1.0
    pressure: float = 1.0
    humidity: float = 1.0
    aqi: float = 1.0
    activity: float = 1.0
    temperature: float = 1.0
    cycle: float = 1.0
    medication: float = 1.0

    def merged_max(self, other: ConditionMultipliers) -> ConditionMultipliers:
        """Field-wise maximum: the most sensitizing condition dominates."""
        return ConditionMultipliers(**{
            f.name: max(getattr(self, f.name), getattr(other, f.name))
            for f in fields(self)
        })


NEUTRAL_MULTIPLIERS = ConditionMultipliers()

#                                               sleep hrv  pres humid aqi  act  temp cycle med
CONDITION_MULTIPLIERS: dict[Condition, ConditionMultipliers] = {
    Condition.MIGRAINE:               ConditionMultipliers(1.6, 1.5, 2.0, 1.3, 0.8, 1.0, 1.4, 1.8, 1.5),
    Condition.FIBROMYALGIA:           ConditionMultipliers(2.0, 1.7, 1.5, 1.3, 0.7, 1.8, 1.2, 1.3, 1.2),
    Condition.ASTHMA:                 ConditionMultipliers(1.0, 0.9, 1.2, 1.7, 2.5, 1.3, 1.6, 0.8, 1.5),
    Condition.RHEUMATOID_ARTHRITIS:   ConditionMultipliers(1.5, 1.4, 1.8, 1.7, 0.8, 1.5, 1.4, 1.2, 1.7),
    Condition.ENDOMETRIOSIS:          ConditionMultipliers(1.5, 1.4, 0.8, 0.7, 0.6, 1.2, 0.8, 2.5, 1.6),
    Condition.CROHNS_DISEASE:         ConditionMultipliers(1.7, 1.8, 0.8, 0.7, 0.6, 1.3, 0.8, 1.0, 1.8),
    Condition.IBS:                    ConditionMultipliers(1.5, 1.8, 0.8, 0.7, 0.5, 1.2, 0.8, 1.1, 1.5),
    Condition.ACNE:                   ConditionMultipliers(1.5, 1.3, 0.5, 1.6, 1.0, 0.8, 1.3, 1.5, 1.2),
    Condition.GERD:                   ConditionMultipliers(1.3, 1.6, 0.6, 0.5, 0.5, 1.5, 0.6, 0.7, 1.7),
    Condition.LOWER_BACK_PAIN:        ConditionMultipliers(1.6, 1.2, 1.3, 1.0, 0.5, 2.0, 1.0, 0.8, 1.3),
    Condition.ECZEMA:                 ConditionMultipliers(1.5, 1.3, 0.7, 1.8, 1.3, 0.8, 1.6, 1.0, 1.3),
    Condition.PSORIASIS:              ConditionMultipliers(1.6, 1.4, 0.7, 1.7, 1.1, 0.8, 1.5, 1.0, 1.4),
    Condition.LUPUS:                  ConditionMultipliers(1.8, 1.6, 1.2, 1.4, 1.0, 1.6, 1.3, 1.5, 1.6),
    Condition.MULTIPLE_SCLEROSIS:     ConditionMultipliers(1.7, 1.5, 1.0, 1.2, 0.8, 1.7, 1.5, 1.2, 1.5),
    Condition.ANKYLOSING_SPONDYLITIS: ConditionMultipliers(1.6, 1.3, 1.6, 1.5, 0.7, 1.8, 1.3, 1.0, 1.5),
}


def multipliers_for(conditions: Iterable[str]) -> ConditionMultipliers:
    """Effective multipliers for a user's diagnosed conditions.

    Starts from neutral and takes the per-family maximum over every
    supported condition, so a desensitizing profile (< 1.0) never lowers
    another signal below neutral. Unsupported names contribute neutral
    weights.
    """
    merged = NEUTRAL_MULTIPLIERS
    for name in conditions or ():
        condition = Condition.parse(name)
        if condition is None:
            logger.debug("Unsupported condition in profile; using neutral weights")
            continue
        merged = merged.merged_max(CONDITION_MULTIPLIERS[condition])
    return merged
