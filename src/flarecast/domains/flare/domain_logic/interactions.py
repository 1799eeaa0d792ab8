"""Cross-signal interaction resolution.

Runs after every signal family has fired. Co-active stress systems compound
multiplicatively (allostatic load), so specific category pairs get an extra
fixed-LR Bayesian update and the set of fired interactions is summarized as
one synthetic factor.
"""

from __future__ import annotations

from dataclasses import dataclass

from flarecast.domains.flare.domain_logic.bayesian import AccumulatorState
from flarecast.domains.flare.domain_logic.signal_models import RiskFactor

SLEEP_CATEGORIES = frozenset({"sleep"})
STRESS_CATEGORIES = frozenset({"stress", "physiological"})
WEATHER_CATEGORIES = frozenset({"weather", "environmental"})
ACTIVITY_CATEGORIES = frozenset({"activity"})
MEDICATION_CATEGORIES = frozenset({"medication"})

OVERLOAD_MIN_CATEGORIES = 3

COMPOUND_FACTOR = "Compounding risk signals"
COMPOUND_CONFIDENCE = 0.7
COMPOUND_IMPACT_PER_INTERACTION = 0.08
COMPOUND_IMPACT_CAP = 0.3


@dataclass(frozen=True)
class Interaction:
    label: str
    likelihood_ratio: float
    confidence: float


SLEEP_X_STRESS = Interaction("sleep deficit × autonomic stress", 1.4, 0.7)
WEATHER_X_RECOVERY = Interaction("environmental pressure × weakened recovery", 1.25, 0.6)
MEDICATION_X_STRESSORS = Interaction("medication gap × active stressors", 1.3, 0.65)
ALLOSTATIC_OVERLOAD = Interaction("allostatic overload (3+ stress systems active)", 1.3, 0.6)


@dataclass(frozen=True)
class ActiveCategories:
    """Which stress systems have at least one risk-positive factor."""

    sleep: bool
    stress: bool
    weather: bool
    activity: bool
    medication: bool
    distinct: int

    @classmethod
    def from_factors(cls, factors: list[RiskFactor]) -> ActiveCategories:
        categories = {f.category for f in factors if f.is_risk}
        return cls(
            sleep=bool(categories & SLEEP_CATEGORIES),
            stress=bool(categories & STRESS_CATEGORIES),
            weather=bool(categories & WEATHER_CATEGORIES),
            activity=bool(categories & ACTIVITY_CATEGORIES),
            medication=bool(categories & MEDICATION_CATEGORIES),
            distinct=len(categories),
        )


def detect_interactions(active: ActiveCategories) -> list[Interaction]:
    """Interactions that apply to a set of active categories, in update order."""
    fired: list[Interaction] = []
    if active.sleep and active.stress:
        fired.append(SLEEP_X_STRESS)
    if active.weather and (active.sleep or active.stress):
        fired.append(WEATHER_X_RECOVERY)
    if active.medication and (active.sleep or active.stress or active.weather):
        fired.append(MEDICATION_X_STRESSORS)
    if active.distinct >= OVERLOAD_MIN_CATEGORIES:
        fired.append(ALLOSTATIC_OVERLOAD)
    return fired


def resolve_interactions(state: AccumulatorState) -> ActiveCategories:
    """Apply interaction updates and append the summarizing factor.

    Returns the active-category snapshot taken before the synthetic factor
    was added, which the narrative uses to count stress systems.
    """
    active = ActiveCategories.from_factors(state.factors)
    fired = detect_interactions(active)

    for interaction in fired:
        state.risk.update(interaction.likelihood_ratio, interaction.confidence)
        state.interactions.append(interaction.label)

    if fired:
        state.record(RiskFactor(
            factor=COMPOUND_FACTOR,
            impact=min(COMPOUND_IMPACT_CAP, len(fired) * COMPOUND_IMPACT_PER_INTERACTION),
            confidence=COMPOUND_CONFIDENCE,
            evidence=(
                "Cross-signal interactions: "
                + "; ".join(i.label for i in fired)
                + ". Risk compounds non-linearly under allostatic load"
            ),
            category="pattern",
            evidence_source="rule",
        ))
    return active
