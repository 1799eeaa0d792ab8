"""Sequential Bayesian risk accumulation.

The posterior starts at the user's own daily flare rate and is refined by
one confidence-weighted likelihood-ratio update per fired signal:

    LR_eff = 1 + confidence * (LR - 1)
    odds'  = odds * LR_eff

The probability is clamped to [0.01, 0.99] after every update so no single
run of evidence can produce degenerate certainty.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flarecast.domains.flare.domain_logic.ewma import EWMABaseline
from flarecast.domains.flare.domain_logic.signal_models import RiskFactor

PROBABILITY_FLOOR = 0.01
PROBABILITY_CEILING = 0.99
PRIOR_CAP = 0.8


def _clamp(value: float, lo: float = PROBABILITY_FLOOR, hi: float = PROBABILITY_CEILING) -> float:
    return max(lo, min(hi, value))


def prior_from_history(total_flares: int, observation_days: float) -> float:
    """Historical flares per day, capped at 0.8."""
    return min(PRIOR_CAP, total_flares / max(1.0, observation_days))


class BayesianRiskState:
    """Running posterior probability of a flare in the next 24 hours."""

    def __init__(self, prior: float) -> None:
        self.prior = prior
        self.probability = _clamp(prior)

    def update(self, likelihood_ratio: float, confidence: float) -> float:
        """Apply one confidence-weighted likelihood-ratio update.

        Returns the clamped posterior probability.
        """
        confidence = max(0.0, min(1.0, confidence))
        effective_lr = max(0.0, 1 + confidence * (likelihood_ratio - 1))

        odds = self.probability / (1 - self.probability)
        posterior_odds = odds * effective_lr
        self.probability = _clamp(posterior_odds / (1 + posterior_odds))
        return self.probability

    @property
    def risk_percent(self) -> int:
        return round(self.probability * 100)


@dataclass
class AccumulatorState:
    """Everything the signal families share during one forecast.

    Families append factors and update the posterior through :meth:`fire`;
    baselines are kept so the orchestrator can count which signals had
    enough history.
    """

    risk: BayesianRiskState
    factors: list[RiskFactor] = field(default_factory=list)
    baselines: dict[str, EWMABaseline] = field(default_factory=dict)
    interactions: list[str] = field(default_factory=list)

    def fire(self, factor: RiskFactor, likelihood_ratio: float) -> None:
        """Record a factor and update the posterior with its confidence."""
        self.risk.update(likelihood_ratio, factor.confidence)
        self.factors.append(factor)

    def record(self, factor: RiskFactor) -> None:
        """Record a factor without moving the posterior."""
        self.factors.append(factor)

    def baseline_ready(self, name: str) -> bool:
        baseline = self.baselines.get(name)
        return baseline is not None and baseline.is_ready

    @property
    def risk_factors(self) -> list[RiskFactor]:
        return [f for f in self.factors if f.is_risk]
