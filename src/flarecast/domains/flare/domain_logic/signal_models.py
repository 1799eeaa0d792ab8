"""Forecast result types and domain constants for the flare-risk engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

MODEL_VERSION = "v3-bayesian-ewma"
FORECAST_TIMEFRAME = "next 24 hours"

# Fewer entries than this bypasses the pipeline entirely.
MIN_ENTRIES_FOR_FORECAST = 5

# Output cap for the ordered factor list.
MAX_FACTORS = 12

# Score breakpoints, highest first.
RISK_LEVEL_BREAKPOINTS: list[tuple[int, str]] = [
    (75, "very_high"),
    (55, "high"),
    (35, "moderate"),
]

RiskLevel = Literal["low", "moderate", "high", "very_high"]

FactorCategory = Literal[
    "sleep",
    "activity",
    "stress",
    "weather",
    "cycle",
    "pattern",
    "medication",
    "trigger",
    "physiological",
    "environmental",
]

# Where a factor's likelihood ratio came from:
#   empirical: computed from this user's own history
#   default: literature-informed fallback (too few historical instances)
#   learned: an externally discovered trigger -> outcome correlation
#   rule: fixed clinical rule or interaction multiplier
EvidenceSource = Literal["empirical", "default", "learned", "rule"]


def risk_level_for_score(score: int) -> RiskLevel:
    """Map a 0-100 risk score onto its risk level."""
    for floor, level in RISK_LEVEL_BREAKPOINTS:
        if score >= floor:
            return level  # type: ignore[return-value]
    return "low"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskFactor:
    """One explainable contributor to the forecast.

    Positive ``impact`` raises risk, negative ``impact`` is protective.
    """

    factor: str
    impact: float
    confidence: float
    evidence: str
    category: FactorCategory
    likelihood_ratio: float | None = None
    evidence_source: EvidenceSource = "rule"

    @property
    def weight(self) -> float:
        """Sort key: impact scaled by confidence."""
        return self.impact * self.confidence

    @property
    def is_risk(self) -> bool:
        return self.impact > 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "factor": self.factor,
            "impact": round(self.impact, 4),
            "confidence": round(self.confidence, 4),
            "evidence": self.evidence,
            "category": self.category,
            "evidenceSource": self.evidence_source,
        }
        if self.likelihood_ratio is not None:
            data["likelihoodRatio"] = round(self.likelihood_ratio, 4)
        return data


@dataclass
class Forecast:
    """Final 24h flare-risk forecast returned to the caller."""

    risk_score: int
    risk_level: RiskLevel
    confidence: float
    factors: list[RiskFactor] = field(default_factory=list)
    prediction: str = ""
    recommendations: list[str] = field(default_factory=list)
    protective_factors: list[str] = field(default_factory=list)
    timeframe: str = FORECAST_TIMEFRAME
    model_version: str = MODEL_VERSION
    needs_more_data: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase wire form of the forecast."""
        return {
            "riskScore": self.risk_score,
            "riskLevel": self.risk_level,
            "confidence": round(self.confidence, 4),
            "factors": [f.to_dict() for f in self.factors],
            "prediction": self.prediction,
            "recommendations": list(self.recommendations),
            "protectiveFactors": list(self.protective_factors),
            "timeframe": self.timeframe,
            "modelVersion": self.model_version,
        }

    def to_response(self) -> dict[str, Any]:
        """Wrap the forecast in the success envelope."""
        response: dict[str, Any] = {"forecast": self.to_dict()}
        if self.needs_more_data:
            response["needsMoreData"] = True
        return response


def needs_more_data_forecast(model_version: str = MODEL_VERSION) -> Forecast:
    """Fixed neutral forecast returned while a user is still building history."""
    return Forecast(
        risk_score=50,
        risk_level="moderate",
        confidence=0.15,
        factors=[],
        prediction="Keep logging for 1-2 weeks to unlock personalized predictions.",
        recommendations=[
            "Log daily to build your personal baselines",
            "Connect a wearable for 25+ automatic data points",
        ],
        protective_factors=[],
        model_version=model_version,
        needs_more_data=True,
    )
