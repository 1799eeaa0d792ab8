"""Narrative generation: prediction text and recommendations.

Copy lives in ``narrative_templates.yaml`` next to this module; selection is
driven by the risk score band and by which categories appear among the
risk-positive factors.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from flarecast.domains.flare.domain_logic.signal_models import RiskFactor

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "narrative_templates.yaml"


class NarrativeTemplateError(Exception):
    """Raised when the narrative template file is missing required sections."""


@dataclass(frozen=True)
class PredictionBand:
    template: str
    below: int | None = None


@dataclass(frozen=True)
class RecommendationRule:
    categories: frozenset[str]
    text: str


@dataclass(frozen=True)
class NarrativeTemplates:
    bands: tuple[PredictionBand, ...]
    clauses: dict[str, str] = field(default_factory=dict)
    recommendations: tuple[RecommendationRule, ...] = ()
    fallback_recommendation: str = ""

    def band_for(self, score: int) -> PredictionBand:
        for band in self.bands:
            if band.below is None or score < band.below:
                return band
        return self.bands[-1]


def load_templates(path: str | Path = TEMPLATES_PATH) -> NarrativeTemplates:
    """Parse a narrative template YAML file."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}

    bands_data = data.get("prediction_bands") or []
    if not bands_data:
        raise NarrativeTemplateError(f"{path}: no prediction_bands defined")
    if bands_data[-1].get("below") is not None:
        raise NarrativeTemplateError(f"{path}: last prediction band must not set 'below'")

    templates = NarrativeTemplates(
        bands=tuple(
            PredictionBand(template=b["template"].strip(), below=b.get("below"))
            for b in bands_data
        ),
        clauses=dict(data.get("clauses", {})),
        recommendations=tuple(
            RecommendationRule(frozenset(r.get("categories", [])), r["text"].strip())
            for r in data.get("recommendations", [])
        ),
        fallback_recommendation=str(data.get("fallback_recommendation", "")).strip(),
    )
    logger.debug("Loaded %d narrative bands from %s", len(templates.bands), path.name)
    return templates


@functools.lru_cache(maxsize=1)
def default_templates() -> NarrativeTemplates:
    return load_templates()


def build_prediction(
    *,
    score: int,
    factors: list[RiskFactor],
    ranked_risks: list[RiskFactor],
    prior: float,
    interactions: list[str],
    active_categories: int,
    templates: NarrativeTemplates | None = None,
) -> str:
    """Render the one-paragraph prediction for a score band."""
    templates = templates or default_templates()
    clauses = templates.clauses
    protective = sum(1 for f in factors if f.impact < 0)

    top = ranked_risks[0].factor if ranked_risks else clauses.get("no_top_factor", "")
    values = {
        "score": score,
        "signal_count": len(factors),
        "protective_clause": (
            clauses.get("protective", "").format(count=protective) if protective else ""
        ),
        "top_factor": top,
        "prior_pct": round(prior * 100),
        "lr_count": sum(1 for f in factors if f.likelihood_ratio is not None),
        "compound_clause": (
            clauses.get("compounded", "").format(second_factor=ranked_risks[1].factor.lower())
            if len(ranked_risks) > 1 else ""
        ),
        "interaction_clause": clauses.get("interactions", "") if interactions else "",
        "top_two": " + ".join(f.factor for f in ranked_risks[:2]) or top,
        "active_categories": active_categories,
    }
    return templates.band_for(score).template.format(**values)


def build_recommendations(
    ranked_risks: list[RiskFactor],
    templates: NarrativeTemplates | None = None,
) -> list[str]:
    """One recommendation per category group present among the risk factors."""
    templates = templates or default_templates()
    present = {f.category for f in ranked_risks}
    recommendations = [
        rule.text for rule in templates.recommendations if rule.categories & present
    ]
    if not recommendations and templates.fallback_recommendation:
        recommendations.append(templates.fallback_recommendation)
    return recommendations
