"""Tests for prediction text and recommendation selection."""

from __future__ import annotations

import pytest

from flarecast.domains.flare.domain_logic.narrative import (
    NarrativeTemplateError,
    build_prediction,
    build_recommendations,
    default_templates,
    load_templates,
)
from flarecast.domains.flare.domain_logic.signal_models import RiskFactor


def _factor(name: str, category: str, impact: float = 0.4) -> RiskFactor:
    return RiskFactor(
        factor=name,
        impact=impact,
        confidence=0.7,
        evidence="test",
        category=category,  # type: ignore[arg-type]
        likelihood_ratio=2.0,
    )


def _predict(score: int, factors: list[RiskFactor], **kwargs) -> str:
    ranked = [f for f in factors if f.impact > 0]
    return build_prediction(
        score=score,
        factors=factors,
        ranked_risks=ranked,
        prior=kwargs.get("prior", 0.1),
        interactions=kwargs.get("interactions", []),
        active_categories=kwargs.get("active_categories", 1),
    )


class TestTemplates:
    def test_bundled_templates_load(self):
        templates = default_templates()
        assert len(templates.bands) == 4
        assert templates.fallback_recommendation

    def test_missing_bands_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("clauses: {}\n")
        with pytest.raises(NarrativeTemplateError, match="no prediction_bands"):
            load_templates(path)

    def test_open_ended_last_band_required(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("prediction_bands:\n  - below: 50\n    template: x\n")
        with pytest.raises(NarrativeTemplateError, match="last prediction band"):
            load_templates(path)


class TestPrediction:
    def test_low_band_counts_protective(self):
        text = _predict(10, [_factor("Above-average sleep", "sleep", impact=-0.15)])
        assert text.startswith("Low risk (10%)")
        assert "1 protective factor(s)" in text

    def test_moderate_band_names_top_factor(self):
        text = _predict(30, [_factor("Sleep deficit", "sleep")], prior=0.12)
        assert text.startswith("Moderate risk (30%)")
        assert "Sleep deficit" in text
        assert "12%/day" in text

    def test_elevated_band_compounding(self):
        factors = [_factor("Sleep deficit", "sleep"), _factor("Low HRV", "stress")]
        text = _predict(50, factors, interactions=["sleep × stress"])
        assert "compounded by low hrv" in text
        assert "Cross-signal interactions detected." in text

    def test_high_band_lists_top_two(self):
        factors = [_factor("Sleep deficit", "sleep"), _factor("Low HRV", "stress")]
        text = _predict(80, factors, active_categories=3)
        assert text.startswith("High risk (80%)")
        assert "Sleep deficit + Low HRV" in text
        assert "3 stress" in text

    def test_no_factors_uses_placeholder(self):
        assert "various factors" in _predict(40, [])


class TestRecommendations:
    def test_one_per_category_group(self):
        recs = build_recommendations([
            _factor("Sleep deficit", "sleep"),
            _factor("Low HRV", "stress"),
            _factor("High humidity", "environmental"),
        ])
        assert len(recs) == 3
        assert recs[0].startswith("Prioritize 7-9h sleep")

    def test_fallback_when_no_risks(self):
        recs = build_recommendations([])
        assert recs == [default_templates().fallback_recommendation]
