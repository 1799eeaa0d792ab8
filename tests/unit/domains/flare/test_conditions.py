"""Tests for condition sensitivity multipliers."""

from __future__ import annotations

from flarecast.domains.flare.domain_logic.conditions import (
    CONDITION_MULTIPLIERS,
    NEUTRAL_MULTIPLIERS,
    Condition,
    multipliers_for,
)


class TestParse:
    def test_case_and_whitespace_insensitive(self):
        assert Condition.parse("  Rheumatoid Arthritis ") is Condition.RHEUMATOID_ARTHRITIS

    def test_unsupported_is_none(self):
        assert Condition.parse("common cold") is None
        assert Condition.parse(None) is None  # type: ignore[arg-type]


class TestMultipliers:
    def test_no_conditions_is_neutral(self):
        assert multipliers_for([]) == NEUTRAL_MULTIPLIERS

    def test_unsupported_conditions_are_neutral(self):
        assert multipliers_for(["common cold"]) == NEUTRAL_MULTIPLIERS

    def test_single_condition(self):
        assert multipliers_for(["migraine"]).pressure == 2.0

    def test_desensitizing_value_floored_at_neutral(self):
        # asthma alone carries cycle 0.8
        assert CONDITION_MULTIPLIERS[Condition.ASTHMA].cycle == 0.8
        assert multipliers_for(["asthma"]).cycle == 1.0

    def test_per_family_maximum(self):
        merged = multipliers_for(["migraine", "asthma"])
        assert merged.pressure == 2.0
        assert merged.aqi == 2.5
        assert merged.cycle == 1.8

    def test_order_independent(self):
        assert multipliers_for(["lupus", "ibs"]) == multipliers_for(["ibs", "lupus"])
