"""Tests for reading-bag signal extraction."""

from __future__ import annotations

import pytest

from flarecast.domains.flare.domain_logic import signal_extractor as signals
from flarecast.domains.flare.domain_logic.signal_extractor import deep_get, try_get


class TestDeepGet:
    def test_nested_path(self):
        assert deep_get({"sleep": {"duration": 7}}, "sleep.duration") == 7.0

    @pytest.mark.parametrize(
        "record",
        [
            None,
            [],
            {},
            {"sleep": None},
            {"sleep": 7},
            {"sleep": {"duration": "7h"}},
            {"sleep": {"duration": True}},
            {"sleep": {"duration": float("nan")}},
            {"sleep": {"duration": float("inf")}},
        ],
    )
    def test_misses_are_none(self, record):
        assert deep_get(record, "sleep.duration") is None


class TestTryGet:
    def test_first_resolving_path_wins(self):
        bag = {"hrvRmssd": 40, "hrv_rmssd": 55}
        assert try_get(bag, ("hrv_rmssd", "hrvRmssd")) == 55

    def test_skips_unresolved_paths(self):
        assert try_get({"b": 3}, ("a", "b")) == 3

    def test_bounds_are_exclusive(self):
        assert try_get({"x": 0}, ("x",), lo=0) is None
        assert try_get({"x": 300}, ("x",), hi=300) is None
        assert try_get({"x": 299}, ("x",), lo=0, hi=300) == 299

    def test_out_of_bounds_does_not_fall_through(self):
        assert try_get({"a": -1, "b": 5}, ("a", "b"), lo=0) is None


class TestSignalSpecs:
    def test_sleep_minutes_become_hours(self):
        assert signals.SLEEP_HOURS.from_live({"sleep": {"duration": 450}}) == 7.5

    def test_sleep_hours_kept(self):
        assert signals.SLEEP_HOURS.from_history({"sleepHours": 7.5}) == 7.5

    def test_hrv_live_prefers_current(self):
        bag = {"hrv": {"current": 35, "daily": 50}}
        assert signals.HRV.from_live(bag) == 35

    def test_hrv_history_ignores_live_only_paths(self):
        assert signals.HRV.from_history({"hrv": {"current": 35}}) is None

    def test_implausible_hrv_is_absent(self):
        assert signals.HRV.from_live({"heart_rate_variability": 500}) is None

    def test_pressure_from_weather_bag(self):
        assert signals.PRESSURE.from_history({"weather": {"pressure": 1012}}) == 1012
        assert signals.PRESSURE.from_live({"pressure": 850}) is None

    def test_resting_heart_rate_bounds(self):
        assert signals.RESTING_HEART_RATE.from_history({"resting_heart_rate": 62}) == 62
        assert signals.RESTING_HEART_RATE.from_history({"restingHeartRate": 20}) is None
