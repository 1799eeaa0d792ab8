"""Unit tests for the health_forecast MCP tool."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from conftest import OTHER_USER, TEST_USER, call_tool, make_entry, sleep_history
from flarecast.core.config.settings import Settings
from flarecast.core.server.app import create_app
from flarecast.domains.flare.connectors.providers import MockDataSource
from flarecast.domains.flare.tools.forecast_tools import (
    GENERIC_FAILURE_MESSAGE,
    UPSTREAM_MESSAGE,
)

SHORT_NIGHT = {"sleep": {"duration": 5.0}}


class FailingSource(MockDataSource):
    async def get_profile(self, user_id: str):
        raise ConnectionError("journal unavailable")


class GarbageSource(MockDataSource):
    async def get_entries(self, user_id: str):
        return ["not an entry"] * 10


def _server(journal_repository, request_headers, source):
    return create_app(
        settings=Settings(),
        repository_override=journal_repository,
        data_source_override=source,
        header_source=lambda: request_headers,
    )


def _save_history(journal_repository, days: int = 30, user_id: str = TEST_USER) -> None:
    for entry in sleep_history(days, now=datetime.now(timezone.utc), user_id=user_id):
        journal_repository.save_entry(entry)


class TestAuthentication:
    def test_missing_header_is_401(self, flare_server):
        assert call_tool(flare_server, "health_forecast") == {
            "error": "Unauthorized",
            "status": 401,
        }

    def test_unknown_token_is_401(self, flare_server, request_headers):
        request_headers["authorization"] = "Bearer made-up"
        assert call_tool(flare_server, "health_forecast")["status"] == 401

    def test_revoked_token_is_401(self, flare_server, authenticator, bearer):
        authenticator.revoke_user(TEST_USER)
        assert call_tool(flare_server, "health_forecast")["status"] == 401

    def test_rejection_is_audited(self, flare_server, audit_logger):
        call_tool(flare_server, "health_forecast")
        [event] = audit_logger.get_events(tool_name="health_forecast")
        assert event["status"] == "failure"
        assert event["error_type"] == "UnauthenticatedError"
        assert event["user_ref"] is None
        assert json.loads(event["metadata_json"])["http_status"] == 401


class TestForecast:
    def test_empty_journal_needs_more_data(self, flare_server, bearer):
        response = call_tool(flare_server, "health_forecast")
        assert response["needsMoreData"] is True
        assert response["forecast"]["riskScore"] == 50
        assert response["forecast"]["riskLevel"] == "moderate"

    def test_four_entries_need_more_data(self, flare_server, bearer, journal_repository):
        _save_history(journal_repository, days=4)
        response = call_tool(flare_server, "health_forecast", {"wearable_data": SHORT_NIGHT})
        assert response["needsMoreData"] is True
        assert response["forecast"]["factors"] == []

    def test_short_night_forecast(self, flare_server, bearer, journal_repository):
        _save_history(journal_repository)
        response = call_tool(flare_server, "health_forecast", {"wearable_data": SHORT_NIGHT})

        assert "needsMoreData" not in response
        forecast = response["forecast"]
        assert 1 <= forecast["riskScore"] <= 99
        assert forecast["timeframe"] == "next 24 hours"
        assert forecast["modelVersion"] == "v3-bayesian-ewma"
        factor = next(f for f in forecast["factors"] if f["factor"] == "Sleep deficit")
        assert factor["category"] == "sleep"
        assert factor["evidenceSource"] in ("empirical", "default")

    def test_other_users_history_is_invisible(self, flare_server, bearer, journal_repository):
        _save_history(journal_repository, user_id=OTHER_USER)
        assert call_tool(flare_server, "health_forecast")["needsMoreData"] is True

    def test_malformed_live_readings_are_ignored(self, flare_server, bearer, journal_repository):
        _save_history(journal_repository)
        response = call_tool(flare_server, "health_forecast", {
            "wearable_data": "five hours",
            "current_weather": [1004],
            "menstrual_day": "2",
        })
        assert "forecast" in response
        assert not any(f["category"] == "cycle" for f in response["forecast"]["factors"])

    def test_success_is_audited_without_inputs(self, flare_server, bearer, journal_repository, audit_logger):
        journal_repository.save_entry(make_entry(datetime.now(timezone.utc), note="secret note"))
        call_tool(flare_server, "health_forecast", {"wearable_data": {"source": "oura-ring-xyz"}})

        [event] = audit_logger.get_events(user_id=TEST_USER, tool_name="health_forecast")
        assert event["status"] == "success"
        assert event["tool_input_hash"]
        assert json.loads(event["metadata_json"]) == {
            "data_source": "journal",
            "risk_level": "moderate",
            "needs_more_data": True,
        }
        assert "oura-ring-xyz" not in json.dumps(event)


class TestFailures:
    def test_fetch_failure_is_502(self, journal_repository, request_headers, bearer, audit_logger):
        server = _server(journal_repository, request_headers, FailingSource())
        assert call_tool(server, "health_forecast") == {"error": UPSTREAM_MESSAGE, "status": 502}

        [event] = audit_logger.get_events(tool_name="health_forecast")
        assert event["error_type"] == "UpstreamFetchError"

    def test_502_hides_internal_details(self, journal_repository, request_headers, bearer):
        server = _server(journal_repository, request_headers, FailingSource())
        assert "journal unavailable" not in json.dumps(call_tool(server, "health_forecast"))

    def test_scoring_failure_is_500(self, journal_repository, request_headers, bearer, audit_logger):
        server = _server(journal_repository, request_headers, GarbageSource())
        assert call_tool(server, "health_forecast") == {
            "error": GENERIC_FAILURE_MESSAGE,
            "status": 500,
        }
        [event] = audit_logger.get_events(tool_name="health_forecast")
        assert event["error_type"] == "ForecastComputationError"

    def test_mock_source_serves_forecasts(self, journal_repository, request_headers, bearer):
        server = _server(journal_repository, request_headers, MockDataSource())
        response = call_tool(server, "health_forecast", {"wearable_data": SHORT_NIGHT})
        assert "needsMoreData" not in response
        assert response["forecast"]["factors"]
