"""Unit tests for the audit_summary MCP tool."""

from __future__ import annotations

from conftest import OTHER_USER, call_tool


class TestAuditSummary:
    def test_requires_token(self, flare_server):
        assert call_tool(flare_server, "audit_summary")["status"] == 401

    def test_lists_own_events(self, flare_server, bearer, audit_logger):
        call_tool(flare_server, "health_forecast")
        call_tool(flare_server, "log_entry", {"entry_type": "dream"})
        audit_logger.log_tool_call("health_forecast", user_id=OTHER_USER)

        summary = call_tool(flare_server, "audit_summary", {"days": 7})

        assert summary["status"] == "ok"
        assert summary["period_days"] == 7
        assert summary["total_events"] == 2
        assert summary["failed_events"] == 1
        assert {e["tool_name"] for e in summary["recent_events"]} == {"health_forecast", "log_entry"}

    def test_events_carry_no_identifiers(self, flare_server, bearer):
        call_tool(flare_server, "health_forecast")
        [event] = call_tool(flare_server, "audit_summary")["recent_events"]
        assert set(event) == {
            "timestamp", "action", "tool_name", "status", "error_type", "duration_ms",
        }
