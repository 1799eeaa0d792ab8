"""Tests for the AuditLogger and related utilities."""

from __future__ import annotations

import json

from flarecast.core.audit.logger import AuditEvent, _hash_input, user_ref


class TestHashInput:
    def test_sha256_hex(self):
        assert len(_hash_input({"menstrual_day": 3})) == 64

    def test_key_order_does_not_matter(self):
        assert _hash_input({"a": 1, "b": 2}) == _hash_input({"b": 2, "a": 1})

    def test_non_serializable_returns_empty(self):
        assert _hash_input({"x": object()}) == ""


class TestUserRef:
    def test_stable_and_truncated(self):
        assert user_ref("user-123") == user_ref("user-123")
        assert len(user_ref("user-123")) == 16
        assert "user-123" not in user_ref("user-123")

    def test_empty_is_none(self):
        assert user_ref(None) is None
        assert user_ref("") is None


class TestLogToolCall:
    def test_records_hash_not_input(self, audit_logger, journal_db):
        tool_input = {"wearable_data": {"sleep": {"duration": 4.5}, "source": "oura-ring-xyz"}}
        event_id = audit_logger.log_tool_call(
            "health_forecast", tool_input, user_id="user-123", duration_ms=12.5
        )
        assert event_id

        row = journal_db.connection.execute(
            "SELECT * FROM audit_log WHERE id = ?", (event_id,)
        ).fetchone()
        assert row["tool_input_hash"] == _hash_input(tool_input)
        assert row["user_ref"] == user_ref("user-123")
        assert "oura-ring-xyz" not in json.dumps(dict(row))

    def test_failure_recorded(self, audit_logger):
        audit_logger.log_tool_call(
            "health_forecast",
            user_id="user-123",
            status="failure",
            error_type="UpstreamFetchError",
        )
        [event] = audit_logger.get_events(user_id="user-123")
        assert event["status"] == "failure"
        assert event["error_type"] == "UpstreamFetchError"

    def test_metadata_serialized(self, audit_logger):
        audit_logger.log_tool_call("health_forecast", metadata={"risk_level": "high"})
        [event] = audit_logger.get_events()
        assert json.loads(event["metadata_json"]) == {"risk_level": "high"}

    def test_write_failure_returns_empty_id(self, audit_logger, journal_db):
        journal_db.close()
        assert audit_logger.log_event(AuditEvent(action="tool_invocation")) == ""


class TestQueries:
    def test_events_scoped_per_user(self, audit_logger):
        audit_logger.log_tool_call("health_forecast", user_id="user-123")
        audit_logger.log_tool_call("health_forecast", user_id="user-456")
        audit_logger.log_data_delete(tool_name="delete_my_data", user_id="user-123", count=4)

        assert audit_logger.count_events() == 3
        assert audit_logger.count_events(user_id="user-123") == 2
        deletes = audit_logger.get_events(user_id="user-123", action="data_delete")
        assert json.loads(deletes[0]["metadata_json"]) == {"records_deleted": 4}

    def test_count_by_status(self, audit_logger):
        audit_logger.log_tool_call("health_forecast", status="failure")
        audit_logger.log_tool_call("health_forecast")
        assert audit_logger.count_events(status="failure") == 1

    def test_since_filter(self, audit_logger):
        audit_logger.log_tool_call("health_forecast")
        assert audit_logger.count_events(since="2999-01-01T00:00:00+00:00") == 0
