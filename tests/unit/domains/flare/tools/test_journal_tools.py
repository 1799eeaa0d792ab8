"""Unit tests for the journal write tools."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import TEST_USER, call_tool


class TestLogEntry:
    def test_saves_for_caller(self, flare_server, bearer, journal_repository):
        response = call_tool(flare_server, "log_entry", {
            "entry_type": "flare",
            "timestamp": "2024-06-14T21:30:00",
            "severity": "severe",
            "symptoms": ["joint pain", " "],
            "triggers": ["ate dairy"],
            "note": "Knees hurt",
            "physiological_data": {"sleep": {"duration": 5.5}},
        })
        assert response["status"] == "saved"
        assert response["timestamp"] == "2024-06-14T21:30:00+00:00"

        [entry] = journal_repository.get_entries(TEST_USER)
        assert entry.id == response["entry_id"]
        assert entry.symptoms == ("joint pain",)
        assert entry.note == "Knees hurt"
        assert entry.physiological_data == {"sleep": {"duration": 5.5}}

    def test_defaults_to_now(self, flare_server, bearer, journal_repository):
        call_tool(flare_server, "log_entry", {"entry_type": "wellness"})
        [entry] = journal_repository.get_entries(TEST_USER)
        assert datetime.now(timezone.utc) - entry.timestamp < timedelta(minutes=1)

    def test_invalid_type(self, flare_server, bearer):
        response = call_tool(flare_server, "log_entry", {"entry_type": "dream"})
        assert response["status"] == "error"
        assert "Invalid entry type" in response["message"]

    def test_zulu_suffix_accepted(self, flare_server, bearer, journal_repository):
        response = call_tool(flare_server, "log_entry", {
            "entry_type": "wellness", "timestamp": "2024-06-01T08:00:00Z",
        })
        assert response["status"] == "saved"
        assert response["timestamp"] == "2024-06-01T08:00:00+00:00"
        [entry] = journal_repository.get_entries(TEST_USER)
        assert entry.timestamp == datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)

    def test_invalid_timestamp(self, flare_server, bearer):
        response = call_tool(flare_server, "log_entry", {
            "entry_type": "note", "timestamp": "yesterday-ish",
        })
        assert response["status"] == "error"

    def test_requires_token(self, flare_server, journal_repository):
        response = call_tool(flare_server, "log_entry", {"entry_type": "note"})
        assert response["status"] == 401
        assert journal_repository.count_entries(TEST_USER) == 0


class TestLogMedication:
    def test_saves_dose(self, flare_server, bearer, journal_repository):
        response = call_tool(flare_server, "log_medication", {
            "medication_name": " naproxen ", "dosage": "500 mg",
        })
        assert response["status"] == "saved"
        assert response["medication_name"] == "naproxen"
        [log] = journal_repository.get_medication_logs(TEST_USER)
        assert log.dosage == "500 mg"

    def test_zulu_taken_at(self, flare_server, bearer, journal_repository):
        response = call_tool(flare_server, "log_medication", {
            "medication_name": "naproxen", "taken_at": "2024-06-14T07:45:00Z",
        })
        assert response["taken_at"] == "2024-06-14T07:45:00+00:00"
        [log] = journal_repository.get_medication_logs(TEST_USER)
        assert log.taken_at == datetime(2024, 6, 14, 7, 45, tzinfo=timezone.utc)

    def test_empty_name(self, flare_server, bearer):
        response = call_tool(flare_server, "log_medication", {"medication_name": "  "})
        assert response["status"] == "error"


class TestUpdateProfile:
    def test_saves_profile(self, flare_server, bearer, journal_repository):
        response = call_tool(flare_server, "update_profile", {
            "conditions": ["Migraine"], "timezone_name": "Europe/Berlin",
        })
        assert response == {"status": "saved", "conditions": ["Migraine"], "timezone": "Europe/Berlin"}
        assert journal_repository.get_profile(TEST_USER).timezone == "Europe/Berlin"

    def test_unknown_timezone(self, flare_server, bearer, journal_repository):
        response = call_tool(flare_server, "update_profile", {"timezone_name": "Mars/Olympus"})
        assert response["status"] == "error"
        assert "Unknown timezone" in response["message"]
        assert journal_repository.get_profile(TEST_USER) is None


class TestRecordCorrelation:
    def _args(self, **overrides):
        args = {
            "trigger_type": "food",
            "trigger_value": "dairy",
            "outcome_type": "symptom",
            "outcome_value": "joint pain",
            "occurrence_count": 4,
            "confidence": 0.7,
        }
        args.update(overrides)
        return args

    def test_saves_correlation(self, flare_server, bearer, journal_repository):
        assert call_tool(flare_server, "record_correlation", self._args())["status"] == "saved"
        [corr] = journal_repository.get_correlations(TEST_USER)
        assert corr.trigger_value == "dairy"

    def test_confidence_out_of_range(self, flare_server, bearer):
        response = call_tool(flare_server, "record_correlation", self._args(confidence=1.5))
        assert response["status"] == "error"


class TestAuditing:
    def test_writes_are_audited(self, flare_server, bearer, audit_logger):
        call_tool(flare_server, "log_entry", {"entry_type": "note", "note": "private"})
        call_tool(flare_server, "log_entry", {"entry_type": "dream"})
        events = audit_logger.get_events(user_id=TEST_USER, tool_name="log_entry")
        assert sorted(e["status"] for e in events) == ["failure", "success"]
