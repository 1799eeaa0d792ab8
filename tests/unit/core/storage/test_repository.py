"""Tests for JournalRepository — per-user CRUD over the encrypted journal."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import OTHER_USER, TEST_USER, make_entry
from flarecast.core.storage.models import (
    ApiToken,
    CorrelationRecord,
    MedicationLogRecord,
    UserProfile,
)
from flarecast.core.storage.repository import RepositoryError, from_iso, to_iso

NOW = datetime.now(timezone.utc)


def _correlation(user_id: str, value: str, confidence: float) -> CorrelationRecord:
    return CorrelationRecord(
        id="",
        user_id=user_id,
        trigger_type="food",
        trigger_value=value,
        outcome_type="symptom",
        outcome_value="joint pain",
        occurrence_count=3,
        confidence=confidence,
    )


class TestTimestamps:
    def test_naive_is_treated_as_utc(self):
        assert to_iso(datetime(2024, 1, 2, 3, 4)) == "2024-01-02T03:04:00.000000+00:00"

    def test_offsets_are_normalized(self):
        ts = datetime(2024, 1, 2, 5, 0, tzinfo=timezone(timedelta(hours=2)))
        assert from_iso(to_iso(ts)) == ts


class TestEntries:
    def test_save_and_read_back(self, journal_repository):
        entry = make_entry(
            NOW - timedelta(hours=1),
            "flare",
            severity="severe",
            triggers=("ate dairy",),
            note="Knees hurt",
            physiological={"sleep": {"duration": 5.5}},
        )
        journal_repository.save_entry(entry)

        [stored] = journal_repository.get_entries(TEST_USER)
        assert stored.entry_type == "flare"
        assert stored.severity == "severe"
        assert stored.triggers == ("ate dairy",)
        assert stored.note == "Knees hurt"
        assert stored.physiological_data == {"sleep": {"duration": 5.5}}
        assert stored.timestamp == entry.timestamp

    def test_note_is_encrypted_at_rest(self, journal_repository, journal_db):
        journal_repository.save_entry(make_entry(NOW, "note", note="Knees hurt"))
        row = journal_db.connection.execute("SELECT note_enc FROM log_entries").fetchone()
        assert "Knees" not in row["note_enc"]

    def test_returns_most_recent_chronologically(self, journal_repository):
        for hours in (5, 1, 3, 4, 2):
            journal_repository.save_entry(make_entry(NOW - timedelta(hours=hours)))
        entries = journal_repository.get_entries(TEST_USER, limit=3)
        assert [e.timestamp for e in entries] == [
            NOW - timedelta(hours=3),
            NOW - timedelta(hours=2),
            NOW - timedelta(hours=1),
        ]

    def test_scoped_to_user(self, journal_repository):
        journal_repository.save_entry(make_entry(NOW))
        journal_repository.save_entry(make_entry(NOW, user_id=OTHER_USER))
        assert journal_repository.count_entries(TEST_USER) == 1
        assert all(e.user_id == TEST_USER for e in journal_repository.get_entries(TEST_USER))

    def test_invalid_type_rejected(self, journal_repository):
        with pytest.raises(RepositoryError, match="Invalid entry type"):
            journal_repository.save_entry(make_entry(NOW, "dream"))

    def test_invalid_severity_rejected(self, journal_repository):
        with pytest.raises(RepositoryError, match="Invalid severity"):
            journal_repository.save_entry(make_entry(NOW, "flare", severity="apocalyptic"))

    def test_purge_before_days(self, journal_repository):
        journal_repository.save_entry(make_entry(NOW - timedelta(days=40)))
        journal_repository.save_entry(make_entry(NOW - timedelta(days=2)))
        journal_repository.save_medication_log(MedicationLogRecord(
            id="", user_id=TEST_USER, medication_name="naproxen",
            taken_at=NOW - timedelta(days=40),
        ))
        assert journal_repository.purge_entries_before_days(TEST_USER, 30) == 1
        assert journal_repository.count_entries(TEST_USER) == 1
        assert journal_repository.get_medication_logs(TEST_USER) == []

    def test_purge_requires_positive_days(self, journal_repository):
        with pytest.raises(RepositoryError):
            journal_repository.purge_entries_before_days(TEST_USER, 0)


class TestCorrelations:
    def test_strongest_first(self, journal_repository):
        journal_repository.save_correlation(_correlation(TEST_USER, "gluten", 0.4))
        journal_repository.save_correlation(_correlation(TEST_USER, "dairy", 0.9))
        values = [c.trigger_value for c in journal_repository.get_correlations(TEST_USER)]
        assert values == ["dairy", "gluten"]

    def test_confidence_out_of_range_rejected(self, journal_repository):
        with pytest.raises(RepositoryError, match="confidence"):
            journal_repository.save_correlation(_correlation(TEST_USER, "dairy", 1.5))


class TestProfile:
    def test_missing_profile_is_none(self, journal_repository):
        assert journal_repository.get_profile(TEST_USER) is None

    def test_upsert_replaces(self, journal_repository):
        journal_repository.upsert_profile(UserProfile(user_id=TEST_USER, conditions=("lupus",)))
        journal_repository.upsert_profile(UserProfile(
            user_id=TEST_USER,
            conditions=("fibromyalgia",),
            timezone="UTC",
            biological_sex="female",
        ))
        profile = journal_repository.get_profile(TEST_USER)
        assert profile.conditions == ("fibromyalgia",)
        assert profile.biological_sex == "female"


class TestMedicationLogs:
    def test_newest_first(self, journal_repository):
        for days in (3, 1, 2):
            journal_repository.save_medication_log(MedicationLogRecord(
                id="", user_id=TEST_USER, medication_name="naproxen",
                taken_at=NOW - timedelta(days=days), dosage="500 mg",
            ))
        logs = journal_repository.get_medication_logs(TEST_USER)
        assert [log.taken_at for log in logs] == [
            NOW - timedelta(days=1),
            NOW - timedelta(days=2),
            NOW - timedelta(days=3),
        ]
        assert logs[0].dosage == "500 mg"


class TestDeletion:
    def test_delete_user_data_keeps_tokens_and_other_users(self, journal_repository):
        journal_repository.save_entry(make_entry(NOW))
        journal_repository.save_entry(make_entry(NOW, user_id=OTHER_USER))
        journal_repository.save_correlation(_correlation(TEST_USER, "dairy", 0.7))
        journal_repository.upsert_profile(UserProfile(user_id=TEST_USER))
        journal_repository.save_token(ApiToken(token_hash="abc", user_id=TEST_USER))

        counts = journal_repository.delete_user_data(TEST_USER)

        assert counts == {"log_entries": 1, "correlations": 1, "medication_logs": 0, "profiles": 1}
        assert journal_repository.count_entries(OTHER_USER) == 1
        assert journal_repository.get_token("abc") is not None


class TestTokens:
    def test_revoke(self, journal_repository):
        journal_repository.save_token(ApiToken(token_hash="abc", user_id=TEST_USER))
        assert journal_repository.revoke_tokens(TEST_USER) == 1
        assert journal_repository.get_token("abc").revoked is True
        assert journal_repository.revoke_tokens(TEST_USER) == 0
