"""Concrete ForecastDataSource implementations."""

from __future__ import annotations

from datetime import datetime

from flarecast.core.storage.models import (
    CorrelationRecord,
    LogEntry,
    MedicationLogRecord,
    UserProfile,
)
from flarecast.core.storage.repository import JournalRepository
from flarecast.domains.flare.connectors.mock_data import (
    get_mock_correlations,
    get_mock_entries,
    get_mock_medication_logs,
    get_mock_profile,
)


class RepositoryDataSource:
    """Reads from the encrypted journal database."""

    def __init__(
        self,
        repository: JournalRepository,
        *,
        entry_limit: int = 1000,
        medication_limit: int = 200,
    ) -> None:
        self._repo = repository
        self._entry_limit = entry_limit
        self._medication_limit = medication_limit

    async def get_entries(self, user_id: str) -> list[LogEntry]:
        return self._repo.get_entries(user_id, limit=self._entry_limit)

    async def get_correlations(self, user_id: str) -> list[CorrelationRecord]:
        return self._repo.get_correlations(user_id)

    async def get_profile(self, user_id: str) -> UserProfile | None:
        return self._repo.get_profile(user_id)

    async def get_medication_logs(self, user_id: str) -> list[MedicationLogRecord]:
        return self._repo.get_medication_logs(user_id, limit=self._medication_limit)

    @property
    def data_source(self) -> str:
        return "journal"


class MockDataSource:
    """Serves a synthetic journal. Always available."""

    def __init__(self, *, now: datetime | None = None) -> None:
        self._now = now

    async def get_entries(self, user_id: str) -> list[LogEntry]:
        return get_mock_entries(user_id, now=self._now)

    async def get_correlations(self, user_id: str) -> list[CorrelationRecord]:
        return get_mock_correlations(user_id)

    async def get_profile(self, user_id: str) -> UserProfile | None:
        return get_mock_profile(user_id)

    async def get_medication_logs(self, user_id: str) -> list[MedicationLogRecord]:
        return get_mock_medication_logs(user_id, now=self._now)

    @property
    def data_source(self) -> str:
        return "mock"
