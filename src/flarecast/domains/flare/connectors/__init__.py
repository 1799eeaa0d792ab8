"""Forecast data connectors — abstraction layer for journal retrieval."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from flarecast.core.storage.models import (
    CorrelationRecord,
    LogEntry,
    MedicationLogRecord,
    UserProfile,
)
from flarecast.domains.flare.domain_logic.signal_families import ForecastInputs

logger = logging.getLogger(__name__)


class UpstreamFetchError(Exception):
    """Raised when any of the per-user journal reads fails."""


@runtime_checkable
class ForecastDataSource(Protocol):
    """Abstract interface for the four per-user reads a forecast needs.

    Tools call these methods without knowing whether data comes from the
    encrypted journal database or a synthetic generator.
    """

    async def get_entries(self, user_id: str) -> list[LogEntry]:
        """Most recent log entries, oldest first."""
        ...

    async def get_correlations(self, user_id: str) -> list[CorrelationRecord]:
        """Learned trigger correlations, strongest first."""
        ...

    async def get_profile(self, user_id: str) -> UserProfile | None:
        """The user's profile, or None if they never created one."""
        ...

    async def get_medication_logs(self, user_id: str) -> list[MedicationLogRecord]:
        """Most recent medication administrations, newest first."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the active data source: 'journal' or 'mock'."""
        ...


async def gather_forecast_inputs(
    source: ForecastDataSource,
    user_id: str,
    *,
    current_weather: Mapping[str, Any] | None = None,
    wearable_data: Mapping[str, Any] | None = None,
    menstrual_day: int | None = None,
) -> ForecastInputs:
    """Fetch the four independent reads concurrently into one snapshot.

    Raises:
        UpstreamFetchError: If any read fails; no partial snapshot is returned.
    """
    try:
        entries, correlations, profile, medication_logs = await asyncio.gather(
            source.get_entries(user_id),
            source.get_correlations(user_id),
            source.get_profile(user_id),
            source.get_medication_logs(user_id),
        )
    except Exception as exc:
        logger.exception("Journal fetch failed (%s)", type(exc).__name__)
        raise UpstreamFetchError(f"Failed to fetch forecast inputs: {type(exc).__name__}") from exc

    logger.debug(
        "Fetched %d entries, %d correlations, %d medication logs",
        len(entries), len(correlations), len(medication_logs),
    )
    return ForecastInputs(
        entries=tuple(entries),
        correlations=tuple(correlations),
        profile=profile,
        medication_logs=tuple(medication_logs),
        current_weather=current_weather,
        wearable_data=wearable_data,
        menstrual_day=menstrual_day,
    )
