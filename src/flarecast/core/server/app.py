"""Flarecast MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (`fastmcp run flarecast/core/server/app.py:mcp`)
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from flarecast.core.audit.logger import AuditLogger
from flarecast.core.auth.tokens import HeaderSource, TokenAuthenticator, http_request_headers
from flarecast.core.config.settings import Settings, get_settings
from flarecast.core.storage.database import JournalDatabase
from flarecast.core.storage.encryption import FieldEncryptor
from flarecast.core.storage.repository import JournalRepository
from flarecast.domains.flare.connectors import ForecastDataSource
from flarecast.domains.flare.connectors.providers import MockDataSource, RepositoryDataSource
from flarecast.domains.flare.tools.audit_tools import register_audit_tools
from flarecast.domains.flare.tools.data_management_tools import register_data_management_tools
from flarecast.domains.flare.tools.forecast_tools import register_forecast_tools
from flarecast.domains.flare.tools.journal_tools import register_journal_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "Flarecast"
SERVER_VERSION = "0.1.0"


def build_repository(settings: Settings) -> JournalRepository:
    """Open the encrypted journal database named by ``settings``.

    Raises:
        EncryptionError: If ENCRYPTION_KEY is missing or invalid.
    """
    encryptor = FieldEncryptor(settings.encryption_key)
    database = JournalDatabase(settings.db_path)
    database.initialize()
    logger.info(
        "Journal database ready: %s (schema v%d)",
        settings.db_path,
        database.get_schema_version(),
    )
    return JournalRepository(database, encryptor)


def create_app(
    *,
    settings: Settings | None = None,
    repository_override: JournalRepository | None = None,
    data_source_override: ForecastDataSource | None = None,
    header_source: HeaderSource = http_request_headers,
) -> FastMCP:
    """Create and configure the Flarecast MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Opens the encrypted journal (refuses to start without ENCRYPTION_KEY)
    3. Wires the bearer authenticator and audit logger
    4. Picks the forecast data source (journal, or mock when configured)
    5. Registers all tools
    """
    settings = settings or get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Personal flare-risk forecasting server. Log flares, wellness "
            "check-ins and medications, then ask for a 24-hour flare-risk "
            "forecast with the factors behind it."
        ),
    )

    # --- Initialize encrypted storage (journal) ---
    if repository_override is not None:
        repository = repository_override
    else:
        repository = build_repository(settings)

    # Audit trail shares the journal database
    audit_logger = AuditLogger(repository.database)

    authenticator = TokenAuthenticator(repository, header_source=header_source)

    # --- Initialize forecast data source ---
    if data_source_override is not None:
        data_source = data_source_override
    elif settings.use_mock_data:
        data_source = MockDataSource()
        logger.info("Using mock journal data source")
    else:
        data_source = RepositoryDataSource(
            repository,
            entry_limit=settings.entry_fetch_limit,
            medication_limit=settings.medication_fetch_limit,
        )

    # --- Register tools ---
    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "model_version": settings.model_version,
            "data_source": data_source.data_source,
        }

    register_forecast_tools(
        server,
        data_source,
        authenticator,
        audit_logger,
        min_entries=settings.min_entries_for_forecast,
        model_version=settings.model_version,
    )
    register_journal_tools(server, repository, authenticator, audit_logger)
    register_data_management_tools(server, repository, authenticator, audit_logger)
    register_audit_tools(server, audit_logger, authenticator)
    logger.info("Flarecast tools registered (data source: %s)", data_source.data_source)

    return server


# Module-level instance for FastMCP discovery (`fastmcp run ...app.py:mcp`).
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
