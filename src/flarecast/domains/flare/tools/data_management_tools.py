"""MCP tools for journal data management (deletion, purge, retention).

These tools implement the user's right to delete their journal. They only
ever touch the caller's own records, and all deletions are audit-logged.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from flarecast.core.audit.logger import AuditLogger
    from flarecast.core.auth.tokens import TokenAuthenticator
    from flarecast.core.storage.repository import JournalRepository

from flarecast.core.auth.tokens import UnauthenticatedError
from flarecast.domains.flare.tools.forecast_tools import (
    UNAUTHORIZED_MESSAGE,
    error_payload,
)

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "DELETE_MY_DATA"


def register_data_management_tools(
    mcp: FastMCP,
    repository: JournalRepository,
    authenticator: TokenAuthenticator,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register data management tools on the MCP server."""

    @mcp.tool
    async def purge_old_entries(
        ctx: Context,
        older_than_days: int = 365,
    ) -> str:
        """Delete your journal entries and doses older than a number of days.

        Older history stops shaping your baselines once it is gone.

        Args:
            older_than_days: Delete data older than this many days (default: 365).
        """
        try:
            user_id = authenticator.current_user()
        except UnauthenticatedError:
            return json.dumps(error_payload(UNAUTHORIZED_MESSAGE, 401))

        if older_than_days < 1:
            return json.dumps({
                "status": "error",
                "message": "older_than_days must be at least 1.",
            })

        start_time = time.monotonic()
        count = repository.purge_entries_before_days(user_id, older_than_days)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None and count > 0:
            audit_logger.log_data_delete(
                tool_name="purge_old_entries",
                user_id=user_id,
                count=count,
                metadata={"older_than_days": older_than_days},
            )

        return json.dumps({
            "status": "purged",
            "entries_deleted": count,
            "older_than_days": older_than_days,
            "duration_ms": round(elapsed_ms, 1),
        })

    @mcp.tool
    async def delete_my_data(
        ctx: Context,
        confirm: str = "",
    ) -> str:
        """Permanently delete ALL of your journal data.

        Removes every entry, medication dose, learned correlation and your
        profile. Your access token keeps working. This cannot be undone.

        Args:
            confirm: Must be exactly 'DELETE_MY_DATA' to proceed. Safety gate.
        """
        try:
            user_id = authenticator.current_user()
        except UnauthenticatedError:
            return json.dumps(error_payload(UNAUTHORIZED_MESSAGE, 401))

        if confirm != DELETE_CONFIRMATION:
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To delete all of your journal data, call this tool with "
                    f"confirm='{DELETE_CONFIRMATION}'. This action cannot be undone."
                ),
            })

        start_time = time.monotonic()
        counts = repository.delete_user_data(user_id)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_my_data",
                user_id=user_id,
                count=sum(counts.values()),
                metadata={"confirmed": True},
            )

        return json.dumps({
            "status": "all_deleted",
            "records_deleted": counts,
            "duration_ms": round(elapsed_ms, 1),
            "message": "All of your journal data has been permanently deleted.",
        })
