"""MCP tools for viewing the audit trail.

The audit log is PHI-free: it records which tools were used, when and how
they ended, with inputs reduced to hashes. Each user sees only their own
events.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from flarecast.core.audit.logger import AuditLogger
    from flarecast.core.auth.tokens import TokenAuthenticator

from flarecast.core.auth.tokens import UnauthenticatedError
from flarecast.domains.flare.tools.forecast_tools import (
    UNAUTHORIZED_MESSAGE,
    error_payload,
)

logger = logging.getLogger(__name__)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
    authenticator: TokenAuthenticator,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
    ) -> str:
        """View your recent forecast and journal access events.

        Args:
            days: Number of days to look back (default: 30).
        """
        try:
            user_id = authenticator.current_user()
        except UnauthenticatedError:
            return json.dumps(error_payload(UNAUTHORIZED_MESSAGE, 401))

        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        total_events = audit_logger.count_events(user_id=user_id, since=since)
        failures = audit_logger.count_events(user_id=user_id, since=since, status="failure")
        recent_events = audit_logger.get_events(user_id=user_id, since=since, limit=20)

        # Simplify events for display (strip internal IDs)
        display_events = [
            {
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "tool_name": event.get("tool_name"),
                "status": event.get("status"),
                "error_type": event.get("error_type"),
                "duration_ms": event.get("duration_ms"),
            }
            for event in recent_events
        ]

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": total_events,
            "failed_events": failures,
            "recent_events": display_events,
            "note": (
                "This audit trail contains no health data. "
                "It tracks tool usage and outcomes only."
            ),
        }, indent=2)
