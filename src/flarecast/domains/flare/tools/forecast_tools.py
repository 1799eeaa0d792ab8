"""MCP tool for the personalized 24h flare-risk forecast.

The caller is identified only by the bearer credential on the HTTP request.
The four journal reads are fetched concurrently, then the forecast is scored
synchronously from that snapshot. Failures map to a status code and a safe
message; nothing is re-raised into the server loop.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from flarecast.core.audit.logger import AuditLogger
    from flarecast.core.auth.tokens import TokenAuthenticator
    from flarecast.domains.flare.connectors import ForecastDataSource

from flarecast.core.auth.tokens import UnauthenticatedError
from flarecast.domains.flare.connectors import UpstreamFetchError, gather_forecast_inputs
from flarecast.domains.flare.domain_logic.forecaster import (
    ForecastComputationError,
    compute_forecast,
    normalize_menstrual_day,
    normalize_reading_bag,
)
from flarecast.domains.flare.domain_logic.signal_models import (
    MIN_ENTRIES_FOR_FORECAST,
    MODEL_VERSION,
)

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Unauthorized"
UPSTREAM_MESSAGE = "We couldn't load your journal right now. Please try again shortly."
GENERIC_FAILURE_MESSAGE = "We couldn't compute your forecast right now. Please try again shortly."


def error_payload(message: str, status: int) -> dict[str, Any]:
    return {"error": message, "status": status}


def register_forecast_tools(
    mcp: FastMCP,
    data_source: ForecastDataSource,
    authenticator: TokenAuthenticator,
    audit_logger: AuditLogger | None = None,
    *,
    min_entries: int = MIN_ENTRIES_FOR_FORECAST,
    model_version: str = MODEL_VERSION,
) -> None:
    """Register the forecast tool on the MCP server."""

    @mcp.tool
    async def health_forecast(
        ctx: Context,
        current_weather: Any = None,
        wearable_data: Any = None,
        menstrual_day: Any = None,
    ) -> str:
        """Forecast your flare risk for the next 24 hours.

        Combines your journal history with today's readings into a 0-100
        risk score, the factors behind it and what you can do about them.
        Requires an ``Authorization: Bearer <token>`` header.

        Args:
            current_weather: Optional live weather/air-quality readings
                (e.g. {"pressure": 1004, "humidity": 82, "aqi": 60}).
            wearable_data: Optional live wearable readings
                (e.g. {"sleep": {"duration": 6.1}, "hrv": {"current": 38}}).
            menstrual_day: Optional current cycle day (integer, 1 = first day).
        """
        start_time = time.monotonic()
        user_id: str | None = None
        error_type: str | None = None
        tool_input = {
            "current_weather": current_weather,
            "wearable_data": wearable_data,
            "menstrual_day": menstrual_day,
        }

        try:
            user_id = authenticator.current_user()
            inputs = await gather_forecast_inputs(
                data_source,
                user_id,
                current_weather=normalize_reading_bag(current_weather),
                wearable_data=normalize_reading_bag(wearable_data),
                menstrual_day=normalize_menstrual_day(menstrual_day),
            )
            try:
                forecast = compute_forecast(
                    inputs, min_entries=min_entries, model_version=model_version
                )
            except Exception as exc:
                raise ForecastComputationError(
                    f"Scoring failed: {type(exc).__name__}"
                ) from exc
            payload = forecast.to_response()
        except UnauthenticatedError as exc:
            error_type = type(exc).__name__
            logger.info("Rejected forecast request: %s", exc)
            payload = error_payload(UNAUTHORIZED_MESSAGE, 401)
        except UpstreamFetchError as exc:
            error_type = type(exc).__name__
            payload = error_payload(UPSTREAM_MESSAGE, 502)
        except Exception as exc:
            error_type = type(exc).__name__
            logger.exception("Forecast failed")
            payload = error_payload(GENERIC_FAILURE_MESSAGE, 500)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        if audit_logger is not None:
            metadata: dict[str, Any] = {"data_source": data_source.data_source}
            if "status" in payload:
                metadata["http_status"] = payload["status"]
            else:
                metadata["risk_level"] = payload["forecast"]["riskLevel"]
                metadata["needs_more_data"] = bool(payload.get("needsMoreData"))
            audit_logger.log_tool_call(
                tool_name="health_forecast",
                tool_input=tool_input,
                user_id=user_id,
                duration_ms=elapsed_ms,
                status="failure" if error_type else "success",
                error_type=error_type,
                metadata=metadata,
            )

        return json.dumps(payload)
