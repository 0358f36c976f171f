"""
Centralized configuration for the insight engine.

Values that vary by deployment belong here.
Override via environment variables where marked.
"""

import os

# ============================================================
# Logging
# ============================================================

LOG_LEVEL: str = os.environ.get("INSIGHT_ENGINE_LOG_LEVEL", "INFO")
"""Root log level for the API server and CLI."""

LOG_JSON: bool | None = (
    os.environ["INSIGHT_ENGINE_LOG_JSON"].lower() in ("1", "true", "yes")
    if os.environ.get("INSIGHT_ENGINE_LOG_JSON")
    else None
)
"""Force JSON (true) or human (false) log format. Unset = auto-detect from TTY."""

# ============================================================
# Terminal fallbacks
# ============================================================

DEFAULT_MONTHLY_CAPACITY_HOURS: float = 140
"""Capacity per engineer per month when neither the member nor the dashboard config sets one."""

DEFAULT_SEVERITY: str = "info"
"""Severity for a rule that is neither overridden nor registered."""

DEFAULT_OVER_UTILIZATION_THRESHOLD: float = 1.0
"""Team utilization above which the team is considered over capacity."""

# ============================================================
# API
# ============================================================

API_PREFIX: str = os.environ.get("INSIGHT_ENGINE_API_PREFIX", "/api/v1/insights")
"""Mount point of the insights router."""

CORS_ORIGINS: list[str] = os.environ.get(
    "INSIGHT_ENGINE_CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
).split(",")
"""Origins allowed to call the API (the dashboard front end)."""
