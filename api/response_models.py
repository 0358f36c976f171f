"""
Shared Pydantic response models for the insights API.

These models give FastAPI the type information it needs to generate
accurate OpenAPI schemas instead of empty `schema: {}`.

Usage:
    from api.response_models import InsightResponse

    @router.get("/endpoint", response_model=InsightResponse)
    def my_endpoint(): ...
"""

from typing import Any

from pydantic import BaseModel, Field

# ==== Insight Envelope ====
# Used by every insights_router.py endpoint except /health.
# Shape: {status, data, computed_at, params}


class InsightResponse(BaseModel):
    """Standard insight endpoint envelope."""

    status: str = Field(description="ok or error")
    data: Any = Field(default=None, description="Response payload")
    computed_at: str = Field(description="ISO timestamp of computation")
    params: dict[str, Any] = Field(default_factory=dict, description="Echo of request params")


# ==== Health Check ====


class HealthResponse(BaseModel):
    """Health check result."""

    status: str = Field(description="healthy or error")
    schema_version: int = Field(description="Database schema version (user_version)")
    periods: int = Field(description="Number of periods with time entries")
    timestamp: str = Field(description="ISO timestamp")
