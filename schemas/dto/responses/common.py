"""
Common response DTOs shared across multiple endpoints.

ErrorResponse    — standard error shape from AppError.to_dict()
HealthResponse   — GET /health, with the delivery chain per channel
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error JSON body produced by the AppError exception handler."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: str
    field: Optional[str] = None
    details: Optional[Any] = None


class HealthChecks(BaseModel):
    """Backing-service statuses inside HealthResponse."""

    mongodb: Literal["ok", "error", "memory"]
    redis: Literal["ok", "error", "not_configured"]


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: Literal["healthy", "degraded", "unhealthy"]
    checks: HealthChecks
    # Provider names per channel, in the order they are tried
    providers: dict[str, list[str]] = Field(default_factory=dict)
