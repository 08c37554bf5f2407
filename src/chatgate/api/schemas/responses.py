"""Response schemas for API endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from chatgate.llm.schemas import CamelModel


class ErrorBody(BaseModel):
    """Error description."""

    type: str = Field(description="Machine readable error type, e.g. rate_limit_exceeded")
    message: str = Field(description="Error message")
    details: dict[str, Any] | None = Field(default=None, description="Structured context")


class ErrorResponse(CamelModel):
    """Standardized error response."""

    error: ErrorBody
    request_id: str = Field(description="Request ID for tracking")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    providers: dict[str, bool] = Field(default_factory=dict)


class SessionResetResponse(CamelModel):
    """Response schema for a session reset."""

    session_id: str
    summarized: bool
