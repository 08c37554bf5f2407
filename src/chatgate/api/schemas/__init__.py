"""API request and response schemas."""

from .requests import SessionResetRequest
from .responses import ErrorBody, ErrorResponse, HealthResponse, SessionResetResponse

__all__ = [
    "SessionResetRequest",
    "ErrorBody",
    "ErrorResponse",
    "HealthResponse",
    "SessionResetResponse",
]
