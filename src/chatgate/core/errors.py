"""Gateway error taxonomy.

Every error raised inside the orchestration core derives from GatewayError
so the HTTP edge and the stream error event render them the same way.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base exception for gateway errors.

    Attributes:
        message: Human readable error description
        code: Machine readable error code
        status_code: HTTP status the edge should answer with
        details: Additional structured context
    """

    code = "GATEWAY_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize gateway error.

        Args:
            message: Error description
            details: Additional structured context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def type(self) -> str:
        """Lower-case error type used on the wire."""
        return self.code.lower()

    def to_payload(self) -> dict[str, Any]:
        """Render the error as a wire payload."""
        payload: dict[str, Any] = {"type": self.type, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return {"error": payload}


class ValidationError(GatewayError):
    """Malformed or missing request fields. Never reaches a provider."""

    code = "VALIDATION_ERROR"
    status_code = 422


class AuthenticationError(GatewayError):
    """Missing or invalid credentials."""

    code = "AUTHENTICATION_ERROR"
    status_code = 401

    def __init__(self, message: str = "Invalid or missing API key") -> None:
        super().__init__(message)


class PermissionDeniedError(GatewayError):
    """Tool or provider access denied for the tenant."""

    code = "PERMISSION_DENIED"
    status_code = 403


class RateLimitError(GatewayError):
    """Too many requests in the current window."""

    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(
        self,
        reset_at: int,
        retry_after: int,
        limit: int | None = None,
        message: str = "Rate limit exceeded",
    ) -> None:
        """Initialize rate limit error.

        Args:
            reset_at: Epoch seconds when the window resets
            retry_after: Seconds the caller should wait
            limit: Request limit for the window
            message: Error description
        """
        details: dict[str, Any] = {"reset_at": reset_at, "retry_after": retry_after}
        if limit is not None:
            details["limit"] = limit
        super().__init__(message, details)
        self.reset_at = reset_at
        self.retry_after = retry_after


class QuotaExceededError(RateLimitError):
    """Tenant exhausted its plan quota."""

    code = "QUOTA_EXCEEDED"

    def __init__(self, reset_at: int, retry_after: int, limit: int | None = None) -> None:
        super().__init__(reset_at, retry_after, limit, message="Quota exceeded")


class ProviderError(GatewayError):
    """Backend call failed.

    Attributes:
        provider: Provider that failed
        status: Backend HTTP status, None for transport failures
        body: Raw backend error body
    """

    code = "PROVIDER_ERROR"
    status_code = 502

    def __init__(
        self,
        provider: str,
        message: str,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"provider": provider}
        if status is not None:
            details["status"] = status
        if body:
            details["body"] = body
        super().__init__(message, details)
        self.provider = provider
        self.status = status
        self.body = body


class NotFoundError(GatewayError):
    """Unknown session or tenant."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any) -> None:
        """Initialize not found error.

        Args:
            resource: Resource type (e.g., "Session", "Tenant")
            resource_id: Resource identifier
        """
        super().__init__(
            f"{resource} not found: {resource_id}",
            {"resource": resource, "resource_id": str(resource_id)},
        )
        self.resource = resource
        self.resource_id = resource_id


class InternalError(GatewayError):
    """Anything unanticipated."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
