"""Global exception handlers for FastAPI."""

from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from chatgate.core.errors import GatewayError, InternalError, RateLimitError, ValidationError

logger = structlog.get_logger()


def error_response(
    request: Request,
    exc: GatewayError,
    status_code: int | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render a gateway error as a JSON response carrying the request id."""
    request_id = getattr(request.state, "request_id", "unknown")
    content: dict[str, Any] = {**exc.to_payload(), "requestId": request_id}
    return JSONResponse(
        status_code=status_code or exc.status_code,
        content=content,
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(
        request: Request,
        exc: GatewayError,
    ) -> JSONResponse:
        """Handle gateway errors.

        Rate limit and quota errors carry a Retry-After header.
        """
        logger.warning(
            "gateway_error",
            code=exc.code,
            message=exc.message,
            status_code=exc.status_code,
        )

        headers = None
        if isinstance(exc, RateLimitError):
            headers = {"Retry-After": str(exc.retry_after)}
        return error_response(request, exc, headers=headers)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request,
        exc: HTTPException,
    ) -> JSONResponse:
        logger.warning(
            "http_error",
            status_code=exc.status_code,
            detail=exc.detail,
        )

        error = GatewayError(str(exc.detail))
        error.code = f"HTTP_{exc.status_code}"
        response = error_response(request, error, status_code=exc.status_code)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Handle request validation errors.

        Args:
            request: Request instance
            exc: RequestValidationError

        Returns:
            JSON error response with validation details
        """
        errors = []
        for error in exc.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"{loc}: {error['msg']}")

        logger.warning("validation_error", errors=errors)

        return error_response(
            request,
            ValidationError("Invalid request", {"errors": errors}),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception(
            "unhandled_error",
            error_type=type(exc).__name__,
        )

        # Internal details are never exposed
        return error_response(request, InternalError())
