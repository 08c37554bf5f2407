"""Request correlation middleware.

Each gateway request gets a request id, bound to the structlog context for
every log line it produces and echoed in the response. The completion log
names the tenant once authentication has run.
"""

from __future__ import annotations

import re
import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(header: str | None) -> str:
    """Use the client's request id when well-formed, else mint one.

    Client ids are echoed into logs and headers, so anything outside a
    conservative charset or longer than 128 characters is replaced.
    """
    if header and _REQUEST_ID_PATTERN.match(header):
        return header
    return f"req_{uuid.uuid4().hex}"


def is_event_stream(response: Response) -> bool:
    return response.headers.get("content-type", "").startswith("text/event-stream")


class GatewayRequestMiddleware(BaseHTTPMiddleware):
    """Correlates and logs one gateway request.

    For SSE responses call_next returns once headers are ready, so the
    logged time is time to first byte and no response-time header is set.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)

        streamed = is_event_stream(response)
        log = logger.warning if response.status_code == 429 else logger.info
        log(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            tenant_id=getattr(request.state, "tenant_id", None),
            streamed=streamed,
            **{"first_byte_ms" if streamed else "duration_ms": elapsed_ms},
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        if not streamed:
            response.headers[RESPONSE_TIME_HEADER] = f"{elapsed_ms:.2f}ms"
        return response
