"""Server-sent event encoding for the client stream."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from chatgate.core.errors import GatewayError, ValidationError
from chatgate.llm.schemas import StreamChunk

DONE_EVENT = "data: [DONE]\n\n"
PING_EVENT = ": ping\n\n"

SSE_HEADERS: dict[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_event(payload: dict[str, Any]) -> str:
    """Encode one JSON payload as a `data:` event."""
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


def format_chunk(chunk: StreamChunk) -> str:
    return format_event(chunk.to_wire())


def format_error(error: GatewayError) -> str:
    return format_event(error.to_payload())


def validate_accept(accept: str | None) -> None:
    """Check that the client accepts an event stream.

    An absent header is accepted.

    Raises:
        ValidationError: If the client does not accept text/event-stream
    """
    if accept and "text/event-stream" not in accept and "*/*" not in accept:
        raise ValidationError("Client must accept text/event-stream for streaming responses")


async def with_heartbeat(events: AsyncIterator[str], interval: float) -> AsyncIterator[str]:
    """Interleave ping comments while the source stream is idle.

    At most one read from `events` is outstanding at any time. Closing the
    returned iterator cancels the pending read and closes the source.

    Args:
        events: Encoded SSE events
        interval: Idle seconds before a ping is sent
    """
    source = aiter(events)
    pending: asyncio.Future[str] | None = None
    try:
        while True:
            if pending is None:
                pending = asyncio.ensure_future(anext(source))
            done, _ = await asyncio.wait({pending}, timeout=interval)
            if not done:
                yield PING_EVENT
                continue
            task, pending = pending, None
            try:
                event = task.result()
            except StopAsyncIteration:
                return
            yield event
    finally:
        if pending is not None:
            pending.cancel()
            await asyncio.wait({pending})
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()
