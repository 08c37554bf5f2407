"""Chat completion and session endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from chatgate.llm.schemas import CompletionRequest
from chatgate.orchestrator import SSE_HEADERS, with_heartbeat

from ..dependencies import Auth, Container
from ..schemas import SessionResetRequest, SessionResetResponse

router = APIRouter(tags=["chat"])


@router.post(
    "/chat/completions",
    summary="Create a chat completion",
    response_model=None,
)
async def create_chat_completion(
    body: CompletionRequest,
    request: Request,
    auth: Auth,
    container: Container,
) -> Response:
    """Create a chat completion, as JSON or as a server-sent event stream.

    Args:
        body: Completion request; `stream` selects the response format
        request: Incoming request (Accept header)
        auth: Authenticated tenant
        container: Gateway components

    Returns:
        JSON completion, or an SSE stream carrying the session id in the
        X-Session-Id header
    """
    service = container.service
    if not body.stream:
        return JSONResponse(await service.complete(auth, body))

    session_id, events = await service.stream(auth, body, request.headers.get("accept"))
    return StreamingResponse(
        with_heartbeat(events, container.settings.heartbeat_interval),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Session-Id": session_id},
    )


@router.post(
    "/sessions/{session_id}/reset",
    response_model=SessionResetResponse,
    summary="Reset a session's history",
)
async def reset_session(
    session_id: str,
    auth: Auth,
    container: Container,
    body: SessionResetRequest | None = None,
) -> SessionResetResponse:
    """Clear a session's history, optionally keeping a summary.

    Args:
        session_id: Session ID
        auth: Authenticated tenant
        container: Gateway components
        body: Reset options

    Returns:
        Reset result
    """
    summarize = body.summarize if body is not None else False
    result = await container.service.reset_session(auth, session_id, summarize=summarize)
    return SessionResetResponse.model_validate(result)
