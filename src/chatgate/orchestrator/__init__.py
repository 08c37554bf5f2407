"""Turn orchestration: provider rounds, tool loop, SSE and the chat service."""

from .service import ChatService, PreparedTurn
from .sse import DONE_EVENT, PING_EVENT, SSE_HEADERS, validate_accept, with_heartbeat
from .streaming import StreamingOrchestrator, StreamState, Turn, TurnOutcome
from .summarizer import ProviderSummarizer

__all__ = [
    "ChatService",
    "PreparedTurn",
    "StreamingOrchestrator",
    "StreamState",
    "Turn",
    "TurnOutcome",
    "ProviderSummarizer",
    "DONE_EVENT",
    "PING_EVENT",
    "SSE_HEADERS",
    "validate_accept",
    "with_heartbeat",
]
