"""Conversation summarizer used for summary-preserving session resets."""

from __future__ import annotations

import structlog

from chatgate.llm.models import get_default_model
from chatgate.llm.registry import ProviderRegistry
from chatgate.llm.schemas import ChatMessage, CompletionRequest, ProviderName, Role

logger = structlog.get_logger()

SUMMARY_INSTRUCTIONS = (
    "Summarize the following conversation in a few sentences. Keep facts, "
    "decisions and open requests the assistant needs to continue the conversation."
)


class ProviderSummarizer:
    """Summarizes a history with a single provider call."""

    def __init__(
        self,
        registry: ProviderRegistry,
        provider: ProviderName = ProviderName.EDGE,
        max_tokens: int = 512,
    ) -> None:
        self.registry = registry
        self.provider = provider
        self.max_tokens = max_tokens

    async def summarize(self, messages: list[ChatMessage]) -> str:
        """Summarize a message history.

        Args:
            messages: History in chronological order

        Returns:
            Summary text; empty for an empty history

        Raises:
            ProviderError: If the provider call fails
        """
        transcript = "\n".join(
            f"{m.role.value}: {m.content}" for m in messages if m.content and m.role != Role.TOOL
        )
        if not transcript:
            return ""

        adapter = self.registry.get(self.provider)
        result = await adapter.complete(
            CompletionRequest(
                messages=[
                    ChatMessage(role=Role.SYSTEM, content=SUMMARY_INSTRUCTIONS),
                    ChatMessage(role=Role.USER, content=transcript),
                ],
                model=get_default_model(self.provider),
                provider=self.provider,
                max_tokens=self.max_tokens,
            )
        )
        logger.info(
            "conversation_summarized",
            provider=self.provider.value,
            message_count=len(messages),
            total_tokens=result.usage.total_tokens,
        )
        return result.content.strip()
