"""Tests for ProviderSummarizer."""

import pytest
from helpers import ScriptedAdapter, make_result

from chatgate.llm.registry import ProviderRegistry
from chatgate.llm.schemas import ChatMessage, ProviderName, Role
from chatgate.orchestrator.summarizer import SUMMARY_INSTRUCTIONS, ProviderSummarizer


@pytest.mark.asyncio
async def test_summarize_sends_transcript():
    adapter = ScriptedAdapter(ProviderName.EDGE, [make_result(content="  They greeted.  ")])
    summarizer = ProviderSummarizer(ProviderRegistry({ProviderName.EDGE: adapter}))

    summary = await summarizer.summarize(
        [
            ChatMessage(role=Role.USER, content="hi"),
            ChatMessage(role=Role.TOOL, content="{}", tool_call_id="c1"),
            ChatMessage(role=Role.ASSISTANT, content="hello"),
        ]
    )

    assert summary == "They greeted."
    request = adapter.requests[0]
    assert request.messages[0].content == SUMMARY_INSTRUCTIONS
    assert request.messages[1].content == "user: hi\nassistant: hello"
    assert request.max_tokens == 512


@pytest.mark.asyncio
async def test_empty_history_skips_provider():
    adapter = ScriptedAdapter(ProviderName.EDGE, [])
    summarizer = ProviderSummarizer(ProviderRegistry({ProviderName.EDGE: adapter}))

    assert await summarizer.summarize([]) == ""
    assert adapter.requests == []
