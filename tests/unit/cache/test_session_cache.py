"""Tests for SessionCache."""

from unittest.mock import AsyncMock

import pytest

from chatgate.cache.session_cache import SUMMARY_PREFIX, SessionCache, trim_history
from chatgate.core.errors import NotFoundError
from chatgate.core.interfaces import CachedSession
from chatgate.llm.schemas import ChatMessage, ProviderName, Role, ToolCall


def user(content: str) -> ChatMessage:
    return ChatMessage(role=Role.USER, content=content)


def assistant(content: str) -> ChatMessage:
    return ChatMessage(role=Role.ASSISTANT, content=content)


def tool_exchange(call_id: str = "c1") -> list[ChatMessage]:
    return [
        ChatMessage(
            role=Role.ASSISTANT,
            tool_calls=[ToolCall(id=call_id, name="sessions_list", arguments={})],
        ),
        ChatMessage(role=Role.TOOL, content="[]", tool_call_id=call_id),
    ]


@pytest.fixture
def session() -> CachedSession:
    return CachedSession(
        id="sess_1",
        tenant_id="tenant-1",
        model="@cf/meta/llama-3.1-8b-instruct",
        provider=ProviderName.EDGE,
    )


@pytest.fixture
async def stored_session(session_cache, durable_store, session) -> CachedSession:
    """Session with two messages in the durable tier only."""
    await durable_store.put_session(session)
    await durable_store.append_messages(
        session.tenant_id, session.id, [user("hi"), assistant("hello")]
    )
    durable_store.append_calls = 0
    return session


class TestReadThrough:
    """Tests for get, load and warm."""

    @pytest.mark.asyncio
    async def test_get_is_a_miss_before_warm(self, session_cache, stored_session):
        assert await session_cache.get("tenant-1", "sess_1") is None

    @pytest.mark.asyncio
    async def test_load_repopulates_volatile_tier(self, session_cache, stored_session, cache_store):
        loaded = await session_cache.load("tenant-1", "sess_1")

        assert [m.content for m in loaded.messages] == ["hi", "hello"]
        cached = await session_cache.get("tenant-1", "sess_1")
        assert cached is not None
        assert cached.messages == loaded.messages
        assert cache_store.ttls["session:tenant-1:sess_1"] == 300
        assert cache_store.ttls["session:tenant-1:sess_1:messages"] == 3600

    @pytest.mark.asyncio
    async def test_load_unknown_session(self, session_cache):
        assert await session_cache.load("tenant-1", "missing") is None
        assert not await session_cache.warm("tenant-1", "missing")

    @pytest.mark.asyncio
    async def test_warm_is_idempotent(
        self, session_cache, stored_session, cache_store, durable_store
    ):
        assert await session_cache.warm("tenant-1", "sess_1")
        first = dict(cache_store.values)

        assert await session_cache.warm("tenant-1", "sess_1")

        assert cache_store.values == first
        assert durable_store.append_calls == 0
        assert len(durable_store.messages[("tenant-1", "sess_1")]) == 2

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_read(self, session_cache, stored_session):
        assert await session_cache.load("tenant-2", "sess_1") is None

    @pytest.mark.asyncio
    async def test_cache_read_failure_falls_back_to_durable(
        self, session_cache, stored_session, cache_store
    ):
        cache_store.get = AsyncMock(side_effect=ConnectionError("down"))

        loaded = await session_cache.load("tenant-1", "sess_1")

        assert loaded is not None
        assert len(loaded.messages) == 2

    @pytest.mark.asyncio
    async def test_history_limit(self, cache_store, durable_store, stored_session):
        cache = SessionCache(cache_store, durable_store, history_limit=1)

        loaded = await cache.load("tenant-1", "sess_1")

        assert [m.content for m in loaded.messages] == ["hello"]

    @pytest.mark.asyncio
    async def test_history_limit_never_opens_on_a_tool_result(
        self, cache_store, durable_store, session
    ):
        await durable_store.put_session(session)
        await durable_store.append_messages(
            "tenant-1", "sess_1", [user("hi"), *tool_exchange(), assistant("none yet")]
        )
        cache = SessionCache(cache_store, durable_store, history_limit=2)

        loaded = await cache.load("tenant-1", "sess_1")

        assert [m.role for m in loaded.messages] == [Role.ASSISTANT]
        assert loaded.messages[0].content == "none yet"

    @pytest.mark.asyncio
    async def test_record_turn_trims_without_orphans(self, cache_store, durable_store, session):
        cache = SessionCache(cache_store, durable_store, history_limit=2)

        await cache.record_turn(session, [user("hi"), *tool_exchange(), assistant("done")])

        cached = await cache.get("tenant-1", "sess_1")
        assert [m.role for m in cached.messages] == [Role.ASSISTANT]
        assert len(durable_store.messages[("tenant-1", "sess_1")]) == 4


class TestWriteThrough:
    """Tests for put, record_turn and append_messages."""

    @pytest.mark.asyncio
    async def test_record_turn_updates_both_tiers(self, session_cache, durable_store, session):
        await session_cache.record_turn(session, [user("hi"), assistant("hello")])

        assert ("tenant-1", "sess_1") in durable_store.sessions
        assert len(durable_store.messages[("tenant-1", "sess_1")]) == 2
        cached = await session_cache.get("tenant-1", "sess_1")
        assert [m.content for m in cached.messages] == ["hi", "hello"]

    @pytest.mark.asyncio
    async def test_volatile_write_failure_is_not_fatal(
        self, session_cache, durable_store, cache_store, session
    ):
        cache_store.fail_writes = True

        await session_cache.record_turn(session, [user("hi")])

        assert len(durable_store.messages[("tenant-1", "sess_1")]) == 1
        assert await session_cache.get("tenant-1", "sess_1") is None

    @pytest.mark.asyncio
    async def test_append_messages_invalidates(self, session_cache, stored_session, durable_store):
        await session_cache.warm("tenant-1", "sess_1")

        await session_cache.append_messages("tenant-1", "sess_1", [user("from elsewhere")])

        assert await session_cache.get("tenant-1", "sess_1") is None
        loaded = await session_cache.load("tenant-1", "sess_1")
        assert loaded.messages[-1].content == "from elsewhere"

    @pytest.mark.asyncio
    async def test_append_messages_unknown_session(self, session_cache):
        with pytest.raises(NotFoundError):
            await session_cache.append_messages("tenant-1", "missing", [user("x")])


class TestReset:
    """Tests for session reset."""

    @pytest.mark.asyncio
    async def test_reset_makes_next_get_a_miss(self, session_cache, stored_session, durable_store):
        await session_cache.warm("tenant-1", "sess_1")

        result = await session_cache.reset("tenant-1", "sess_1")

        assert result == {"sessionId": "sess_1", "summarized": False}
        assert await session_cache.get("tenant-1", "sess_1") is None
        assert ("tenant-1", "sess_1") not in durable_store.messages
        reloaded = await session_cache.load("tenant-1", "sess_1")
        assert reloaded.messages == []

    @pytest.mark.asyncio
    async def test_reset_with_summary(self, session_cache, stored_session, durable_store):
        summarizer = AsyncMock()
        summarizer.summarize = AsyncMock(return_value="They said hi.")

        result = await session_cache.reset("tenant-1", "sess_1", summarizer=summarizer)

        assert result["summarized"] is True
        history = durable_store.messages[("tenant-1", "sess_1")]
        assert len(history) == 1
        assert history[0].role == Role.SYSTEM
        assert history[0].content == f"{SUMMARY_PREFIX} They said hi."
        summarized = summarizer.summarize.call_args[0][0]
        assert [m.content for m in summarized] == ["hi", "hello"]

    @pytest.mark.asyncio
    async def test_reset_unknown_session(self, session_cache):
        with pytest.raises(NotFoundError):
            await session_cache.reset("tenant-1", "missing")


class TestTrimHistory:
    """Tests for tool-safe trimming."""

    def test_keeps_complete_exchanges(self):
        history = [user("hi"), *tool_exchange(), assistant("done")]

        assert trim_history(history, 3) == history[1:]
        assert trim_history(history, None) == history

    def test_drops_results_of_calls_outside_the_window(self):
        history = [*tool_exchange("c1"), *tool_exchange("c2")]

        trimmed = trim_history(history, 3)

        assert [m.tool_call_id for m in trimmed if m.role == Role.TOOL] == ["c2"]
        assert trimmed[0].tool_calls[0].id == "c2"
