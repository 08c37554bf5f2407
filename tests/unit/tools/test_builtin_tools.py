"""Tests for the built-in tools."""

import json

import pytest

from chatgate.core.errors import NotFoundError, ValidationError
from chatgate.core.interfaces import CachedSession
from chatgate.llm.schemas import ProviderName
from chatgate.tools.builtin import BUILTIN_TOOL_NAMES, BuiltinToolExecutor


@pytest.fixture
async def sessions(durable_store) -> list[CachedSession]:
    created = []
    for index in range(3):
        session = CachedSession(
            id=f"sess_{index}",
            tenant_id="tenant-1",
            model="gpt-4o-mini",
            provider=ProviderName.PREMIUM_B,
        )
        await durable_store.put_session(session)
        created.append(session)
    await durable_store.put_session(
        CachedSession(id="other", tenant_id="tenant-2", model="m", provider=ProviderName.EDGE)
    )
    return created


@pytest.fixture
def executor(session_cache) -> BuiltinToolExecutor:
    return BuiltinToolExecutor(session_cache, "tenant-1", "sess_0")


class TestBuiltinTools:
    def test_names(self):
        assert BUILTIN_TOOL_NAMES == {"sessions_list", "sessions_send"}

    @pytest.mark.asyncio
    async def test_sessions_list_is_tenant_scoped(self, executor, sessions):
        output = json.loads(await executor.execute("sessions_list", {}))

        assert output["total"] == 3
        assert output["limit"] == 10
        assert {s["id"] for s in output["sessions"]} == {"sess_0", "sess_1", "sess_2"}
        assert output["sessions"][0]["provider"] == "premium-b"

    @pytest.mark.asyncio
    async def test_sessions_list_clamps_limit(self, executor, sessions):
        output = json.loads(await executor.execute("sessions_list", {"limit": 500, "offset": 2}))

        assert output["limit"] == 100
        assert len(output["sessions"]) == 1

    @pytest.mark.asyncio
    async def test_sessions_list_rejects_non_numeric_limit(self, executor, sessions):
        with pytest.raises(ValidationError):
            await executor.execute("sessions_list", {"limit": "many"})

    @pytest.mark.asyncio
    async def test_sessions_send_appends_user_message(self, executor, sessions, durable_store):
        output = json.loads(
            await executor.execute("sessions_send", {"sessionId": "sess_1", "message": "ping"})
        )

        assert output == {
            "success": True,
            "sessionId": "sess_1",
            "message": "Message sent successfully",
        }
        assert durable_store.messages[("tenant-1", "sess_1")][0].content == "ping"

    @pytest.mark.asyncio
    async def test_sessions_send_to_other_tenant(self, executor, sessions):
        with pytest.raises(NotFoundError):
            await executor.execute("sessions_send", {"sessionId": "other", "message": "x"})
