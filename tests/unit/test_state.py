"""Tests for initial state extraction."""

import pytest

from adkit.agents.base import BaseAgent
from adkit.agents.builder import AgentBuilder
from adkit.manager.state import extract_initial_state, first_non_empty_state, hash_state
from adkit.sessions.in_memory import InMemorySessionService
from adkit.sessions.schemas import Session


class StubAgent(BaseAgent):
    async def _run_async_impl(self, ctx):
        yield self.reply(ctx, "ok")


class TestExtractInitialState:
    """Tests for extract_initial_state."""

    def test_no_state(self) -> None:
        """An agent without sessions has no initial state."""
        assert extract_initial_state(StubAgent(name="a")) is None

    @pytest.mark.asyncio
    async def test_built_session_state(self) -> None:
        """Should read the state of a built bundle's session."""
        built = await (
            AgentBuilder.create("counter")
            .with_agent(StubAgent(name="counter"))
            .with_initial_state({"count": 0})
            .build()
        )

        assert extract_initial_state(built.agent, built) == {"count": 0}

    @pytest.mark.asyncio
    async def test_agent_session_service(self) -> None:
        """Should read sessions of the agent's own session service."""
        service = InMemorySessionService()
        await service.create_session("app", "u1")
        await service.create_session("app", "u1", state={"topic": "weather"})
        agent = StubAgent(name="a", session_service=service)

        assert extract_initial_state(agent) == {"topic": "weather"}

    @pytest.mark.asyncio
    async def test_sub_agent_state(self) -> None:
        """Should fall back to sub-agents."""
        service = InMemorySessionService()
        await service.create_session("app", "u1", state={"step": 1})
        child = StubAgent(name="child", session_service=service)
        parent = StubAgent(name="parent", sub_agents=[child])

        assert extract_initial_state(parent) == {"step": 1}

    def test_cycle_terminates(self) -> None:
        """Agent graphs with cycles should not recurse forever."""
        first = StubAgent(name="first")
        second = StubAgent(name="second", sub_agents=[first])
        first.sub_agents.append(second)

        assert extract_initial_state(first) is None


class TestStateHelpers:
    """Tests for state helpers."""

    def test_first_non_empty_state(self) -> None:
        """Should skip empty states."""
        sessions = [
            Session(id="1", app_name="a", user_id="u"),
            Session(id="2", app_name="a", user_id="u", state={"k": "v"}),
        ]
        assert first_non_empty_state(sessions) == {"k": "v"}
        assert first_non_empty_state([]) is None

    def test_hash_state(self) -> None:
        """Equal states should hash equally regardless of key order."""
        assert hash_state({"a": 1, "b": 2}) == hash_state({"b": 2, "a": 1})
        assert hash_state({"a": 1}) != hash_state({"a": 2})
        assert hash_state(None) == hash_state({})
        assert len(hash_state({"a": 1})) == 16

    def test_hash_state_plain_objects(self) -> None:
        """Separately built plain objects with equal attributes should hash equally."""

        class Point:
            def __init__(self, x):
                self.x = x

        assert hash_state({"p": Point(1)}) == hash_state({"p": Point(1)})
        assert hash_state({"p": Point(1)}) != hash_state({"p": Point(2)})
