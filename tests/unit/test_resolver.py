"""Tests for agent export resolution."""

import types

import pytest

from adkit.agents.base import BaseAgent
from adkit.agents.builder import AgentBuilder, BuiltAgent
from adkit.errors import AgentFunctionExecutionError, NoAgentExportError
from adkit.loader.resolver import (
    ExportResolver,
    is_agent_builder,
    is_agent_like,
    is_built_agent,
    is_primitive,
)


class StubAgent(BaseAgent):
    async def _run_async_impl(self, ctx):
        yield self.reply(ctx, "ok")


@pytest.fixture
def resolver() -> ExportResolver:
    return ExportResolver()


class TestPredicates:
    """Tests for the shape predicates."""

    def test_primitives(self) -> None:
        """Should recognize primitive values."""
        for value in (None, "x", b"x", 1, 1.5, True):
            assert is_primitive(value)
        assert not is_primitive({"agent": 1})

    def test_agent_like(self) -> None:
        """Instances qualify, classes do not."""
        assert is_agent_like(StubAgent(name="a"))
        assert not is_agent_like(StubAgent)
        assert not is_agent_like({"name": "a"})

    def test_builder_and_built(self) -> None:
        """Should recognize builders and built bundles."""
        assert is_agent_builder(AgentBuilder.create("b"))
        assert not is_agent_builder(AgentBuilder)
        assert is_built_agent({"agent": 1, "runner": 2, "session": 3})
        assert not is_built_agent({"agent": 1})


class TestExportResolver:
    """Tests for ExportResolver.resolve."""

    @pytest.mark.asyncio
    async def test_agent_export(self, resolver: ExportResolver) -> None:
        """Should resolve an ``agent`` export."""
        agent = StubAgent(name="direct")
        resolved = await resolver.resolve({"agent": agent})

        assert resolved.agent is agent
        assert resolved.built is None
        assert resolved.name == "direct"

    @pytest.mark.asyncio
    async def test_root_agent_export(self, resolver: ExportResolver) -> None:
        """Should resolve a ``root_agent`` export."""
        agent = StubAgent(name="root")
        assert (await resolver.resolve({"root_agent": agent})).agent is agent

    @pytest.mark.asyncio
    async def test_default_agent_export(self, resolver: ExportResolver) -> None:
        """Should resolve ``default.agent`` and ``default``."""
        nested = StubAgent(name="nested")
        plain = StubAgent(name="plain")

        assert (await resolver.resolve({"default": {"agent": nested}})).agent is nested
        assert (await resolver.resolve({"default": plain})).agent is plain

    @pytest.mark.asyncio
    async def test_builder_export(self, resolver: ExportResolver) -> None:
        """Should build an exported builder and keep the bundle."""
        agent = StubAgent(name="built")
        builder = AgentBuilder.create("built").with_agent(agent)

        resolved = await resolver.resolve({"agent": builder})

        assert resolved.agent is agent
        assert isinstance(resolved.built, BuiltAgent)
        assert resolved.built.session.app_name == "built_app"

    @pytest.mark.asyncio
    async def test_built_export(self, resolver: ExportResolver) -> None:
        """Should accept an already built bundle."""
        agent = StubAgent(name="bundle")
        built = await AgentBuilder.create("bundle").with_agent(agent).build()

        resolved = await resolver.resolve({"agent": built})

        assert resolved.agent is agent
        assert resolved.built is built

    @pytest.mark.asyncio
    async def test_wrapper_export(self, resolver: ExportResolver) -> None:
        """Should unwrap ``{"agent": ...}`` values among other exports."""
        agent = StubAgent(name="wrapped")
        resolved = await resolver.resolve({"version": "1.0", "bundle": {"agent": agent}})

        assert resolved.agent is agent

    @pytest.mark.asyncio
    async def test_factory_functions(self, resolver: ExportResolver) -> None:
        """Should call sync and async factories named like agent factories."""
        agent = StubAgent(name="made")

        async def create_agent():
            return agent

        assert (await resolver.resolve({"create_agent": create_agent})).agent is agent
        assert (await resolver.resolve({"build": lambda: {"agent": agent}})).agent is agent

    @pytest.mark.asyncio
    async def test_other_functions_not_called(self, resolver: ExportResolver) -> None:
        """Functions with unrelated names should not be invoked."""
        calls = []

        def helper():
            calls.append(1)
            return StubAgent(name="never")

        with pytest.raises(NoAgentExportError):
            await resolver.resolve({"helper": helper})
        assert calls == []

    @pytest.mark.asyncio
    async def test_external_scope_factory_skipped(self, resolver: ExportResolver) -> None:
        """Factories from external packages should not be invoked."""
        calls = []

        def create_agent():
            calls.append(1)
            return StubAgent(name="never")

        create_agent.__module__ = "adkit.tools"

        with pytest.raises(NoAgentExportError):
            await resolver.resolve({"create_agent": create_agent})
        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_factory_skipped(self, resolver: ExportResolver) -> None:
        """A failing factory during the scan should not stop resolution."""
        agent = StubAgent(name="fallback")

        def build_agent():
            raise RuntimeError("boom")

        resolved = await resolver.resolve({"build_agent": build_agent, "main": agent})
        assert resolved.agent is agent

    @pytest.mark.asyncio
    async def test_failing_direct_function(self, resolver: ExportResolver) -> None:
        """A failing last-resort call should raise AgentFunctionExecutionError."""

        def agent():
            raise RuntimeError("cannot build")

        with pytest.raises(AgentFunctionExecutionError) as exc_info:
            await resolver.resolve({"agent": agent})

        assert "cannot build" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_primitives_rejected(self, resolver: ExportResolver) -> None:
        """Primitive exports never resolve."""
        with pytest.raises(NoAgentExportError):
            await resolver.resolve({"agent": "assistant", "count": 3, "enabled": True})

    @pytest.mark.asyncio
    async def test_class_export_rejected(self, resolver: ExportResolver) -> None:
        """An exported agent class is not an agent."""
        with pytest.raises(NoAgentExportError):
            await resolver.resolve({"agent": StubAgent})

    @pytest.mark.asyncio
    async def test_module_exports(self, resolver: ExportResolver) -> None:
        """Should read public attributes of a module."""
        module = types.ModuleType("sample_agent")
        module._hidden = StubAgent(name="hidden")
        module.assistant = StubAgent(name="assistant")

        resolved = await resolver.resolve(module)
        assert resolved.name == "assistant"
