"""Base agent class and invocation context."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional, Sequence

from adkit.sessions.schemas import Content, Event

if TYPE_CHECKING:
    from adkit.sessions.base import BaseSessionService
    from adkit.sessions.schemas import Session


@dataclass
class InvocationContext:
    """Everything an agent needs for one invocation.

    Attributes:
        agent: Agent being invoked
        session: Session the invocation runs in
        session_service: Service owning the session
        user_content: The message that triggered the invocation
        invocation_id: Unique id shared by all events of this invocation
    """

    agent: "BaseAgent"
    session: "Session"
    session_service: "BaseSessionService"
    user_content: Optional[Content] = None
    invocation_id: str = field(default_factory=lambda: f"e-{uuid.uuid4().hex}")

    @property
    def state(self) -> dict[str, Any]:
        """Session state visible to the agent."""
        return self.session.state


class BaseAgent(ABC):
    """Base class for agents loaded and run by the agent manager.

    An agent is anything with a string ``name`` and an async ``run_async``
    entry point; subclasses implement ``_run_async_impl``.

    Example:
        class GreeterAgent(BaseAgent):
            async def _run_async_impl(self, ctx):
                yield self.reply(ctx, f"Hello from {self.name}")
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        sub_agents: Optional[Sequence["BaseAgent"]] = None,
        model: Optional[str] = None,
        session_service: Optional["BaseSessionService"] = None,
    ) -> None:
        if not name or not isinstance(name, str):
            raise ValueError("Agent name must be a non-empty string")
        self.name = name
        self.description = description
        self.model = model
        self.sub_agents: list[BaseAgent] = list(sub_agents or [])
        self.session_service = session_service
        self.parent_agent: Optional[BaseAgent] = None
        for sub_agent in self.sub_agents:
            sub_agent.parent_agent = self

    async def run_async(self, ctx: InvocationContext) -> AsyncIterator[Event]:
        """Run the agent, yielding the events it produces."""
        async for event in self._run_async_impl(ctx):
            yield event

    @abstractmethod
    def _run_async_impl(self, ctx: InvocationContext) -> AsyncIterator[Event]:
        """Agent-specific behaviour; must be an async generator."""
        pass

    def reply(
        self,
        ctx: InvocationContext,
        text: str,
        state_delta: Optional[dict[str, Any]] = None,
    ) -> Event:
        """Build a text event authored by this agent."""
        event = Event(
            author=self.name,
            content=Content.from_text(text, role="model"),
            invocation_id=ctx.invocation_id,
        )
        if state_delta:
            event.actions.state_delta.update(state_delta)
        return event

    def find_agent(self, name: str) -> Optional["BaseAgent"]:
        """Find this agent or a descendant by name."""
        if self.name == name:
            return self
        for sub_agent in self.sub_agents:
            found = sub_agent.find_agent(name)
            if found is not None:
                return found
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
