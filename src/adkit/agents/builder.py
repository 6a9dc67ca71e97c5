"""Fluent builder producing an agent bound to a runner and a session."""

from dataclasses import dataclass
from typing import Any, Optional

from adkit.agents.base import BaseAgent
from adkit.agents.runner import Runner
from adkit.errors import ConfigurationError
from adkit.sessions.base import BaseSessionService
from adkit.sessions.in_memory import InMemorySessionService
from adkit.sessions.schemas import Session

DEFAULT_USER_ID = "default_user"


@dataclass
class BuiltAgent:
    """Result of AgentBuilder.build(): the agent with its runner and session."""

    agent: BaseAgent
    runner: Runner
    session: Session


class AgentBuilder:
    """Builds a runnable agent.

    Example:
        built = await (
            AgentBuilder.create("assistant")
            .with_model("gemini-2.5-flash")
            .with_agent(MyAgent(name="assistant"))
            .with_session_service(service, user_id="u1", state={"count": 0})
            .build()
        )
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._agent: Optional[BaseAgent] = None
        self._model: Optional[str] = None
        self._description: str = ""
        self._session_service: Optional[BaseSessionService] = None
        self._user_id = DEFAULT_USER_ID
        self._app_name: Optional[str] = None
        self._state: Optional[dict[str, Any]] = None
        self._session_id: Optional[str] = None

    @classmethod
    def create(cls, name: str) -> "AgentBuilder":
        """Start a builder for an agent with the given name."""
        return cls(name)

    def with_model(self, model: str) -> "AgentBuilder":
        self._model = model
        return self

    def with_description(self, description: str) -> "AgentBuilder":
        self._description = description
        return self

    def with_agent(self, agent: BaseAgent) -> "AgentBuilder":
        """Use an existing agent instance as-is (sub-agents included)."""
        self._agent = agent
        return self

    def with_session_service(
        self,
        service: BaseSessionService,
        user_id: Optional[str] = None,
        app_name: Optional[str] = None,
        state: Optional[dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> "AgentBuilder":
        """Bind the agent to a session service and session parameters."""
        self._session_service = service
        if user_id:
            self._user_id = user_id
        self._app_name = app_name
        self._state = state
        self._session_id = session_id
        return self

    def with_initial_state(self, state: dict[str, Any]) -> "AgentBuilder":
        self._state = state
        return self

    async def build(self) -> BuiltAgent:
        """Create the runner and fetch or create the session.

        Raises:
            ConfigurationError: If no agent was supplied
        """
        if self._agent is None:
            raise ConfigurationError(
                f"AgentBuilder '{self.name}' has no agent; call with_agent() first"
            )

        agent = self._agent
        if self._model and not agent.model:
            agent.model = self._model
        if self._description and not agent.description:
            agent.description = self._description

        service = self._session_service or InMemorySessionService()
        if agent.session_service is None:
            agent.session_service = service

        app_name = self._app_name or f"{self.name}_app"

        session = None
        if self._session_id:
            session = await service.get_session(app_name, self._user_id, self._session_id)
        if session is None:
            session = await service.create_session(
                app_name,
                self._user_id,
                state=self._state,
                session_id=self._session_id,
            )

        runner = Runner(app_name=app_name, agent=agent, session_service=service)
        return BuiltAgent(agent=agent, runner=runner, session=session)
