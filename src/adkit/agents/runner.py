"""Runner: executes an agent against a session service."""

from typing import AsyncIterator

from adkit.agents.base import BaseAgent, InvocationContext
from adkit.errors import SessionNotFoundError
from adkit.sessions.base import BaseSessionService
from adkit.sessions.schemas import Content, Event
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)


class Runner:
    """Runs one agent for one app, persisting events through a session service."""

    def __init__(
        self,
        app_name: str,
        agent: BaseAgent,
        session_service: BaseSessionService,
    ) -> None:
        self.app_name = app_name
        self.agent = agent
        self.session_service = session_service

    async def run_async(
        self,
        user_id: str,
        session_id: str,
        new_message: Content,
    ) -> AsyncIterator[Event]:
        """Append the user message, run the agent and yield its events.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        session = await self.session_service.get_session(self.app_name, user_id, session_id)
        if session is None:
            raise SessionNotFoundError(session_id, self.app_name, user_id)

        ctx = InvocationContext(
            agent=self.agent,
            session=session,
            session_service=self.session_service,
            user_content=new_message,
        )

        user_event = Event(
            author="user",
            content=new_message,
            invocation_id=ctx.invocation_id,
        )
        await self.session_service.append_event(session, user_event)

        logger.debug(
            "Running agent",
            agent=self.agent.name,
            session_id=session_id,
            invocation_id=ctx.invocation_id,
        )

        async for event in self.agent.run_async(ctx):
            await self.session_service.append_event(session, event)
            yield event
