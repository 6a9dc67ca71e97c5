"""Agent lifecycle and session coordination."""

import asyncio
import base64
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from adkit.agents.runner import Runner
from adkit.config.schemas import ADKConfig
from adkit.errors import (
    AgentLoadError,
    AgentMessageError,
    AgentNotFoundError,
    SessionNotFoundError,
)
from adkit.loader.agent_loader import AgentLoader
from adkit.loader.scanner import AgentDescriptor, AgentScanner
from adkit.manager.state import extract_initial_state, hash_state
from adkit.sessions.base import BaseSessionService
from adkit.sessions.in_memory import InMemorySessionService
from adkit.sessions.schemas import Content, Event, EventActions, InlineData, Part, Session
from adkit.telemetry.logger import bind_context, get_logger, unbind_context

logger = get_logger(__name__)

STATE_BACKFILL_AUTHOR = "system"


@dataclass
class LoadedAgentHandle:
    """A running agent bound to its session.

    Attributes:
        agent: The resolved agent instance
        runner: Runner executing the agent against the shared session service
        session_id: Current session
        user_id: User id derived from the agent path
        app_name: App name shared by all agents
        built: Built bundle the agent came from, if any
    """

    agent: Any
    runner: Runner
    session_id: str
    user_id: str
    app_name: str
    built: Optional[Any] = None


@dataclass
class Attachment:
    """File sent along with a message.

    Attributes:
        name: File name
        mime_type: MIME type of the content
        data: Base64 encoded content
    """

    name: str
    mime_type: str
    data: str

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Attachment":
        """Read and encode a file from disk."""
        file_path = Path(path)
        mime_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            name=file_path.name,
            mime_type=mime_type or "application/octet-stream",
            data=base64.b64encode(file_path.read_bytes()).decode("ascii"),
        )


class AgentManager:
    """Maps agent paths to loaded agents and their sessions.

    Each agent path is either unloaded or has exactly one LoadedAgentHandle.
    Loads of the same path are serialized; a second caller waits for the
    first and then sees the loaded handle.

    Example:
        manager = AgentManager()
        manager.scan_agents("agents")
        reply = await manager.send_message("foo", "hi")
    """

    def __init__(
        self,
        session_service: Optional[BaseSessionService] = None,
        config: Optional[ADKConfig] = None,
        loader: Optional[AgentLoader] = None,
        scanner: Optional[AgentScanner] = None,
    ) -> None:
        self.config = config or ADKConfig()
        self.session_service = session_service or InMemorySessionService()
        self.loader = loader or AgentLoader(self.config)
        self.scanner = scanner or AgentScanner(quiet=self.config.quiet)

        self._agents: dict[str, AgentDescriptor] = {}
        self._loaded: dict[str, LoadedAgentHandle] = {}
        self._state_hashes: dict[str, str] = {}
        self._initial_states: dict[str, Optional[dict[str, Any]]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def app_name(self) -> str:
        return self.config.app_name

    def user_id_for(self, agent_path: str) -> str:
        return f"{self.config.user_id_prefix}{agent_path}"

    def get_agents(self) -> dict[str, AgentDescriptor]:
        return self._agents

    def get_loaded_agents(self) -> dict[str, LoadedAgentHandle]:
        return self._loaded

    def get_initial_state_for_agent(self, agent_path: str) -> Optional[dict[str, Any]]:
        """Initial state extracted at the last successful load."""
        return self._initial_states.get(agent_path)

    def scan_agents(self, agents_dir: Union[str, Path]) -> dict[str, AgentDescriptor]:
        """Rebuild the agent registry from a directory."""
        logger.info("Scanning agents", directory=str(agents_dir))
        self._agents = self.scanner.scan_agents(agents_dir, self._loaded)
        logger.info("Found agents", agents=list(self._agents))
        return self._agents

    async def start_agent(self, agent_path: str, restore_session_id: Optional[str] = None) -> None:
        """Load an agent and bind it to a session. No-op when already loaded.

        Raises:
            AgentNotFoundError: If the path is not in the scanned registry
            AgentLoadError: If loading fails for any other reason
        """
        descriptor = self._get_descriptor(agent_path)
        if agent_path in self._loaded:
            return

        lock = self._locks.setdefault(agent_path, asyncio.Lock())
        async with lock:
            if agent_path in self._loaded:
                return

            logger.info("Starting agent", agent_path=agent_path)
            try:
                resolved = await self.loader.load_agent(descriptor.agent_file, descriptor.project_root)
                session = await self._select_session(
                    agent_path, resolved.agent, resolved.built, restore_session_id
                )
            except Exception as e:
                message = str(e)
                if self.config.debug:
                    logger.exception(
                        "Failed to load agent", agent=descriptor.display_name, error=message
                    )
                else:
                    logger.error("Failed to load agent", agent=descriptor.display_name, error=message)
                raise AgentLoadError(descriptor.display_name, message) from None

            handle = LoadedAgentHandle(
                agent=resolved.agent,
                runner=Runner(
                    app_name=self.app_name,
                    agent=resolved.agent,
                    session_service=self.session_service,
                ),
                session_id=session.id,
                user_id=self.user_id_for(agent_path),
                app_name=self.app_name,
                built=resolved.built,
            )
            self._loaded[agent_path] = handle
            descriptor.instance = resolved.agent
            descriptor.display_name = resolved.agent.name
            logger.info(
                "Agent loaded",
                agent_path=agent_path,
                agent=resolved.agent.name,
                session_id=session.id,
            )

    async def stop_agent(self, agent_path: str) -> None:
        """Forget the loaded agent. Sessions are kept."""
        self._loaded.pop(agent_path, None)
        descriptor = self._agents.get(agent_path)
        if descriptor is not None:
            descriptor.instance = None
        logger.debug("Agent stopped", agent_path=agent_path)

    async def stop_all_agents(self) -> None:
        for agent_path in list(self._loaded):
            await self.stop_agent(agent_path)

    async def reload_agent(self, agent_path: str) -> None:
        """Stop and start an agent, keeping its session unless its initial state changed."""
        handle = self._loaded.get(agent_path)
        session_id = handle.session_id if handle else None
        await self.stop_agent(agent_path)
        await self.start_agent(agent_path, restore_session_id=session_id)

    async def send_message(
        self,
        agent_path: str,
        message: str,
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> str:
        """Send a message, starting the agent if needed, and return its text reply.

        Raises:
            AgentMessageError: If the agent fails while handling the message
        """
        if agent_path not in self._loaded:
            await self.start_agent(agent_path)

        handle = self._loaded.get(agent_path)
        if handle is None:
            raise AgentMessageError(agent_path, "Agent failed to start")

        parts = [Part(text=message)]
        for attachment in attachments or []:
            parts.append(
                Part(inline_data=InlineData(mime_type=attachment.mime_type, data=attachment.data))
            )
        content = Content(role="user", parts=parts)

        bind_context(agent_path=agent_path, session_id=handle.session_id)
        try:
            chunks: list[str] = []
            async for event in handle.runner.run_async(
                user_id=handle.user_id,
                session_id=handle.session_id,
                new_message=content,
            ):
                event_parts = getattr(getattr(event, "content", None), "parts", None) or []
                chunks.extend(p.text for p in event_parts if getattr(p, "text", None))
            return "".join(chunks).strip()
        except Exception as e:
            logger.error("Error sending message to agent", agent_path=agent_path, error=str(e))
            raise AgentMessageError(agent_path, str(e)) from e
        finally:
            unbind_context("agent_path", "session_id")

    async def list_sessions(self, agent_path: str) -> list[dict[str, Any]]:
        """Sessions of an agent with their event counts."""
        handle = await self._ensure_loaded(agent_path)
        listed = await self.session_service.list_sessions(handle.app_name, handle.user_id)

        result = []
        for session in listed.sessions:
            full = await self.session_service.get_session(handle.app_name, handle.user_id, session.id)
            result.append(
                {
                    "id": session.id,
                    "app_name": session.app_name,
                    "user_id": session.user_id,
                    "state": session.state,
                    "event_count": len(full.events) if full else 0,
                    "last_update_time": session.last_update_time,
                    "current": session.id == handle.session_id,
                }
            )
        return result

    async def create_session(
        self,
        agent_path: str,
        state: Optional[dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Session:
        """Create a session, seeded with the agent's initial state by default."""
        handle = await self._ensure_loaded(agent_path)
        if state is None:
            state = self.get_initial_state_for_agent(agent_path)
        session = await self.session_service.create_session(
            handle.app_name, handle.user_id, state=state, session_id=session_id
        )
        logger.info("Session created", agent_path=agent_path, session_id=session.id)
        return session

    async def delete_session(self, agent_path: str, session_id: str) -> None:
        handle = await self._ensure_loaded(agent_path)
        await self.session_service.delete_session(handle.app_name, handle.user_id, session_id)

    async def switch_session(self, agent_path: str, session_id: str) -> None:
        """Point a loaded agent at another existing session.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        handle = await self._ensure_loaded(agent_path)
        session = await self.session_service.get_session(handle.app_name, handle.user_id, session_id)
        if session is None:
            raise SessionNotFoundError(session_id, handle.app_name, handle.user_id)
        handle.session_id = session_id
        logger.info("Switched session", agent_path=agent_path, session_id=session_id)

    async def get_session_messages(self, agent_path: str) -> list[dict[str, Any]]:
        """Events of the current session as chat messages."""
        handle = await self._ensure_loaded(agent_path)
        session = await self.session_service.get_session(
            handle.app_name, handle.user_id, handle.session_id
        )
        if session is None:
            return []

        return [
            {
                "id": index,
                "type": "user" if event.author == "user" else "assistant",
                "content": event.text,
                "timestamp": datetime.fromtimestamp(event.timestamp, tz=timezone.utc).isoformat(),
            }
            for index, event in enumerate(session.events, start=1)
            if event.content is not None
        ]

    async def get_session_state(self, agent_path: str) -> dict[str, Any]:
        """State of the current session."""
        handle = await self._ensure_loaded(agent_path)
        session = await self.session_service.get_session(
            handle.app_name, handle.user_id, handle.session_id
        )
        if session is None:
            raise SessionNotFoundError(handle.session_id, handle.app_name, handle.user_id)
        return dict(session.state)

    def _get_descriptor(self, agent_path: str) -> AgentDescriptor:
        descriptor = self._agents.get(agent_path)
        if descriptor is None:
            logger.error("Agent not found", agent_path=agent_path, available=list(self._agents))
            raise AgentNotFoundError(agent_path)
        return descriptor

    async def _ensure_loaded(self, agent_path: str) -> LoadedAgentHandle:
        if agent_path not in self._loaded:
            await self.start_agent(agent_path)
        return self._loaded[agent_path]

    async def _select_session(
        self,
        agent_path: str,
        agent: Any,
        built: Optional[Any],
        restore_session_id: Optional[str],
    ) -> Session:
        app_name = self.app_name
        user_id = self.user_id_for(agent_path)

        initial_state = extract_initial_state(agent, built)
        new_hash = hash_state(initial_state)
        previous_hash = self._state_hashes.get(agent_path)
        self._state_hashes[agent_path] = new_hash
        self._initial_states[agent_path] = initial_state

        if previous_hash is not None and previous_hash != new_hash:
            logger.info(
                "Initial state changed, resetting sessions",
                agent_path=agent_path,
                previous=previous_hash,
                current=new_hash,
            )
            await self._delete_all_sessions(app_name, user_id)
            return await self.session_service.create_session(app_name, user_id, state=initial_state)

        if restore_session_id:
            session = await self.session_service.get_session(app_name, user_id, restore_session_id)
            if session is not None:
                logger.debug("Restored session", session_id=restore_session_id)
                return session
            logger.warning("Session to restore not found, creating new session", session_id=restore_session_id)
            return await self.session_service.create_session(app_name, user_id, state=initial_state)

        existing = (await self.session_service.list_sessions(app_name, user_id)).sessions
        if existing:
            recent = max(existing, key=lambda s: s.last_update_time)
            session = await self.session_service.get_session(app_name, user_id, recent.id)
            if session is not None:
                if not session.state and initial_state:
                    await self.session_service.append_event(
                        session,
                        Event(
                            author=STATE_BACKFILL_AUTHOR,
                            actions=EventActions(state_delta=dict(initial_state)),
                        ),
                    )
                logger.info(
                    "Reusing existing session",
                    session_id=session.id,
                    state_keys=list(session.state),
                )
                return session

        logger.info("No existing sessions found, creating new session", agent_path=agent_path)
        return await self.session_service.create_session(app_name, user_id, state=initial_state)

    async def _delete_all_sessions(self, app_name: str, user_id: str) -> None:
        listed = await self.session_service.list_sessions(app_name, user_id)
        for session in listed.sessions:
            await self.session_service.delete_session(app_name, user_id, session.id)
        logger.debug("Deleted sessions", app_name=app_name, user_id=user_id, count=len(listed.sessions))
