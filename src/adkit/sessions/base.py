"""Abstract session service."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from adkit.sessions.schemas import Event, ListSessionsResponse, Session


class BaseSessionService(ABC):
    """Storage boundary for sessions.

    In-memory and durable implementations are both valid; the agent manager
    only relies on the methods below.
    """

    @abstractmethod
    async def create_session(
        self,
        app_name: str,
        user_id: str,
        state: Optional[dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Session:
        """Create a session, optionally seeded with state and a fixed id."""
        pass

    @abstractmethod
    async def get_session(
        self, app_name: str, user_id: str, session_id: str
    ) -> Optional[Session]:
        """Fetch a session with its events, or None when it does not exist."""
        pass

    @abstractmethod
    async def list_sessions(self, app_name: str, user_id: str) -> ListSessionsResponse:
        """List sessions for a user. Returned sessions carry no events."""
        pass

    @abstractmethod
    async def delete_session(self, app_name: str, user_id: str, session_id: str) -> None:
        """Delete a session. Deleting a missing session is a no-op."""
        pass

    async def append_event(self, session: Session, event: Event) -> Event:
        """Append an event to a session and apply its state delta."""
        if event.actions.state_delta:
            session.state.update(event.actions.state_delta)
        session.events.append(event)
        session.last_update_time = event.timestamp
        return event
