"""In-memory session service."""

import copy
import time
import uuid
from typing import Any, Iterator, Optional

from adkit.sessions.base import BaseSessionService
from adkit.sessions.schemas import Event, ListSessionsResponse, Session
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)


class InMemorySessionService(BaseSessionService):
    """Session service keeping sessions in a nested app -> user -> id map.

    Sessions handed out are copies; mutations only persist through
    append_event().
    """

    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, dict[str, Session]]] = {}

    async def create_session(
        self,
        app_name: str,
        user_id: str,
        state: Optional[dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Session:
        session_id = session_id or uuid.uuid4().hex
        session = Session(
            id=session_id,
            app_name=app_name,
            user_id=user_id,
            state=copy.deepcopy(state) if state else {},
            last_update_time=time.time(),
        )
        self.sessions.setdefault(app_name, {}).setdefault(user_id, {})[session_id] = session
        logger.debug(
            "Session created",
            app_name=app_name,
            user_id=user_id,
            session_id=session_id,
            state_keys=list(session.state),
        )
        return copy.deepcopy(session)

    async def get_session(
        self, app_name: str, user_id: str, session_id: str
    ) -> Optional[Session]:
        session = self.sessions.get(app_name, {}).get(user_id, {}).get(session_id)
        if session is None:
            return None
        return copy.deepcopy(session)

    async def list_sessions(self, app_name: str, user_id: str) -> ListSessionsResponse:
        result = []
        for session in self.sessions.get(app_name, {}).get(user_id, {}).values():
            result.append(
                Session(
                    id=session.id,
                    app_name=session.app_name,
                    user_id=session.user_id,
                    state=copy.deepcopy(session.state),
                    last_update_time=session.last_update_time,
                )
            )
        return ListSessionsResponse(sessions=result)

    async def delete_session(self, app_name: str, user_id: str, session_id: str) -> None:
        user_sessions = self.sessions.get(app_name, {}).get(user_id, {})
        if user_sessions.pop(session_id, None) is not None:
            logger.debug("Session deleted", app_name=app_name, session_id=session_id)

    async def append_event(self, session: Session, event: Event) -> Event:
        await super().append_event(session, event)
        stored = self.sessions.get(session.app_name, {}).get(session.user_id, {}).get(session.id)
        if stored is not None and stored is not session:
            await super().append_event(stored, copy.deepcopy(event))
        return event

    def iter_sessions(self) -> Iterator[Session]:
        """Iterate over every stored session, in insertion order."""
        for user_map in self.sessions.values():
            for session_map in user_map.values():
                yield from session_map.values()
