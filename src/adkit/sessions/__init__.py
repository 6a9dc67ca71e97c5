"""Session records and services."""

from adkit.sessions.base import BaseSessionService
from adkit.sessions.in_memory import InMemorySessionService
from adkit.sessions.schemas import (
    Content,
    Event,
    EventActions,
    InlineData,
    ListSessionsResponse,
    Part,
    Session,
)

__all__ = [
    "BaseSessionService",
    "Content",
    "Event",
    "EventActions",
    "InMemorySessionService",
    "InlineData",
    "ListSessionsResponse",
    "Part",
    "Session",
]
