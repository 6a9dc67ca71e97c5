"""Session and event records."""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class InlineData:
    """Binary attachment carried inside a message part.

    Attributes:
        mime_type: MIME type of the payload
        data: Base64 encoded payload
    """

    mime_type: str
    data: str


@dataclass
class Part:
    """A single piece of message content: text or inline data."""

    text: Optional[str] = None
    inline_data: Optional[InlineData] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        d: dict[str, Any] = {}
        if self.text is not None:
            d["text"] = self.text
        if self.inline_data is not None:
            d["inline_data"] = {
                "mime_type": self.inline_data.mime_type,
                "data": self.inline_data.data,
            }
        return d


@dataclass
class Content:
    """Multi-part message content."""

    role: str = "user"
    parts: list[Part] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.parts if p.text)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"role": self.role, "parts": [p.to_dict() for p in self.parts]}

    @classmethod
    def from_text(cls, text: str, role: str = "user") -> "Content":
        """Create single-part text content."""
        return cls(role=role, parts=[Part(text=text)])


@dataclass
class EventActions:
    """Side effects an event applies to its session."""

    state_delta: dict[str, Any] = field(default_factory=dict)


@dataclass
class Event:
    """An entry in a session's event log.

    Attributes:
        author: "user" or the name of the agent that produced the event
        content: Message content, if any
        invocation_id: Invocation that produced the event
        actions: State changes carried by the event
        id: Unique event id
        timestamp: Creation time in seconds since the epoch
    """

    author: str
    content: Optional[Content] = None
    invocation_id: str = ""
    actions: EventActions = field(default_factory=EventActions)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)

    @property
    def text(self) -> str:
        """Text carried by this event."""
        return self.content.text if self.content else ""


@dataclass
class Session:
    """A conversation session for one (app_name, user_id) pair."""

    id: str
    app_name: str
    user_id: str
    state: dict[str, Any] = field(default_factory=dict)
    events: list[Event] = field(default_factory=list)
    last_update_time: float = field(default_factory=time.time)


@dataclass
class ListSessionsResponse:
    """Sessions for a user, without their event logs."""

    sessions: list[Session] = field(default_factory=list)
