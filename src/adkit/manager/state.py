"""Extraction and hashing of an agent's declared initial state."""

from typing import Any, Iterable, Iterator, Mapping, Optional

from adkit.models.fingerprint import stable_hash
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)

STATE_HASH_LENGTH = 16


def _non_empty(state: Any) -> Optional[dict[str, Any]]:
    if isinstance(state, Mapping) and state:
        return dict(state)
    return None


def _sessions_of(agent: Any) -> Iterator[Any]:
    service = getattr(agent, "session_service", None)
    iter_sessions = getattr(service, "iter_sessions", None)
    if callable(iter_sessions):
        yield from iter_sessions()


def first_non_empty_state(sessions: Iterable[Any]) -> Optional[dict[str, Any]]:
    """First session carrying state. Order across sessions is not significant."""
    for session in sessions:
        state = _non_empty(getattr(session, "state", None))
        if state is not None:
            return state
    return None


def _agent_state(agent: Any, seen: set[int]) -> Optional[dict[str, Any]]:
    if agent is None or id(agent) in seen:
        return None
    seen.add(id(agent))

    state = first_non_empty_state(_sessions_of(agent))
    if state is not None:
        return state

    for sub_agent in getattr(agent, "sub_agents", None) or []:
        state = _agent_state(sub_agent, seen)
        if state is not None:
            logger.debug("Extracted state from sub-agent", sub_agent=getattr(sub_agent, "name", None))
            return state
    return None


def extract_initial_state(agent: Any, built: Optional[Any] = None) -> Optional[dict[str, Any]]:
    """State an agent declares for new sessions.

    Looks at the built bundle's session first, then at the sessions known to
    the agent's own session service, then at its sub-agents.
    """
    if built is not None:
        session = built.get("session") if isinstance(built, Mapping) else getattr(built, "session", None)
        state = _non_empty(getattr(session, "state", None))
        if state is not None:
            return state

    return _agent_state(agent, set())


def hash_state(state: Optional[Mapping[str, Any]]) -> str:
    """Stable hash of a state map for change detection."""
    return stable_hash(dict(state or {}), length=STATE_HASH_LENGTH)
