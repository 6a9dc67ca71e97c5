"""Agent lifecycle management."""

from adkit.manager.agent_manager import AgentManager, Attachment, LoadedAgentHandle
from adkit.manager.state import extract_initial_state, hash_state

__all__ = [
    "AgentManager",
    "Attachment",
    "LoadedAgentHandle",
    "extract_initial_state",
    "hash_state",
]
