"""SDK surface imported by user agent files."""

from adkit.agents.base import BaseAgent, InvocationContext
from adkit.agents.builder import AgentBuilder, BuiltAgent
from adkit.agents.runner import Runner

__all__ = [
    "AgentBuilder",
    "BaseAgent",
    "BuiltAgent",
    "InvocationContext",
    "Runner",
]
