"""
adkit - Agent development kit.

Discovers, loads and runs user-written agent modules:
- On-demand compilation and caching of agent files
- Heuristic resolution of agent exports
- Session lifecycle with initial-state drift detection
- Provider context caching for LLM requests
"""

__version__ = "0.1.0"

from adkit.agents import AgentBuilder, BaseAgent, BuiltAgent, InvocationContext, Runner
from adkit.config.schemas import ADKConfig
from adkit.sessions import Content, Event, InMemorySessionService, Part, Session

__all__ = [
    "__version__",
    "ADKConfig",
    "AgentBuilder",
    "BaseAgent",
    "BuiltAgent",
    "Content",
    "Event",
    "InMemorySessionService",
    "InvocationContext",
    "Part",
    "Runner",
    "Session",
]
