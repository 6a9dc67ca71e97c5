"""Error taxonomy for agent loading, session management and context caching."""

from typing import Optional


class ADKError(Exception):
    """Base class for all agent development kit errors."""

    pass


class ConfigurationError(ADKError):
    """Invalid or unreadable configuration."""

    pass


class AgentNotFoundError(ADKError):
    """Raised when an agent path is not in the scanned registry."""

    def __init__(self, agent_path: str) -> None:
        super().__init__(f"Agent not found: {agent_path}")
        self.agent_path = agent_path


class CompilationError(ADKError):
    """Raised when an agent module cannot be compiled or imported.

    Args:
        message: Human readable description
        source_path: Agent file being compiled
        hint: Optional remediation hint appended to the message
    """

    def __init__(
        self,
        message: str,
        source_path: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        full = message if not hint else f"{message}\n{hint}"
        super().__init__(full)
        self.source_path = source_path
        self.hint = hint


class NoAgentExportError(ADKError):
    """Raised when no export of a module resolves to an agent."""

    def __init__(
        self,
        message: str = (
            "No agent export resolved (expected BaseAgent, AgentBuilder, or BuiltAgent)"
        ),
    ) -> None:
        super().__init__(message)


class AgentFunctionExecutionError(ADKError):
    """Raised when the last-resort agent factory invocation fails."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Failed executing exported agent function: {cause}")
        self.cause = cause


class MissingEnvironmentVariableError(ADKError):
    """Raised when required environment variables are missing at load time."""

    def __init__(self, missing: list[str], project_root: Optional[str] = None) -> None:
        plural = "s" if len(missing) > 1 else ""
        super().__init__(
            f"Missing required environment variable{plural}: {', '.join(missing)}. "
            "Check the error message above for details."
        )
        self.missing = missing
        self.project_root = project_root


class AgentLoadError(ADKError):
    """Catch-all raised at the manager boundary when an agent fails to load."""

    def __init__(self, agent_name: str, message: str) -> None:
        super().__init__(f"Failed to load agent: {message}")
        self.agent_name = agent_name
        self.reason = message


class AgentMessageError(ADKError):
    """Raised when dispatching a message to a loaded agent fails."""

    def __init__(self, agent_path: str, message: str) -> None:
        super().__init__(f"Failed to send message to agent: {message}")
        self.agent_path = agent_path
        self.reason = message


class SessionNotFoundError(ADKError):
    """Raised when a requested session does not exist."""

    def __init__(self, session_id: str, app_name: str = "", user_id: str = "") -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id
        self.app_name = app_name
        self.user_id = user_id


class CacheProviderError(ADKError):
    """Provider-side cache failure. Logged by the cache manager, never fatal."""

    pass
