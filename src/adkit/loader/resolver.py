"""Resolution of an agent module's exports to a single agent instance."""

import inspect
import re
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from adkit.errors import AgentFunctionExecutionError, NoAgentExportError
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)

# Names of exported functions worth calling to obtain an agent
FACTORY_NAME_PATTERN = re.compile(r"(agent|build|create)", re.IGNORECASE)

# Direct candidates, checked before ``default.agent`` and ``default``
DIRECT_EXPORT_NAMES = ("agent", "root_agent")
DEFAULT_EXPORT_NAME = "default"


@dataclass
class ResolvedAgent:
    """An agent found among a module's exports.

    Attributes:
        agent: The agent instance
        built: The built bundle (agent, runner, session) it came from, if any
    """

    agent: Any
    built: Optional[Any] = None

    @property
    def name(self) -> str:
        return str(self.agent.name)


def is_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (str, bytes, int, float, bool))


def _get(value: Any, key: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(key)
    return getattr(value, key, None)


def _has(value: Any, key: str) -> bool:
    if isinstance(value, Mapping):
        return key in value
    return hasattr(value, key)


def is_agent_like(value: Any) -> bool:
    """Has a string ``name`` and a callable ``run_async``."""
    if isinstance(value, type) or is_primitive(value):
        return False
    return isinstance(getattr(value, "name", None), str) and callable(getattr(value, "run_async", None))


def is_agent_builder(value: Any) -> bool:
    """Has callable ``build`` and ``with_model``."""
    if isinstance(value, type) or is_primitive(value):
        return False
    return callable(getattr(value, "build", None)) and callable(getattr(value, "with_model", None))


def is_built_agent(value: Any) -> bool:
    """Carries ``agent``, ``runner`` and ``session``."""
    if isinstance(value, (type, ModuleType)) or is_primitive(value):
        return False
    return all(_has(value, key) for key in ("agent", "runner", "session"))


async def _from_instance(value: Any) -> ResolvedAgent:
    return ResolvedAgent(agent=value)


async def _from_builder(value: Any) -> ResolvedAgent:
    built = await _maybe_await(value.build())
    return ResolvedAgent(agent=_get(built, "agent"), built=built)


async def _from_built(value: Any) -> ResolvedAgent:
    return ResolvedAgent(agent=_get(value, "agent"), built=value)


Extractor = Callable[[Any], Awaitable[ResolvedAgent]]

# Evaluated top to bottom; the first matching predicate wins
CLASSIFIERS: Sequence[tuple[Callable[[Any], bool], Extractor]] = (
    (is_agent_like, _from_instance),
    (is_agent_builder, _from_builder),
    (is_built_agent, _from_built),
)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ExportResolver:
    """Finds the agent among arbitrary module exports.

    Order of attempts:
    1. The direct candidate: ``agent``, ``root_agent``, ``default.agent``
       or ``default``, classified as agent, builder or built bundle.
    2. Every other public export, including ``{"agent": ...}`` wrappers.
       Functions named like ``*agent*``, ``*build*`` or ``*create*`` are
       called (sync or async); their failures are skipped.
    3. A callable direct candidate, called as a last resort. Its failure
       raises AgentFunctionExecutionError.

    Raises NoAgentExportError when nothing matches.
    """

    def __init__(self, external_scopes: Sequence[str] = ("adkit",)) -> None:
        self.external_scopes = tuple(external_scopes)

    async def resolve(self, exports: Union[ModuleType, Mapping[str, Any]]) -> ResolvedAgent:
        namespace = _namespace(exports)
        candidate = self._direct_candidate(namespace)

        if candidate is not None and not is_primitive(candidate):
            direct = await self._extract_with_wrapper(candidate)
            if direct is not None:
                logger.debug("Resolved direct agent export", agent=direct.name)
                return direct

        scanned = await self._scan_exports(namespace)
        if scanned is not None:
            return scanned

        if candidate is not None and callable(candidate) and not isinstance(candidate, type):
            try:
                result = await _maybe_await(candidate())
            except Exception as e:
                raise AgentFunctionExecutionError(e) from e
            resolved = await self._extract_with_wrapper(result)
            if resolved is not None:
                logger.debug("Resolved agent from exported function", agent=resolved.name)
                return resolved

        raise NoAgentExportError()

    async def extract(self, value: Any) -> Optional[ResolvedAgent]:
        """Classify a single value; None when it is not agent-shaped."""
        if is_primitive(value):
            return None
        for predicate, extractor in CLASSIFIERS:
            if predicate(value):
                resolved = await extractor(value)
                if is_agent_like(resolved.agent):
                    return resolved
                return None
        return None

    def _direct_candidate(self, namespace: Mapping[str, Any]) -> Any:
        for name in DIRECT_EXPORT_NAMES:
            value = namespace.get(name)
            if value is not None:
                return value

        default = namespace.get(DEFAULT_EXPORT_NAME)
        if default is not None:
            nested = _get(default, "agent") if not is_primitive(default) else None
            return nested if nested is not None else default
        return None

    async def _extract_with_wrapper(self, value: Any) -> Optional[ResolvedAgent]:
        found = await self.extract(value)
        if found is not None:
            return found
        if not is_primitive(value) and _has(value, "agent"):
            return await self.extract(_get(value, "agent"))
        return None

    async def _scan_exports(self, namespace: Mapping[str, Any]) -> Optional[ResolvedAgent]:
        for key, value in namespace.items():
            if key == DEFAULT_EXPORT_NAME or is_primitive(value) or isinstance(value, ModuleType):
                continue

            try:
                found = await self._extract_with_wrapper(value)
            except Exception as e:
                logger.debug("Skipping export", export=key, error=str(e))
                continue
            if found is not None:
                logger.debug("Resolved agent from export", export=key, agent=found.name)
                return found

            if self._is_factory(key, value):
                try:
                    result = await _maybe_await(value())
                    found = await self._extract_with_wrapper(result)
                except Exception as e:
                    logger.debug("Agent factory failed", export=key, error=str(e))
                    continue
                if found is not None:
                    logger.debug("Resolved agent from factory", export=key, agent=found.name)
                    return found
        return None

    def _is_factory(self, key: str, value: Any) -> bool:
        if isinstance(value, type) or not callable(value):
            return False
        if not FACTORY_NAME_PATTERN.search(key):
            return False
        module = getattr(value, "__module__", None) or ""
        return module.split(".")[0] not in self.external_scopes


def _namespace(exports: Union[ModuleType, Mapping[str, Any]]) -> dict[str, Any]:
    """Public names of a module, in definition order."""
    items = vars(exports).items() if isinstance(exports, ModuleType) else exports.items()
    return {k: v for k, v in items if not k.startswith("_")}
