"""Deterministic fingerprints of cacheable request content."""

import dataclasses
import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from adkit.models.llm_request import LlmRequest

FINGERPRINT_ALGORITHM = "sha256"
FINGERPRINT_LENGTH = 16

CIRCULAR_MARKER = "[Circular]"


def canonicalize(value: Any) -> Any:
    """Convert a value into a JSON-ready structure independent of ordering.

    Mapping keys are sorted, set members are sorted by their serialized
    form, dates become ISO strings, dataclasses and pydantic models become
    dictionaries, plain objects become their attributes tagged with the
    class name, and circular references are replaced with a marker.
    """
    return _canonicalize(value, set())


def _canonicalize(value: Any, seen: set[int]) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return _canonicalize(value.value, seen)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.hex()

    marker = id(value)
    if marker in seen:
        return CIRCULAR_MARKER
    seen.add(marker)
    try:
        if isinstance(value, BaseModel):
            return _canonicalize(value.model_dump(exclude_none=True), seen)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            fields = {
                f.name: getattr(value, f.name)
                for f in dataclasses.fields(value)
                if getattr(value, f.name) is not None
            }
            return _canonicalize(fields, seen)
        if isinstance(value, dict):
            items = sorted(value.items(), key=lambda kv: str(kv[0]))
            return {str(k): _canonicalize(v, seen) for k, v in items}
        if isinstance(value, (set, frozenset)):
            members = [_canonicalize(v, seen) for v in value]
            return sorted(members, key=_serialize)
        if isinstance(value, (list, tuple)):
            return [_canonicalize(v, seen) for v in value]
        if hasattr(value, "__dict__") and not isinstance(value, type):
            # Instance attributes only; the default repr embeds a memory address
            return _canonicalize({"__type__": type(value).__qualname__, **vars(value)}, seen)
        return str(value)
    finally:
        seen.discard(marker)


def _serialize(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def stable_hash(value: Any, length: int = FINGERPRINT_LENGTH) -> str:
    """Hash the canonical form of a value, truncated to ``length`` hex chars."""
    serialized = _serialize(canonicalize(value))
    digest = hashlib.new(FINGERPRINT_ALGORITHM, serialized.encode("utf-8")).hexdigest()
    return digest[:length]


def _declaration_name(declaration: Any) -> str:
    if isinstance(declaration, dict):
        return str(declaration.get("name", ""))
    return str(getattr(declaration, "name", ""))


def _function_declarations(tool: Any) -> list[Any]:
    if isinstance(tool, dict):
        return list(tool.get("function_declarations") or tool.get("functionDeclarations") or [])
    return list(getattr(tool, "function_declarations", None) or [])


def build_fingerprint_data(request: "LlmRequest", contents_count: int) -> dict[str, Any]:
    """Collect the request parts that a cache covering ``contents_count`` holds."""
    data: dict[str, Any] = {}
    config = request.config

    if config.system_instruction:
        data["system_instruction"] = config.system_instruction

    if config.tools:
        declarations = [d for tool in config.tools for d in _function_declarations(tool)]
        declarations.sort(key=_declaration_name)
        if declarations:
            data["tools"] = [{"function_declarations": declarations}]

    if config.tool_config:
        data["tool_config"] = config.tool_config

    if contents_count > 0 and request.contents:
        data["cached_contents"] = list(request.contents[:contents_count])

    return data


def generate_cache_fingerprint(request: "LlmRequest", contents_count: int) -> str:
    """Fingerprint the system instruction, tools, tool config and first N contents.

    Semantically equal requests produce the same fingerprint regardless of
    key insertion order or tool declaration order.
    """
    return stable_hash(build_fingerprint_data(request, contents_count))
