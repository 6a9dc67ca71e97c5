"""Classification of agent load errors caused by missing configuration."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Sequence

from pydantic import ValidationError

from adkit.config.schemas import DEFAULT_OPTIONAL_ENV_PATTERNS

MISSING_ISSUE_TYPE = "missing"


@dataclass
class EnvErrorClassification:
    """Result of classifying an error raised while loading an agent.

    Attributes:
        is_missing_env: True when the error is a schema failure on absent values
        required_missing: Missing variables that block loading
        optional_missing: Missing variables the agent can run without
    """

    is_missing_env: bool = False
    required_missing: list[str] = field(default_factory=list)
    optional_missing: list[str] = field(default_factory=list)

    @property
    def only_optional_missing(self) -> bool:
        return self.is_missing_env and not self.required_missing and bool(self.optional_missing)


class ErrorClassifier:
    """Splits missing-variable schema failures into required and optional.

    Only pydantic validation issues of type ``missing`` count; a value that
    is present but invalid is an ordinary error. The first ``loc`` segment
    of each issue is the variable name.
    """

    def __init__(self, optional_patterns: Optional[Sequence[str]] = None) -> None:
        patterns = optional_patterns if optional_patterns is not None else DEFAULT_OPTIONAL_ENV_PATTERNS
        self._optional = [re.compile(p, re.IGNORECASE) for p in patterns]

    def is_optional(self, name: str) -> bool:
        return any(p.search(name) for p in self._optional)

    def classify(self, error: BaseException) -> EnvErrorClassification:
        """Classify an error, following its cause chain to a validation error."""
        validation_error = _find_validation_error(error)
        if validation_error is None:
            return EnvErrorClassification()

        missing: list[str] = []
        for issue in validation_error.errors():
            if issue.get("type") != MISSING_ISSUE_TYPE or not issue.get("loc"):
                continue
            name = str(issue["loc"][0])
            if name not in missing:
                missing.append(name)

        if not missing:
            return EnvErrorClassification()

        return EnvErrorClassification(
            is_missing_env=True,
            required_missing=[n for n in missing if not self.is_optional(n)],
            optional_missing=[n for n in missing if self.is_optional(n)],
        )

    def build_diagnostic(
        self,
        missing: Sequence[str],
        project_root: Path,
        env_files_found: Sequence[Path],
    ) -> str:
        """Actionable message for missing required variables."""
        plural = len(missing) > 1
        lines = [
            "",
            f"MISSING ENVIRONMENT VARIABLE{'S' if plural else ''}",
            "",
        ]
        if missing:
            lines.append(f"Required: {', '.join(missing)}")
        lines.append(f"Project: {project_root}")
        lines.append("")

        if env_files_found:
            lines.append(f"Found: {', '.join(p.name for p in env_files_found)}")
            lines.append(f"Add the missing variable{'s' if plural else ''} to one of these files")
        else:
            lines.append("Create a .env file with:")
            lines.extend(f"   {name}=your_value_here" for name in missing)
        lines.append("")
        lines.append("Tip: Use .env.local (git-ignored) for sensitive values")
        return "\n".join(lines)


def _iter_chain(error: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _find_validation_error(error: BaseException) -> Optional[ValidationError]:
    for exc in _iter_chain(error):
        if isinstance(exc, ValidationError):
            return exc
    return None
