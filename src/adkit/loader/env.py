"""Environment file loading for agent projects."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from dotenv import dotenv_values

from adkit.config.schemas import DEFAULT_ENV_FILES
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)


@dataclass
class EnvLoadResult:
    """Outcome of loading a project's environment files.

    Attributes:
        project_root: Directory the files were searched in
        files_found: Existing env files, highest priority first
        loaded: Variables set by this load (already-set ones excluded)
    """

    project_root: Path
    files_found: list[Path] = field(default_factory=list)
    loaded: dict[str, str] = field(default_factory=dict)


class EnvLoader:
    """Loads ``.env*`` files of a project into ``os.environ``.

    Every existing file is read, highest priority first. A key is taken from
    the first file that defines it, and a variable already present in the
    process environment is never overwritten.
    """

    def __init__(
        self,
        env_files: Optional[Sequence[str]] = None,
        quiet: bool = False,
    ) -> None:
        self.env_files = list(env_files or DEFAULT_ENV_FILES)
        self.quiet = quiet

    def find_env_files(self, project_root: Path) -> list[Path]:
        """Existing env files in priority order."""
        return [project_root / name for name in self.env_files if (project_root / name).is_file()]

    def load(self, project_root: Path) -> EnvLoadResult:
        """Load all env files found in ``project_root``."""
        result = EnvLoadResult(project_root=project_root)
        result.files_found = self.find_env_files(project_root)

        if not result.files_found:
            if not self.quiet:
                logger.warning(
                    "No .env file found",
                    project_root=str(project_root),
                    searched=self.env_files,
                )
            return result

        for env_path in result.files_found:
            try:
                try:
                    values = dotenv_values(env_path, encoding="utf-8")
                except UnicodeDecodeError:
                    values = dotenv_values(env_path, encoding="latin-1")
            except OSError as e:
                logger.warning("Could not load env file", path=str(env_path), error=str(e))
                continue

            for key, value in values.items():
                if value is None or key in os.environ:
                    continue
                os.environ[key] = value
                result.loaded[key] = value

            logger.debug("Loaded env file", path=str(env_path), keys=len(values))

        if not self.quiet:
            logger.info(
                "Environment loaded",
                files=[p.name for p in result.files_found],
                variables=len(result.loaded),
            )
        return result
