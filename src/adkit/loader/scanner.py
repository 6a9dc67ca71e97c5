"""Discovery of agent files in a directory tree."""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from adkit.loader.project import AGENT_FILE_NAME, find_project_root
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)

SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".next",
        "dist",
        "build",
        ".turbo",
        "coverage",
        ".vscode",
        ".idea",
        "__pycache__",
        ".venv",
        "venv",
        ".adk-cache",
        ".mypy_cache",
        ".pytest_cache",
    }
)

NAME_PATTERN = re.compile(r"""name["']?\s*[:=]\s*["']([^"']+)["']""")


@dataclass
class AgentDescriptor:
    """A discovered agent, before or after loading.

    Attributes:
        relative_path: Agent directory relative to the scan root, forward slashes
        display_name: Best known name; replaced by the real name once loaded
        absolute_path: Agent directory
        project_root: Nearest project root above the agent
    """

    relative_path: str
    display_name: str
    absolute_path: Path
    project_root: Path
    instance: Optional[Any] = None

    @property
    def agent_file(self) -> Path:
        return self.absolute_path / AGENT_FILE_NAME


class AgentScanner:
    """Walks a directory for ``agent.py`` files."""

    def __init__(self, quiet: bool = False) -> None:
        self.quiet = quiet

    def scan_agents(
        self,
        agents_dir: Union[str, Path],
        loaded_agents: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, AgentDescriptor]:
        """Find agents below ``agents_dir``.

        Args:
            agents_dir: Directory to scan; the current directory when it does not exist
            loaded_agents: Handles of loaded agents by relative path, used for names

        Returns:
            Descriptors keyed by relative path
        """
        scan_root = Path(agents_dir).resolve()
        if not scan_root.is_dir():
            if not self.quiet:
                logger.warning("Agents directory not found, using current directory", path=str(scan_root))
            scan_root = Path.cwd().resolve()

        loaded_agents = loaded_agents or {}
        agents: dict[str, AgentDescriptor] = {}

        for dirpath, dirnames, filenames in os.walk(scan_root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
            if AGENT_FILE_NAME not in filenames:
                continue

            agent_dir = Path(dirpath)
            relative = agent_dir.relative_to(scan_root).as_posix()
            if relative == ".":
                relative = scan_root.name

            agents[relative] = AgentDescriptor(
                relative_path=relative,
                display_name=self._display_name(agent_dir, relative, loaded_agents.get(relative)),
                absolute_path=agent_dir,
                project_root=find_project_root(agent_dir),
                instance=getattr(loaded_agents.get(relative), "agent", None),
            )

        logger.debug("Scanned agents", root=str(scan_root), agents=list(agents))
        return agents

    def _display_name(self, agent_dir: Path, relative: str, loaded: Optional[Any]) -> str:
        loaded_name = getattr(getattr(loaded, "agent", None), "name", None)
        if isinstance(loaded_name, str) and loaded_name:
            return loaded_name

        try:
            content = (agent_dir / AGENT_FILE_NAME).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Could not read agent file", path=str(agent_dir), error=str(e))
            content = ""

        match = NAME_PATTERN.search(content)
        if match:
            return match.group(1)
        return relative.split("/")[-1]
