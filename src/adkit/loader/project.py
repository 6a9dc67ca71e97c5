"""Project root discovery."""

from pathlib import Path
from typing import Union

# Any of these marks the root of an agent project
PROJECT_MARKERS = ("pyproject.toml", ".adk.yaml", ".env", ".git")

AGENT_FILE_NAME = "agent.py"


def find_project_root(start: Union[str, Path]) -> Path:
    """Walk upward from ``start`` to the nearest directory holding a project marker.

    Args:
        start: A file or directory inside the project

    Returns:
        The first ancestor (inclusive) containing a marker, or the start
        directory when no ancestor has one
    """
    start_path = Path(start).resolve()
    start_dir = start_path if start_path.is_dir() else start_path.parent

    for directory in (start_dir, *start_dir.parents):
        if any((directory / marker).exists() for marker in PROJECT_MARKERS):
            return directory

    return start_dir
