"""Configuration loading with hierarchy support."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml

from adkit.config.schemas import ADKConfig

PROJECT_CONFIG_NAME = ".adk.yaml"

# Sections of .adk.yaml that belong to the module compiler, not ADKConfig
_NON_CONFIG_SECTIONS = ("compiler",)


def get_default_config_path() -> Path:
    """Get the default user configuration path."""
    return Path.home() / ".adkit" / "config.yaml"


def get_config_paths(cwd: Optional[Path] = None) -> list[Path]:
    """Get ordered list of configuration paths to check."""
    paths = []

    user_config = get_default_config_path()
    if user_config.exists():
        paths.append(user_config)

    project_config = (cwd or Path.cwd()) / PROJECT_CONFIG_NAME
    if project_config.exists():
        paths.append(project_config)

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    with open(path, "r") as f:
        content = yaml.safe_load(f) or {}
    if not isinstance(content, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return content


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables.

    Environment variables are prefixed with ADK_ and use double underscores
    for nested keys. For example:
    - ADK_LOG_LEVEL=DEBUG -> {"log_level": "DEBUG"}
    - ADK_CONTEXT_CACHE__TTL_SECONDS=600 -> {"context_cache": {"ttl_seconds": 600}}
    """
    overrides: dict[str, Any] = {}
    prefix = "ADK_"
    known_keys = set(ADKConfig.model_fields)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix):].lower()
        parts = config_key.split("__")

        # ADK_* is also the optional namespace for agent projects; ignore
        # variables that do not name a config field.
        if parts[0] not in known_keys:
            continue

        current = overrides
        for part in parts[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        current[parts[-1]] = _parse_env_value(value)

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse an environment variable value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def load_config(
    config_path: Optional[Path] = None,
    include_env: bool = True,
    cwd: Optional[Path] = None,
) -> ADKConfig:
    """Load configuration from all sources with proper hierarchy.

    Loading order (later overrides earlier):
    1. Default values (from schema)
    2. User config (~/.adkit/config.yaml)
    3. Project config (.adk.yaml in cwd)
    4. Explicit config file (--config argument)
    5. Environment variables (ADK_*)

    Args:
        config_path: Optional explicit configuration file path
        include_env: Whether to include environment variable overrides
        cwd: Directory to look for the project config in

    Returns:
        Validated ADKConfig instance
    """
    merged_config: dict[str, Any] = {}

    for path in get_config_paths(cwd):
        try:
            file_config = load_yaml_config(path)
            merged_config = deep_merge(merged_config, file_config)
        except (OSError, ValueError, yaml.YAMLError):
            # Skip files that can't be read
            pass

    if config_path:
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        explicit_config = load_yaml_config(config_path)
        merged_config = deep_merge(merged_config, explicit_config)

    if include_env:
        merged_config = deep_merge(merged_config, get_env_overrides())

    for section in _NON_CONFIG_SECTIONS:
        merged_config.pop(section, None)

    return ADKConfig(**merged_config)
