"""Configuration for the agent development kit."""

from adkit.config.loader import PROJECT_CONFIG_NAME, load_config
from adkit.config.schemas import (
    DEFAULT_ENV_FILES,
    DEFAULT_OPTIONAL_ENV_PATTERNS,
    ADKConfig,
    ContextCacheSettings,
    TelemetryConfig,
)

__all__ = [
    "ADKConfig",
    "ContextCacheSettings",
    "DEFAULT_ENV_FILES",
    "DEFAULT_OPTIONAL_ENV_PATTERNS",
    "PROJECT_CONFIG_NAME",
    "TelemetryConfig",
    "load_config",
]
