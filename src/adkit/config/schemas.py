"""Configuration schemas using Pydantic for validation."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_ENV_FILES = [
    ".env.local",
    ".env.development.local",
    ".env.production.local",
    ".env.development",
    ".env.production",
    ".env",
]

DEFAULT_OPTIONAL_ENV_PATTERNS = [
    r"^.*_DEBUG$",
    r"^.*_ENABLED$",
    r"^PORT$",
    r"^HOST$",
    r"^NODE_ENV$",
    r"^ADK_",
]


class ContextCacheSettings(BaseModel):
    """Defaults applied to LLM requests that opt into context caching."""

    enabled: bool = Field(
        default=False,
        description="Attach a cache config to outgoing LLM requests",
    )
    cache_intervals: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum invocations served by one provider cache",
    )
    ttl_seconds: int = Field(
        default=1800,
        gt=0,
        description="Provider cache time-to-live",
    )
    min_tokens: int = Field(
        default=0,
        ge=0,
        description="Minimum token count worth caching",
    )


class TelemetryConfig(BaseModel):
    """Logging output configuration."""

    log_file: Optional[Path] = Field(
        default=None,
        description="Path to log file",
    )
    json_logs: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output",
    )


class ADKConfig(BaseModel):
    """Root configuration for the agent development kit."""

    app_name: str = Field(
        default="adk-server",
        description="App name used for every agent session",
    )
    user_id_prefix: str = Field(
        default="user_",
        description="Prefix joined with the agent path to form the user id",
    )
    agents_dir: Path = Field(
        default=Path("."),
        description="Directory scanned for agent.py files",
    )
    cache_dir_name: str = Field(
        default=".adk-cache",
        description="Project-local directory holding compiled agent modules",
    )
    env_files: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ENV_FILES),
        description="Environment files in priority order (highest first)",
    )
    optional_env_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_OPTIONAL_ENV_PATTERNS),
        description="Regexes naming environment variables that may be absent",
    )
    external_scopes: list[str] = Field(
        default_factory=lambda: ["adkit"],
        description="Packages always resolved by the host interpreter",
    )
    context_cache: ContextCacheSettings = Field(
        default_factory=ContextCacheSettings,
        description="Context cache defaults",
    )
    telemetry: TelemetryConfig = Field(
        default_factory=TelemetryConfig,
        description="Logging configuration",
    )
    quiet: bool = Field(
        default=False,
        description="Suppress informational loader output",
    )
    debug: bool = Field(
        default=False,
        description="Log full tracebacks for load failures",
    )
    log_level: str = Field(
        default="INFO",
        description="Global log level",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("env_files")
    @classmethod
    def validate_env_files(cls, v: list[str]) -> list[str]:
        """Env file names must be bare file names."""
        for name in v:
            if "/" in name or "\\" in name:
                raise ValueError(f"Env file must be a file name, not a path: {name}")
        return v
