"""Logging for the agent development kit."""

from adkit.telemetry.logger import (
    bind_context,
    get_logger,
    setup_logging,
    unbind_context,
)

__all__ = [
    "bind_context",
    "get_logger",
    "setup_logging",
    "unbind_context",
]
