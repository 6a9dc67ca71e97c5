"""Tests for logging system."""

from pathlib import Path

from adkit.telemetry.logger import (
    bind_context,
    get_logger,
    setup_logging,
    unbind_context,
)


class TestLogging:
    """Test logging functionality."""

    def test_setup_logging_console(self) -> None:
        """Should configure console logging."""
        setup_logging(level="DEBUG", json_format=False)

        logger = get_logger("test")
        assert logger is not None

    def test_setup_logging_json(self) -> None:
        """Should configure JSON logging."""
        setup_logging(level="INFO", json_format=True)

        logger = get_logger("test")
        assert logger is not None

    def test_setup_logging_with_file(self, tmp_path: Path) -> None:
        """Should create the log file directory."""
        log_file = tmp_path / "logs" / "adkit.log"

        setup_logging(level="DEBUG", log_file=log_file)
        get_logger("test").info("test message")

        assert log_file.parent.exists()

    def test_get_logger_returns_bound_logger(self) -> None:
        """Should return a structlog bound logger."""
        logger = get_logger(__name__)
        assert hasattr(logger, "info")
        assert hasattr(logger, "debug")
        assert hasattr(logger, "error")

    def test_context_binding(self) -> None:
        """Should bind and unbind context variables."""
        bind_context(agent_path="foo", session_id="abc123")
        get_logger("test").info("bound")
        unbind_context("agent_path", "session_id")
