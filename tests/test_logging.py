"""Test logging configuration."""

import logging
from pathlib import Path

import pytest
import structlog
from structlog.testing import LogCapture

from rpc_tunnels.common.logging import get_logger, setup_logging


class TestLogging:
    """Test logging functionality."""

    def setup_method(self) -> None:
        """Reset logging configuration before each test."""
        structlog.reset_defaults()
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    def test_setup_logging_with_level(self) -> None:
        setup_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_console_handler_writes_to_stderr(self, capsys) -> None:
        """Logs must not mix with endpoints printed on stdout"""
        setup_logging(level="INFO")
        logging.getLogger("rpc_tunnels.test").info("hello stderr")
        captured = capsys.readouterr()
        assert "hello stderr" not in captured.out

    def test_setup_logging_json_format(self) -> None:
        setup_logging(json_format=True)
        logger = get_logger("test")

        cap = LogCapture()
        structlog.configure(processors=[cap])

        logger.info("Stopping process", role="router", pid=42)

        assert len(cap.entries) == 1
        assert cap.entries[0]["event"] == "Stopping process"
        assert cap.entries[0]["pid"] == 42

    def test_setup_logging_with_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "tunnels.log"
        setup_logging(log_file=str(log_file))

        logging.getLogger("test_file").info("tunnel message")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "tunnel message" in log_file.read_text()

    def test_log_file_parent_directories_created(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "nested" / "tunnels.log"
        setup_logging(log_file=log_file)

        logging.getLogger("test_file").warning("created")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "WARNING" in log_file.read_text()

    def test_setup_logging_twice_keeps_one_console_handler(self) -> None:
        setup_logging()
        setup_logging(level="WARNING")
        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert root_logger.level == logging.WARNING

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging(level="LOUD")

    def test_get_logger(self) -> None:
        setup_logging()
        logger = get_logger("rpc_tunnels.manager")
        assert hasattr(logger, "info")
        assert hasattr(logger, "warning")
