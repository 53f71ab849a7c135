from __future__ import annotations

import io
import pytest
import logging
from typing import Generator
from unittest.mock import patch

from npmaudit.utils.logger import (
    ColoredFormatter,
    setup_logging,
    get_logger,
    is_logging_configured,
    disable_logging,
)


@pytest.fixture
def clean_logger_state() -> Generator[None, None, None]:
    """Clean up logger state before and after each test.

    Clears handlers from the npmaudit logger and resets the global
    configuration flag so tests don't interfere with each other.
    """
    import npmaudit.utils.logger as logger_module

    root_logger = logging.getLogger("npmaudit")
    root_logger.handlers.clear()
    root_logger.setLevel(logging.NOTSET)
    logger_module._logging_configured = False

    yield

    root_logger.handlers.clear()
    root_logger.setLevel(logging.NOTSET)
    root_logger.propagate = True
    logger_module._logging_configured = False


@pytest.fixture
def captured_stream() -> io.StringIO:
    return io.StringIO()


def _record(level: int = logging.WARNING, msg: str = "Test message") -> logging.LogRecord:
    return logging.LogRecord(
        name="npmaudit.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.mark.unit
class TestColoredFormatter:
    """Tests for ColoredFormatter."""

    def test_format_with_color_enabled(self) -> None:
        formatter = ColoredFormatter("%(levelname)s: %(message)s", use_color=True)

        with patch.object(ColoredFormatter, "_should_use_color", return_value=True):
            result = formatter.format(_record())

        assert ColoredFormatter.COLORS["WARNING"] in result
        assert ColoredFormatter.RESET in result
        assert "Test message" in result

    def test_format_with_color_disabled(self) -> None:
        formatter = ColoredFormatter("%(levelname)s: %(message)s", use_color=False)

        assert formatter.format(_record()) == "WARNING: Test message"

    def test_format_preserves_original_record(self) -> None:
        """Test the record's levelname is restored after formatting."""
        formatter = ColoredFormatter("%(levelname)s: %(message)s", use_color=True)
        record = _record(logging.ERROR)

        with patch.object(ColoredFormatter, "_should_use_color", return_value=True):
            formatter.format(record)

        assert record.levelname == "ERROR"

    def test_should_use_color_no_color_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NO_COLOR", "1")

        assert ColoredFormatter._should_use_color() is False

    def test_should_use_color_ci_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("CI", "true")

        assert ColoredFormatter._should_use_color() is False


@pytest.mark.unit
class TestSetupLogging:
    """Tests for setup_logging."""

    def test_setup_custom_stream_and_level(
        self, clean_logger_state: None, captured_stream: io.StringIO
    ) -> None:
        setup_logging(level=logging.INFO, stream=captured_stream)

        get_logger("pipeline").info("Resolving batch 1/1")
        get_logger("pipeline").debug("hidden")

        output = captured_stream.getvalue()
        assert "INFO: Resolving batch 1/1" in output
        assert "hidden" not in output

    def test_setup_verbose_format(
        self, clean_logger_state: None, captured_stream: io.StringIO
    ) -> None:
        setup_logging(level=logging.DEBUG, verbose=True, stream=captured_stream)

        get_logger("registry").debug("Fetching left-pad")

        assert "npmaudit.registry" in captured_stream.getvalue()

    def test_setup_clears_previous_handlers(self, clean_logger_state: None) -> None:
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())

        assert len(logging.getLogger("npmaudit").handlers) == 1

    def test_setup_sets_configured_flag(self, clean_logger_state: None) -> None:
        assert is_logging_configured() is False

        setup_logging(stream=io.StringIO())

        assert is_logging_configured() is True


@pytest.mark.unit
class TestGetLogger:
    """Tests for get_logger."""

    def test_get_logger_no_name(self, clean_logger_state: None) -> None:
        assert get_logger().name == "npmaudit"

    def test_get_logger_with_simple_name(self, clean_logger_state: None) -> None:
        assert get_logger("cache_store").name == "npmaudit.cache_store"

    def test_get_logger_with_qualified_name(self, clean_logger_state: None) -> None:
        assert get_logger("npmaudit.core.pipeline").name == "npmaudit.core.pipeline"

    def test_get_logger_adds_null_handler(self, clean_logger_state: None) -> None:
        logger = get_logger("unconfigured_module")

        assert any(isinstance(h, logging.NullHandler) for h in logger.handlers)


@pytest.mark.unit
class TestDisableLogging:
    """Tests for disable_logging."""

    def test_disable_logging_silences_output(
        self, clean_logger_state: None, captured_stream: io.StringIO
    ) -> None:
        setup_logging(stream=captured_stream)

        disable_logging()
        get_logger("cli").error("should not appear")

        assert captured_stream.getvalue() == ""
        assert is_logging_configured() is False
