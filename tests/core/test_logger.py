"""
Test suite for logger configuration and Sentry integration.

Run tests:
    pytest tests/core/test_logger.py -v

Run with coverage:
    pytest tests/core/test_logger.py --cov=billing.core.logger --cov-report=term-missing -v
"""

import logging
import logging.handlers
import os
import shutil
import tempfile
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from billing.core.logger import init_sentry, setup_logger


@pytest.fixture(autouse=True)
def reset_sentry_state():
    """Reset Sentry initialization state before each test."""
    import billing.core.logger as logger_module

    logger_module._sentry_initialized = False
    yield
    logger_module._sentry_initialized = False


@pytest.fixture
def temp_log_dir():
    """Create a temporary directory for log files."""
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    logging.shutdown()
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def logger_name():
    """A logger name no other test has configured."""
    return f"test_logger_{uuid4().hex}"


def _sentry_modules(mock_sentry):
    return {
        "sentry_sdk": mock_sentry,
        "sentry_sdk.integrations.logging": MagicMock(LoggingIntegration=MagicMock()),
        "sentry_sdk.integrations.asyncio": MagicMock(AsyncioIntegration=MagicMock()),
    }


class TestInitSentry:
    """Test suite for init_sentry function."""

    def test_init_sentry_with_valid_dsn(self):
        """Test Sentry initialization with valid DSN."""
        mock_sentry = MagicMock()

        with patch.dict("sys.modules", _sentry_modules(mock_sentry)):
            result = init_sentry(
                dsn="https://test@sentry.io/123",
                environment="production",
                traces_sample_rate=0.5,
            )

        assert result is True
        mock_sentry.init.assert_called_once()
        call_kwargs = mock_sentry.init.call_args.kwargs
        assert call_kwargs["dsn"] == "https://test@sentry.io/123"
        assert call_kwargs["environment"] == "production"
        assert call_kwargs["traces_sample_rate"] == 0.5
        assert len(call_kwargs["integrations"]) == 2

    def test_init_sentry_already_initialized(self):
        """Test that Sentry initialization is skipped if already initialized."""
        import billing.core.logger as logger_module

        logger_module._sentry_initialized = True

        assert init_sentry(dsn="https://test@sentry.io/123") is False

    def test_init_sentry_empty_dsn(self):
        """Test that empty DSN prevents initialization."""
        assert init_sentry(dsn="") is False

    def test_init_sentry_sets_global_flag(self):
        """Test that successful initialization sets global flag."""
        import billing.core.logger as logger_module

        with patch.dict("sys.modules", _sentry_modules(MagicMock())):
            init_sentry(dsn="https://test@sentry.io/123")

        assert logger_module._sentry_initialized is True


class TestSetupLogger:
    """Test suite for setup_logger function."""

    def test_setup_logger_basic(self, temp_log_dir, logger_name):
        """Test basic logger setup."""
        log_file = os.path.join(temp_log_dir, "test.log")

        logger = setup_logger(name=logger_name, log_file=log_file, level=logging.INFO)

        assert logger.name == logger_name
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 2

    def test_setup_logger_creates_log_directory(self, temp_log_dir, logger_name):
        """Test that the directory of the log file is created."""
        log_file = os.path.join(temp_log_dir, "nested", "test.log")

        setup_logger(name=logger_name, log_file=log_file)

        assert os.path.isdir(os.path.join(temp_log_dir, "nested"))

    def test_setup_logger_file_handler(self, temp_log_dir, logger_name):
        """Test that file handler is configured correctly."""
        log_file = os.path.join(temp_log_dir, "test.log")

        logger = setup_logger(name=logger_name, log_file=log_file)

        file_handlers = [
            h
            for h in logger.handlers
            if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 5 * 1024 * 1024
        assert file_handlers[0].backupCount == 3

    def test_setup_logger_console_handler(self, temp_log_dir, logger_name):
        """Test that console handler is configured."""
        log_file = os.path.join(temp_log_dir, "test.log")

        logger = setup_logger(name=logger_name, log_file=log_file)

        console_handlers = [
            h
            for h in logger.handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(console_handlers) == 1

    def test_setup_logger_does_not_stack_handlers(self, temp_log_dir, logger_name):
        """Test that configuring the same logger twice keeps one set of handlers."""
        log_file = os.path.join(temp_log_dir, "test.log")

        setup_logger(name=logger_name, log_file=log_file)
        logger = setup_logger(name=logger_name, log_file=log_file)

        assert len(logger.handlers) == 2

    def test_setup_logger_custom_level(self, temp_log_dir, logger_name):
        """Test logger with custom logging level."""
        log_file = os.path.join(temp_log_dir, "test.log")

        logger = setup_logger(name=logger_name, log_file=log_file, level=logging.DEBUG)

        assert logger.level == logging.DEBUG

    def test_setup_logger_with_sentry_tag_not_initialized(
        self, temp_log_dir, logger_name
    ):
        """Test sentry_tag when Sentry is not initialized."""
        log_file = os.path.join(temp_log_dir, "test.log")
        mock_sentry = MagicMock()

        with patch.dict("sys.modules", {"sentry_sdk": mock_sentry}):
            setup_logger(name=logger_name, log_file=log_file, sentry_tag="provider")

        mock_sentry.set_tag.assert_not_called()

    def test_setup_logger_with_sentry_tag_initialized(self, temp_log_dir, logger_name):
        """Test sentry_tag when Sentry is initialized."""
        import billing.core.logger as logger_module

        logger_module._sentry_initialized = True
        log_file = os.path.join(temp_log_dir, "test.log")
        mock_sentry = MagicMock()

        with patch.dict("sys.modules", {"sentry_sdk": mock_sentry}):
            setup_logger(name=logger_name, log_file=log_file, sentry_tag="subscription")

        mock_sentry.set_tag.assert_called_once_with("component", "subscription")

    def test_logger_writes_formatted_line(self, temp_log_dir, logger_name):
        """Test that records reach the file with name and level."""
        log_file = os.path.join(temp_log_dir, "test.log")
        logger = setup_logger(name=logger_name, log_file=log_file)

        logger.info("Subscription sub_123 activated")
        for handler in logger.handlers:
            handler.flush()

        with open(log_file, encoding="utf-8") as f:
            content = f.read()
        assert f"{logger_name} - INFO - Subscription sub_123 activated" in content
