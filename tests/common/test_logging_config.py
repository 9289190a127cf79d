"""Unit tests for logging configuration module."""

import io
import logging

import pytest

from common.logging_config import (
    PACKAGE_LOGGERS,
    configure_third_party_loggers,
    get_log_file_path,
    setup_logging,
    setup_service_logging,
)


@pytest.mark.unit
class TestSetupLogging:
    """Test setup_logging function."""

    def test_returns_service_logger(self):
        logger = setup_logging("test_service", package_loggers=())

        assert isinstance(logger, logging.Logger)
        assert logger.name == "test_service"
        assert logger.propagate is False

    @pytest.mark.parametrize("log_level", ["DEBUG", "INFO", "WARNING", "ERROR"])
    def test_applies_log_level_to_logger_and_handlers(self, log_level):
        logger = setup_logging("test_service", log_level=log_level, package_loggers=())

        assert logger.level == getattr(logging, log_level)
        for handler in logger.handlers:
            assert handler.level == getattr(logging, log_level)

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging("test_service", package_loggers=())
        logger = setup_logging("test_service", package_loggers=())

        assert len(logger.handlers) == 1

    def test_package_loggers_share_service_output(self):
        stream = io.StringIO()
        setup_logging(
            "test_service", log_level="INFO", package_loggers=("test_pkg",), stream=stream
        )

        logging.getLogger("test_pkg.module").info("[QUEUE] Destroyed")

        assert "[QUEUE] Destroyed" in stream.getvalue()
        assert "test_pkg.module" in stream.getvalue()

    def test_file_handler_writes_to_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "svc.log"
        logger = setup_logging(
            "file_service", log_file=str(log_file), package_loggers=()
        )

        logger.warning("disk check")
        for handler in logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "disk check" in log_file.read_text(encoding="utf-8")


@pytest.mark.unit
class TestLogHelpers:
    def test_log_file_path_is_dated(self):
        path = get_log_file_path("manager")

        assert path.startswith("./logs/manager_")
        assert path.endswith(".log")
        assert len(path.split("_")[-1]) == len("20240101.log")

    def test_third_party_loggers_are_quieted(self):
        configure_third_party_loggers("ERROR", loggers=("httpx", "redis"))

        assert logging.getLogger("httpx").level == logging.ERROR
        assert logging.getLogger("redis").level == logging.ERROR

    def test_setup_service_logging_without_file(self):
        logger = setup_service_logging("console_only", enable_file_logging=False)

        assert logger.name == "console_only"
        assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        for name in PACKAGE_LOGGERS:
            assert logging.getLogger(name).handlers == logger.handlers
