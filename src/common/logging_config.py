"""Logging setup shared by the translation API and embedding applications."""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, TextIO

from common.config import settings
from common.utils import DateTimeUtils

CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
FILE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Top-level packages whose module loggers share the service handlers
PACKAGE_LOGGERS = ("common", "translator", "manager")

THIRD_PARTY_LOGGERS = (
    "openai",
    "httpx",
    "httpcore",
    "redis",
    "asyncio",
    "uvicorn.access",
)


def get_log_file_path(service_name: str, log_dir: str = "./logs") -> str:
    """
    Build the dated log file path for a service.

    Example:
        >>> get_log_file_path("manager")  # doctest: +SKIP
        './logs/manager_20240101.log'
    """
    date_string = DateTimeUtils.get_date_string_for_log_file()
    return f"{log_dir}/{service_name}_{date_string}.log"


def _build_handlers(
    level: int, log_file: Optional[str], stream: Optional[TextIO]
) -> list:
    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    handlers = [console_handler]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
        handlers.append(file_handler)

    return handlers


def setup_logging(
    service_name: str,
    log_file: Optional[str] = None,
    log_level: Optional[str] = None,
    package_loggers: Iterable[str] = PACKAGE_LOGGERS,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the service logger and the package loggers it depends on.

    Every logger gets the same console (and optional file) handlers and stops
    propagation, so repeated calls never duplicate output.

    Args:
        service_name: Name of the service logger (e.g. 'manager')
        log_file: Optional log file path; console only when None
        log_level: Level name override, defaults to settings.log_level
        package_loggers: Package logger names routed to the same handlers
        stream: Console stream, defaults to stdout

    Returns:
        The configured service logger
    """
    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    handlers = _build_handlers(level, log_file, stream)

    names = [service_name] + [name for name in package_loggers if name != service_name]
    for name in names:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False

    return logging.getLogger(service_name)


def configure_third_party_loggers(
    level: str = "WARNING", loggers: Iterable[str] = THIRD_PARTY_LOGGERS
) -> None:
    """Raise the level of noisy library loggers."""
    log_level = getattr(logging, level.upper(), logging.WARNING)
    for logger_name in loggers:
        logging.getLogger(logger_name).setLevel(log_level)


def setup_service_logging(
    service_name: str, enable_file_logging: bool = True
) -> logging.Logger:
    """
    Set up logging for a service process.

    Args:
        service_name: Name of the service
        enable_file_logging: Also write to ./logs/<service>_<date>.log

    Returns:
        The service logger
    """
    configure_third_party_loggers()
    log_file = get_log_file_path(service_name) if enable_file_logging else None
    return setup_logging(service_name, log_file)
