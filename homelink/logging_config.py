"""
HOMELINK Logging Configuration

Provides centralized logging configuration for the HOMELINK relay:
- Console output on stdout
- Rotating file handler with size limits
- Per-service log level configuration

Usage:
    from homelink.logging_config import setup_logging, get_logger

    # Initialize logging at application startup
    setup_logging(log_level="INFO", log_file="homelink.log")

    # Get a logger for your module
    logger = get_logger(__name__)
    logger.info("Link opened", extra={"path": "/dev/rfcomm0"})
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# Module-level constants
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5

# Loggers configured alongside the application namespace
MANAGED_NAMESPACES = ("homelink", "services")

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _resolve_level(level: str) -> int:
    return LOG_LEVELS.get(level.upper(), logging.INFO)


def setup_logging(
    log_level: str = DEFAULT_LOG_LEVEL,
    log_file: Optional[str | Path] = None,
) -> None:
    """Configure logging for the HOMELINK application.

    Sets up the ``homelink`` and ``services`` loggers with a console handler
    and an optional rotating file handler. Safe to call more than once;
    existing handlers are replaced.

    Args:
        log_level: Default logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file. If provided, enables file logging
                  with rotation.
    """
    level = _resolve_level(log_level)
    formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_DATE_FORMAT)

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        from logging.handlers import RotatingFileHandler

        file_path = Path(log_file)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=DEFAULT_MAX_BYTES,
            backupCount=DEFAULT_BACKUP_COUNT,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for namespace in MANAGED_NAMESPACES:
        logger = logging.getLogger(namespace)
        logger.setLevel(level)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        for handler in handlers:
            logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the homelink namespace.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured logger instance
    """
    if not name.startswith(MANAGED_NAMESPACES):
        name = f"homelink.{name}"
    return logging.getLogger(name)


def set_service_level(service_name: str, level: str) -> None:
    """Set log level for a specific service package.

    Args:
        service_name: Name of the service (e.g., "link", "devices", "voice_auth")
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Example:
        set_service_level("link", "DEBUG")  # Show every controller line
    """
    logging.getLogger(f"services.{service_name}").setLevel(_resolve_level(level))
