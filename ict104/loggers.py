"""
Logging configuration for the bill acceptor driver.

This module provides a centralized logging setup with support for:
- Console output with colored formatting
- File rotation with size limits
- Remote logging to Loki
"""

import logging
import time
from logging.handlers import RotatingFileHandler
from typing import Final, Optional

import colorlog
import httpx


# =============================================================================
# Constants
# =============================================================================

ROOT_LOGGER_NAME: Final[str] = "ict104"
DEFAULT_LOG_FORMAT: Final[str] = (
    "%(name)s | %(asctime)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s"
)
DEFAULT_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
MAX_LOG_FILE_SIZE: Final[int] = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT: Final[int] = 3
LOKI_TIMEOUT: Final[float] = 2.0


# =============================================================================
# Color Configuration
# =============================================================================

LOG_COLORS: Final[dict[str, str]] = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


# =============================================================================
# Loki Integration
# =============================================================================

def build_loki_payload(level: str, message: str, app: str) -> dict:
    """Build a Loki push API body for a single log line."""
    return {
        "streams": [
            {
                "stream": {"level": level, "app": app},
                "values": [[str(int(time.time() * 1e9)), message]],
            }
        ]
    }


class LokiHandler(logging.Handler):
    """
    Logging handler that pushes records to Loki.

    Attributes:
        url: Loki push endpoint.
        app: Application name for Loki labels.
    """

    def __init__(self, url: str, app: str) -> None:
        super().__init__()
        self.url = url
        self.app = app

    def emit(self, record: logging.LogRecord) -> None:
        """
        Emit a log record to Loki.

        Args:
            record: The log record to send.
        """
        try:
            message = self.format(record)
            payload = build_loki_payload(record.levelname.upper(), message, self.app)
            with httpx.Client() as client:
                client.post(self.url, json=payload, timeout=LOKI_TIMEOUT)
        except Exception:
            self.handleError(record)


# =============================================================================
# Logger Factory
# =============================================================================

def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    loki_url: Optional[str] = None,
    app: str = "ict104",
) -> logging.Logger:
    """
    Configure the package logger with console, file and Loki handlers.

    Driver modules log through ``logging.getLogger(__name__)``, so every
    handler attached here sees their output.

    Args:
        level: Logging level.
        log_file: Path to a rotating log file (optional).
        loki_url: Loki push endpoint (optional).
        app: Application name for Loki labels.

    Returns:
        Configured package logger.
    """
    logger_instance = logging.getLogger(ROOT_LOGGER_NAME)
    logger_instance.setLevel(level)

    # Avoid duplicate handlers on repeated calls
    if logger_instance.handlers:
        return logger_instance

    console_formatter = colorlog.ColoredFormatter(
        f"%(name)s | %(log_color)s%(asctime)s | %(levelname)s | "
        f"%(funcName)s:%(lineno)d | %(message)s",
        datefmt=DEFAULT_DATE_FORMAT,
        log_colors=LOG_COLORS,
    )
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger_instance.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            fmt=DEFAULT_LOG_FORMAT,
            datefmt=DEFAULT_DATE_FORMAT,
        ))
        logger_instance.addHandler(file_handler)

    if loki_url:
        loki_handler = LokiHandler(loki_url, app)
        loki_handler.setLevel(level)
        loki_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt=DEFAULT_DATE_FORMAT,
        ))
        logger_instance.addHandler(loki_handler)

    return logger_instance
