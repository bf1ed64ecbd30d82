from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("ciw")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(level: str = "INFO") -> None:
    """Install the process-wide log format. Unknown levels fall back to INFO."""
    logging.basicConfig(
        level=_LEVELS.get(level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )


def log_event(level: str, message: str, container_name: str | None = None) -> None:
    if container_name:
        message = f"[{container_name}] {message}"
    logger.log(_LEVELS.get(level.upper(), logging.INFO), message)
