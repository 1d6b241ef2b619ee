"""
Run logging for setup flows.

Every run appends timestamped ``[LEVEL] message`` lines to a per-flow log
file and mirrors them to stdout, so an operator watching the terminal and
one reading the log after a failure see the same thing.

Usage:
    from nodesetup.logger import configure_logging

    configure_logging(Path("/var/log/k8s_worker_setup.log"), level="info")
    logging.getLogger("nodesetup.install").info("Disabling swap...")
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

__all__ = ["configure_logging", "log_banner", "LOG_FORMAT", "DATE_FORMAT"]

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_root_logger = logging.getLogger("nodesetup")


def configure_logging(
    log_file: Optional[Path] = None,
    level: str = "info",
) -> logging.Logger:
    """
    Attach stdout and append-mode file handlers to the ``nodesetup`` logger.

    Calling this again replaces the handlers from the previous call. If the
    log file cannot be opened, logging continues on stdout only.

    Args:
        log_file: Path of the append-only run log
        level: debug, info, warning or error

    Returns:
        The configured ``nodesetup`` logger
    """
    for handler in list(_root_logger.handlers):
        _root_logger.removeHandler(handler)
        handler.close()

    _root_logger.setLevel(getattr(logging, level.upper()))
    _root_logger.propagate = False
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    _root_logger.addHandler(stream)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            _root_logger.warning("Cannot write log file %s (%s); logging to stdout only", log_file, e)
        else:
            file_handler.setFormatter(formatter)
            _root_logger.addHandler(file_handler)

    return _root_logger


def log_banner(logger: logging.Logger, *lines: str) -> None:
    """Log a framed block of lines at INFO."""
    logger.info("=" * 47)
    for line in lines:
        logger.info(line)
    logger.info("=" * 47)
