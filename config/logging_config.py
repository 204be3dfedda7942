"""Logging configuration for tablesync.

Import runs log from a producer thread and several worker threads at once,
so every record carries the name of the thread that emitted it.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from tqdm.contrib.logging import logging_redirect_tqdm

ROOT_LOGGER = "tablesync"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _resolve_level(log_level: str) -> int:
    name = log_level.upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {log_level}")
    return getattr(logging, name)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Configure the ``tablesync`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        log_to_console: Whether to also log to stderr

    Returns:
        Configured logger instance
    """
    level = _resolve_level(log_level)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    # stdout is reserved for progress bars and summaries
    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


@contextmanager
def progress_safe_logging():
    """Route console log records through tqdm while progress bars are drawn."""
    with logging_redirect_tqdm(loggers=[logging.getLogger(ROOT_LOGGER)]):
        yield


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (will be prefixed with 'tablesync.')

    Returns:
        Logger instance
    """
    if name == ROOT_LOGGER:
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
