"""Logging setup for the ``boardmind`` logger namespace."""

import logging
import os
import sys
from typing import Optional, Union

LOG_LEVEL_ENV = "BOARDMIND_LOG_LEVEL"


def resolve_level(level: Union[int, str, None] = None) -> int:
    """Turn a level name or number into a logging level.

    ``None`` reads ``BOARDMIND_LOG_LEVEL`` and falls back to INFO; unknown
    names also fall back to INFO.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: Union[int, str, None] = None, log_file: Optional[str] = None) -> None:
    """
    Configures the logger for the 'boardmind' namespace.

    Args:
        level: Logging level (e.g. logging.DEBUG or "debug"); defaults to the
            environment setting.
        log_file: Optional path to save logs to a file.
    """
    level = resolve_level(level)
    logger = logging.getLogger("boardmind")
    logger.setLevel(level)

    # Repeated setup must not duplicate output
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized at %s", logging.getLevelName(level))
