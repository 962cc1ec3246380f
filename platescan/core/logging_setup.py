"""Logging configuration for the platescan runtime."""
import logging
from typing import Optional, Union

from ..utils.config import SETTINGS

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers; /api/frame is polled several times per second
QUIET_LOGGERS = ("aiohttp.access", "asyncio")


def resolve_level(level: Union[str, int, None]) -> int:
    """Turn a level name or number into a logging level; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    name = (level or SETTINGS.log_level or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(level: Union[str, int, None] = None) -> logging.Logger:
    """
    Attach one stream handler to the root logger and set levels.

    Every ``platescan.*`` module logger propagates to the root, so the level
    chosen here applies package-wide. Calling it again only changes levels.

    Args:
        level: Level name or number; defaults to ``PLATESCAN_LOGLEVEL``

    Returns:
        The ``platescan`` package logger
    """
    lvl = resolve_level(level)

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(handler)
    root_logger.setLevel(lvl)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(lvl, logging.WARNING))

    package_logger = logging.getLogger("platescan")
    package_logger.setLevel(lvl)
    return package_logger
