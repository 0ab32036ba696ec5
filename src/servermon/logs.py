"""Logging setup for the servermon agent.

Console output goes through rich's RichHandler; an optional plain-text log
file can be added alongside it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from servermon.config.loader import LoggingConfig

FILE_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

PACKAGE_LOGGER = "servermon"


def configure_logging(
    config: LoggingConfig | None = None,
    *,
    level: str = "INFO",
    log_file: str | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the ``servermon`` package logger.

    Args:
        config: Logging section of the agent configuration; overrides
            ``level`` and ``log_file`` when given
        level: Log level name
        log_file: Also append plain-text records to this file
        console: Console for the rich handler (stderr by default)

    Returns:
        The configured package logger
    """
    if config is not None:
        level = config.level
        log_file = config.file

    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(log_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setLevel(log_level)
    logger.addHandler(rich_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
