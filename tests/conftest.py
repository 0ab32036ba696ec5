"""Shared pytest fixtures."""

from collections.abc import Iterator
import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Undo configure_logging so caplog sees servermon records."""
    yield
    logger = logging.getLogger("servermon")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
