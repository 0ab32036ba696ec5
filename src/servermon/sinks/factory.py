"""Sink selection from configuration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from servermon.sinks.api import ApiSink
from servermon.sinks.base import NoOpSink, Sink, SinkKind
from servermon.sinks.postgres import PostgresSink

if TYPE_CHECKING:
    from servermon.config.loader import Config

logger = logging.getLogger(__name__)


def build_sink(config: Config) -> Sink:
    """Resolve the one sink this agent delivers to.

    The API takes precedence over the database; with neither enabled,
    snapshots are discarded by a NoOpSink.
    """
    kind = config.sink_kind
    if kind is SinkKind.API:
        logger.info("Storing metrics via API at %s", config.api.url)
        return ApiSink.from_config(config.api, server_id=config.server.hostname)
    if kind is SinkKind.DB:
        logger.info(
            "Storing metrics in PostgreSQL database %s@%s", config.db.name, config.db.host
        )
        return PostgresSink.from_config(config.db)
    logger.warning("No storage method enabled, metrics will not be stored")
    return NoOpSink()
