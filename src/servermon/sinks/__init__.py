"""Snapshot delivery targets."""

from servermon.sinks.api import ApiSink
from servermon.sinks.base import NoOpSink, Sink, SinkKind
from servermon.sinks.factory import build_sink
from servermon.sinks.postgres import PostgresSink

__all__ = [
    "ApiSink",
    "NoOpSink",
    "PostgresSink",
    "Sink",
    "SinkKind",
    "build_sink",
]
