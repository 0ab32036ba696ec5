"""Snapshot batching and delivery."""

from servermon.dispatch.buffer import DispatchBuffer, DispatchStats

__all__ = ["DispatchBuffer", "DispatchStats"]
