"""Batching buffer between the tick loop and the sink.

Snapshots accumulate in FIFO order until ``batch_size`` is reached, then the
whole batch is handed to the sink one snapshot at a time. Delivery is
at-most-once: a snapshot whose delivery fails is logged and dropped.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime
import logging

from servermon.models.base import utcnow
from servermon.models.snapshot import MetricSnapshot
from servermon.sinks.base import Sink

logger = logging.getLogger(__name__)


@dataclass
class DispatchStats:
    """Statistics about buffer state and delivery.

    Attributes:
        current_size: Snapshots currently waiting
        batch_size: Flush threshold
        total_pushed: Snapshots ever accepted into the buffer
        total_flushes: Flushes that delivered at least one snapshot
        total_delivered: Snapshots the sink accepted
        total_failed: Snapshots the sink rejected or raised on
        last_flush_at: When the last non-empty flush finished
    """

    current_size: int = 0
    batch_size: int = 0
    total_pushed: int = 0
    total_flushes: int = 0
    total_delivered: int = 0
    total_failed: int = 0
    last_flush_at: datetime | None = None


class DispatchBuffer:
    """Asyncio-safe batching buffer in front of a sink.

    The buffer contents are swapped for an empty deque under ``_lock`` at the
    start of a flush, so snapshots pushed while a flush is delivering wait for
    the next one. ``_flush_lock`` keeps flushes from overlapping.

    Args:
        sink: Delivery target
        batch_size: Number of buffered snapshots that triggers a flush

    Example:
        buffer = DispatchBuffer(ApiSink(url=...), batch_size=5)
        await buffer.push(snapshot)
        ...
        await buffer.drain()  # at shutdown
    """

    def __init__(self, sink: Sink, batch_size: int = 5) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        self.sink = sink
        self._batch_size = batch_size
        self._buffer: deque[MetricSnapshot] = deque()
        self._lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()

        self._total_pushed = 0
        self._total_flushes = 0
        self._total_delivered = 0
        self._total_failed = 0
        self._last_flush_at: datetime | None = None

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def __len__(self) -> int:
        return len(self._buffer)

    async def push(self, snapshot: MetricSnapshot | None) -> bool:
        """Buffer one snapshot, flushing when the batch is full.

        Returns:
            False if ``snapshot`` is None or the triggered flush had a
            failure; True otherwise
        """
        if snapshot is None:
            logger.error("No metrics provided for storage")
            return False

        if not self.sink.enabled:
            logger.debug("Sink disabled, snapshot not buffered")
            return True

        async with self._lock:
            self._buffer.append(snapshot)
            self._total_pushed += 1
            should_flush = len(self._buffer) >= self._batch_size

        if should_flush:
            return await self.flush()
        return True

    async def _take_batch(self) -> deque[MetricSnapshot]:
        async with self._lock:
            batch, self._buffer = self._buffer, deque()
        return batch

    async def flush(self) -> bool:
        """Deliver every buffered snapshot in FIFO order.

        A failed snapshot does not stop the rest of the batch. If the flush is
        cancelled, the snapshot being stored and everything after it go back
        to the front of the buffer, so a later ``drain`` still delivers them.

        Returns:
            True if every snapshot was delivered (or nothing was buffered)
        """
        async with self._flush_lock:
            batch = await self._take_batch()
            if not batch:
                return True

            logger.info("Processing batch of %d metrics", len(batch))
            success = True
            try:
                while batch:
                    snapshot = batch[0]
                    try:
                        stored = await self.sink.store(snapshot)
                    except Exception as e:
                        logger.error("Error processing metrics batch item: %s", e, exc_info=True)
                        stored = False
                    batch.popleft()

                    if stored:
                        self._total_delivered += 1
                    else:
                        success = False
                        self._total_failed += 1
                        logger.error("Failed to store metrics for %s", snapshot.timestamp.isoformat())
            except asyncio.CancelledError:
                self._buffer.extendleft(reversed(batch))
                logger.warning("Flush interrupted, %d metrics returned to the buffer", len(batch))
                raise

            self._total_flushes += 1
            self._last_flush_at = utcnow()
            return success

    async def drain(self) -> bool:
        """Flush until nothing is left; used at shutdown."""
        success = True
        while self._buffer:
            if not await self.flush():
                success = False
        return success

    def stats(self) -> DispatchStats:
        return DispatchStats(
            current_size=len(self._buffer),
            batch_size=self._batch_size,
            total_pushed=self._total_pushed,
            total_flushes=self._total_flushes,
            total_delivered=self._total_delivered,
            total_failed=self._total_failed,
            last_flush_at=self._last_flush_at,
        )
