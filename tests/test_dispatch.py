"""Tests for the batching dispatch buffer."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from servermon.dispatch import DispatchBuffer
from servermon.models import MetricSnapshot, ServerInfo
from servermon.sinks import NoOpSink, Sink, SinkKind


def _snapshot(n: int) -> MetricSnapshot:
    base = datetime(2024, 1, 1, tzinfo=UTC)
    return MetricSnapshot(timestamp=base + timedelta(minutes=n), server=ServerInfo(hostname=f"h{n}"))


class RecordingSink(Sink):
    """Records every store call; selected call numbers fail."""

    kind = SinkKind.API

    def __init__(self, fail_on: set[int] | None = None, raise_on: set[int] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.raise_on = raise_on or set()
        self.stored: list[MetricSnapshot] = []
        self.calls = 0

    async def store(self, snapshot: MetricSnapshot) -> bool:
        self.calls += 1
        if self.calls in self.raise_on:
            raise RuntimeError("sink exploded")
        if self.calls in self.fail_on:
            return False
        self.stored.append(snapshot)
        return True


class SlowSink(RecordingSink):
    """Yields to the event loop during every store."""

    async def store(self, snapshot: MetricSnapshot) -> bool:
        await asyncio.sleep(0.01)
        return await super().store(snapshot)


class TestDispatchBuffer:
    """Tests for DispatchBuffer."""

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            DispatchBuffer(RecordingSink(), batch_size=0)

    @pytest.mark.asyncio
    async def test_flush_at_threshold_in_order(self) -> None:
        """Reaching batch_size flushes once, in push order."""
        sink = RecordingSink()
        buffer = DispatchBuffer(sink, batch_size=5)
        snapshots = [_snapshot(i) for i in range(5)]
        for snap in snapshots:
            assert await buffer.push(snap)
        assert sink.stored == snapshots
        assert len(buffer) == 0
        assert buffer.stats().total_flushes == 1

    @pytest.mark.asyncio
    async def test_below_threshold_does_not_flush(self) -> None:
        sink = RecordingSink()
        buffer = DispatchBuffer(sink, batch_size=5)
        for i in range(4):
            await buffer.push(_snapshot(i))
        assert sink.calls == 0
        assert len(buffer) == 4

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_batch(self) -> None:
        """Every snapshot is attempted even when some fail."""
        sink = RecordingSink(fail_on={2}, raise_on={4})
        buffer = DispatchBuffer(sink, batch_size=5)
        results = [await buffer.push(_snapshot(i)) for i in range(5)]
        assert results == [True, True, True, True, False]
        assert sink.calls == 5
        assert [s.server.hostname for s in sink.stored] == ["h0", "h2", "h4"]
        stats = buffer.stats()
        assert stats.total_delivered == 3
        assert stats.total_failed == 2
        assert len(buffer) == 0

    @pytest.mark.asyncio
    async def test_failed_snapshots_are_dropped(self) -> None:
        """Delivery is at most once; failures are not retried."""
        sink = RecordingSink(fail_on={1})
        buffer = DispatchBuffer(sink, batch_size=1)
        assert not await buffer.push(_snapshot(0))
        assert await buffer.push(_snapshot(1))
        assert sink.calls == 2
        assert [s.server.hostname for s in sink.stored] == ["h1"]

    @pytest.mark.asyncio
    async def test_drain_delivers_remaining_once(self) -> None:
        sink = RecordingSink()
        buffer = DispatchBuffer(sink, batch_size=5)
        for i in range(3):
            await buffer.push(_snapshot(i))
        assert await buffer.drain()
        assert sink.calls == 3
        assert await buffer.drain()
        assert sink.calls == 3

    @pytest.mark.asyncio
    async def test_empty_flush(self) -> None:
        buffer = DispatchBuffer(RecordingSink())
        assert await buffer.flush()
        assert buffer.stats().total_flushes == 0

    @pytest.mark.asyncio
    async def test_noop_sink_discards(self) -> None:
        """A disabled sink accepts without buffering."""
        buffer = DispatchBuffer(NoOpSink(), batch_size=1)
        assert await buffer.push(_snapshot(0))
        assert len(buffer) == 0
        assert buffer.stats().total_pushed == 0

    @pytest.mark.asyncio
    async def test_none_rejected(self) -> None:
        sink = RecordingSink()
        buffer = DispatchBuffer(sink, batch_size=1)
        assert not await buffer.push(None)
        assert sink.calls == 0

    @pytest.mark.asyncio
    async def test_push_during_flush_waits_for_next_batch(self) -> None:
        """Snapshots pushed mid-flush are not mixed into the running batch."""
        sink = SlowSink()
        buffer = DispatchBuffer(sink, batch_size=2)
        await buffer.push(_snapshot(0))
        flushing = asyncio.create_task(buffer.push(_snapshot(1)))
        await asyncio.sleep(0)
        await buffer.push(_snapshot(2))
        assert await flushing
        assert [s.server.hostname for s in sink.stored] == ["h0", "h1"]
        assert len(buffer) == 1
        await buffer.drain()
        assert [s.server.hostname for s in sink.stored] == ["h0", "h1", "h2"]

    @pytest.mark.asyncio
    async def test_concurrent_flushes_deliver_each_once(self) -> None:
        sink = SlowSink()
        buffer = DispatchBuffer(sink, batch_size=10)
        for i in range(4):
            await buffer.push(_snapshot(i))
        results = await asyncio.gather(buffer.flush(), buffer.flush(), buffer.drain())
        assert all(results)
        assert sorted(s.server.hostname for s in sink.stored) == ["h0", "h1", "h2", "h3"]

    @pytest.mark.asyncio
    async def test_cancelled_flush_returns_undelivered(self) -> None:
        """Cancelling a flush puts the unsent rest of the batch back in order."""
        sink = SlowSink()
        buffer = DispatchBuffer(sink, batch_size=10)
        for i in range(4):
            await buffer.push(_snapshot(i))

        flushing = asyncio.create_task(buffer.flush())
        while not sink.stored:
            await asyncio.sleep(0.001)
        flushing.cancel()
        with pytest.raises(asyncio.CancelledError):
            await flushing

        assert [s.server.hostname for s in sink.stored] == ["h0"]
        assert len(buffer) == 3
        assert await buffer.drain()
        assert [s.server.hostname for s in sink.stored] == ["h0", "h1", "h2", "h3"]
        assert buffer.stats().total_failed == 0
