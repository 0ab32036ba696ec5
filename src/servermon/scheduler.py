"""Agent scheduler: the tick loop and the retention cleanup loop.

Key behaviour:
- One tick at a time; a tick requested while another runs is skipped
- The refresh interval is measured from the end of a tick
- Cleanup runs on its own, slower loop and only for sinks that keep data
- Stopping waits for the in-flight tick, then drains the buffer and closes
  the sink
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
import logging

from rich.console import Console

from servermon import sentry
from servermon.collectors.aggregator import MetricsAggregator
from servermon.config.loader import Config
from servermon.dispatch.buffer import DispatchBuffer
from servermon.formatters.console import print_snapshot, summary_line
from servermon.models.base import utcnow
from servermon.models.snapshot import MetricSnapshot
from servermon.sinks.base import Sink

logger = logging.getLogger(__name__)


@dataclass
class SchedulerStats:
    """Statistics about the scheduler's state.

    Attributes:
        running: Whether the loops are running
        ticks_completed: Ticks that collected and pushed a snapshot
        ticks_skipped: Ticks refused because another was in progress
        ticks_failed: Ticks that raised
        cleanups_run: Cleanup calls that reported success
        cleanups_failed: Cleanup calls that failed or raised
        last_tick_at: When the last completed tick finished
    """

    running: bool = False
    ticks_completed: int = 0
    ticks_skipped: int = 0
    ticks_failed: int = 0
    cleanups_run: int = 0
    cleanups_failed: int = 0
    last_tick_at: datetime | None = None


class AgentScheduler:
    """Drives collection, dispatch and cleanup.

    Example:
        scheduler = AgentScheduler(aggregator, buffer, sink, config)
        scheduler.start()
        # ... later ...
        await scheduler.stop()
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        buffer: DispatchBuffer,
        sink: Sink,
        config: Config | None = None,
        console: Console | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.buffer = buffer
        self.sink = sink
        self.config = config or Config()
        self.console = console or Console()

        self._stop_event = asyncio.Event()
        self._tick_task: asyncio.Task[None] | None = None
        self._cleanup_task: asyncio.Task[None] | None = None
        self._running = False
        self._ticking = False

        self._ticks_completed = 0
        self._ticks_skipped = 0
        self._ticks_failed = 0
        self._cleanups_run = 0
        self._cleanups_failed = 0
        self._last_tick_at: datetime | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ticking(self) -> bool:
        """True while a tick is in progress."""
        return self._ticking

    async def run_tick(self) -> MetricSnapshot | None:
        """Collect one snapshot and push it to the buffer.

        Returns:
            The snapshot, or None if the tick was skipped or failed
        """
        if self._ticking:
            self._ticks_skipped += 1
            logger.warning("Previous collection still in progress, skipping tick")
            return None

        self._ticking = True
        try:
            logger.debug("Collecting metrics...")
            snapshot = await self.aggregator.collect_all()
            if not await self.buffer.push(snapshot):
                logger.warning("Some metrics in the last batch were not stored")

            if self.config.display_metrics:
                print_snapshot(
                    snapshot,
                    console=self.console,
                    next_update_ms=self.config.refresh_interval_ms,
                )
            else:
                logger.info(summary_line(snapshot))

            self._ticks_completed += 1
            self._last_tick_at = utcnow()
            return snapshot
        except Exception as e:
            self._ticks_failed += 1
            logger.error("Error in monitoring cycle: %s", e, exc_info=True)
            return None
        finally:
            self._ticking = False

    async def run_cleanup(self) -> bool:
        """Run retention cleanup once."""
        days = self.config.cleanup.days_to_keep
        logger.info("Running scheduled cleanup of metrics older than %d days", days)
        sentry.add_breadcrumb("cleanup", category="cleanup", data={"days_to_keep": days})
        try:
            ok = await self.sink.cleanup(days)
        except Exception as e:
            logger.error("Error during scheduled cleanup: %s", e, exc_info=True)
            ok = False

        if ok:
            self._cleanups_run += 1
            logger.info("Cleanup completed successfully")
        else:
            self._cleanups_failed += 1
            logger.warning("Cleanup may not have completed successfully")
        return ok

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True

    async def _tick_loop(self) -> None:
        interval = self.config.refresh_interval_seconds
        while not self._stop_event.is_set():
            await self.run_tick()
            if await self._wait(interval):
                break

    async def _cleanup_loop(self) -> None:
        if await self._wait(self.config.cleanup.initial_delay_seconds):
            return
        interval = self.config.cleanup.interval_hours * 3600
        while True:
            await self.run_cleanup()
            if await self._wait(interval):
                return

    def start(self) -> None:
        """Start the tick loop, and the cleanup loop if the sink supports it.

        Does nothing if already running. Must be called from a running loop.
        """
        if self._running:
            return

        self._running = True
        self._stop_event.clear()
        self._tick_task = asyncio.create_task(self._tick_loop(), name="servermon-tick")

        if self.sink.supports_cleanup:
            logger.info(
                "Scheduling regular cleanup every %s hours (keeping %d days of data)",
                f"{self.config.cleanup.interval_hours:g}",
                self.config.cleanup.days_to_keep,
            )
            self._cleanup_task = asyncio.create_task(
                self._cleanup_loop(), name="servermon-cleanup"
            )

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop both loops, flush what is buffered and close the sink.

        Args:
            timeout: Maximum seconds to wait for an in-flight tick
        """
        if not self._running:
            return

        logger.info("Shutting down...")
        self._stop_event.set()

        tasks = [t for t in (self._tick_task, self._cleanup_task) if t is not None and not t.done()]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("Cancelled %d task(s) that did not stop in time", len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

        self._tick_task = None
        self._cleanup_task = None

        if not await self.buffer.drain():
            logger.error("Some buffered metrics could not be stored during shutdown")
        await self.sink.close()

        self._running = False
        logger.info("Cleanup complete, exiting")

    async def run_until_stopped(self, stop_event: asyncio.Event) -> None:
        """Run until ``stop_event`` is set, then stop gracefully."""
        self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    def stats(self) -> SchedulerStats:
        return SchedulerStats(
            running=self._running,
            ticks_completed=self._ticks_completed,
            ticks_skipped=self._ticks_skipped,
            ticks_failed=self._ticks_failed,
            cleanups_run=self._cleanups_run,
            cleanups_failed=self._cleanups_failed,
            last_tick_at=self._last_tick_at,
        )
