"""Fan-out/fan-in of all collectors for one tick."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from servermon.collectors.base import DataCollector
from servermon.collectors.cpu import CpuCollector
from servermon.collectors.disk import DiskCollector
from servermon.collectors.memory import MemoryCollector
from servermon.collectors.network import NetworkCollector
from servermon.collectors.processes import ProcessCollector
from servermon.collectors.server import ServerIdentity
from servermon.models.base import utcnow
from servermon.models.snapshot import MetricSnapshot

if TYPE_CHECKING:
    from servermon.config.loader import Config

logger = logging.getLogger(__name__)


class MetricsAggregator:
    """Runs every collector concurrently and merges them into one snapshot.

    A collector that fails or exceeds its timeout contributes its fallback
    section; the tick still yields a full snapshot. Only a failure outside
    the collectors produces an error snapshot.

    Args:
        identity: Resolves the server block
        cpu, memory, disk, network, processes: Section collectors
        timeout: Per-collector timeout in seconds; each collector's own
            ``timeout`` is used when None
    """

    def __init__(
        self,
        identity: ServerIdentity | None = None,
        cpu: CpuCollector | None = None,
        memory: MemoryCollector | None = None,
        disk: DiskCollector | None = None,
        network: NetworkCollector | None = None,
        processes: ProcessCollector | None = None,
        timeout: float | None = None,
    ) -> None:
        self.identity = identity or ServerIdentity()
        self.cpu = cpu or CpuCollector()
        self.memory = memory or MemoryCollector()
        self.disk = disk or DiskCollector()
        self.network = network or NetworkCollector()
        self.processes = processes or ProcessCollector()
        self.timeout = timeout
        self.total_timeouts = 0
        self.total_errors = 0

    @classmethod
    def from_config(cls, config: Config) -> MetricsAggregator:
        """Build an aggregator with collectors configured from ``config``."""
        return cls(
            identity=ServerIdentity(
                hostname=config.server.hostname,
                use_ip_as_id=config.server.use_ip_as_id,
            ),
            processes=ProcessCollector(top_n=config.collectors.top_processes),
            timeout=config.collectors.timeout_seconds,
        )

    @property
    def collectors(self) -> list[DataCollector[Any]]:
        return [self.cpu, self.memory, self.disk, self.network, self.processes]

    async def _sample(self, collector: DataCollector[Any]) -> Any:
        timeout = self.timeout if self.timeout is not None else collector.timeout
        try:
            return await asyncio.wait_for(collector.sample(), timeout=timeout)
        except TimeoutError:
            self.total_timeouts += 1
            logger.warning("Collector '%s' timed out after %.1fs", collector.name, timeout)
            return collector.fallback()

    async def collect_all(self) -> MetricSnapshot:
        """Collect one snapshot. Never raises."""
        try:
            server = self.identity.current()
            cpu, memory, disk, network, processes = await asyncio.gather(
                *(self._sample(c) for c in self.collectors)
            )
            return MetricSnapshot(
                timestamp=utcnow(),
                server=server,
                cpu=cpu,
                memory=memory,
                disk=disk,
                network=network,
                processes=processes,
            )
        except Exception as e:
            self.total_errors += 1
            logger.error("Error collecting metrics: %s", e, exc_info=True)
            return MetricSnapshot.failed(self.identity.safe_current(), str(e) or type(e).__name__)

    def stats(self) -> dict[str, Any]:
        """Aggregator and per-collector statistics."""
        return {
            "total_timeouts": self.total_timeouts,
            "total_errors": self.total_errors,
            "collectors": {c.name: c.stats for c in self.collectors},
        }
