"""Tests for the snapshot aggregator."""

import asyncio
from unittest.mock import MagicMock

import pytest

from servermon.collectors.aggregator import MetricsAggregator
from servermon.collectors.base import DataCollector
from servermon.collectors.server import ServerIdentity
from servermon.config import Config
from servermon.models import CpuData, MemoryData, ServerInfo


class StaticCpuCollector(DataCollector[CpuData]):
    """Returns a fixed CPU section."""

    name = "cpu"
    timeout = 1.0

    def __init__(self, usage: float = 12.5) -> None:
        super().__init__()
        self.usage = usage

    async def collect(self) -> CpuData:
        return CpuData(usage_percent=self.usage, core_count=4)

    def fallback(self) -> CpuData:
        return CpuData()


class SlowMemoryCollector(DataCollector[MemoryData]):
    """Takes longer than any test timeout."""

    name = "memory"
    timeout = 0.05

    async def collect(self) -> MemoryData:
        await asyncio.sleep(1.0)
        return MemoryData(total_bytes=1)

    def fallback(self) -> MemoryData:
        return MemoryData()


class BrokenMemoryCollector(SlowMemoryCollector):
    """Always raises."""

    async def collect(self) -> MemoryData:
        raise RuntimeError("meminfo unreadable")


class TestMetricsAggregator:
    """Tests for MetricsAggregator."""

    @pytest.mark.asyncio
    async def test_full_snapshot(self) -> None:
        """A normal tick fills every section."""
        aggregator = MetricsAggregator(identity=ServerIdentity(hostname="web-01"), cpu=StaticCpuCollector())
        snapshot = await aggregator.collect_all()
        assert not snapshot.is_error
        assert snapshot.server.hostname == "web-01"
        assert snapshot.cpu is not None
        assert snapshot.cpu.usage_percent == 12.5
        assert snapshot.memory is not None
        assert snapshot.disk is not None
        assert snapshot.network is not None
        assert snapshot.processes is not None

    @pytest.mark.asyncio
    async def test_timeout_uses_fallback(self) -> None:
        """A collector exceeding its timeout contributes its fallback."""
        aggregator = MetricsAggregator(
            identity=ServerIdentity(hostname="web-01"),
            cpu=StaticCpuCollector(),
            memory=SlowMemoryCollector(),
        )
        snapshot = await aggregator.collect_all()
        assert snapshot.memory == MemoryData()
        assert snapshot.cpu is not None
        assert snapshot.cpu.usage_percent == 12.5
        assert aggregator.stats()["total_timeouts"] == 1

    @pytest.mark.asyncio
    async def test_aggregator_timeout_overrides_collector(self) -> None:
        memory = SlowMemoryCollector()
        memory.timeout = 5.0
        aggregator = MetricsAggregator(
            identity=ServerIdentity(hostname="web-01"),
            cpu=StaticCpuCollector(),
            memory=memory,
            timeout=0.05,
        )
        snapshot = await aggregator.collect_all()
        assert snapshot.memory == MemoryData()

    @pytest.mark.asyncio
    async def test_failing_collector_uses_fallback(self) -> None:
        aggregator = MetricsAggregator(
            identity=ServerIdentity(hostname="web-01"),
            cpu=StaticCpuCollector(),
            memory=BrokenMemoryCollector(),
        )
        snapshot = await aggregator.collect_all()
        assert not snapshot.is_error
        assert snapshot.memory == MemoryData()
        stats = aggregator.stats()["collectors"]["memory"]
        assert stats["total_failures"] == 1
        assert "meminfo unreadable" in stats["last_error"]

    @pytest.mark.asyncio
    async def test_error_snapshot(self) -> None:
        """A failure outside the collectors produces an error snapshot."""
        identity = MagicMock(spec=ServerIdentity)
        identity.current.side_effect = RuntimeError("hostname lookup failed")
        identity.safe_current.return_value = ServerInfo(hostname="web-01")

        aggregator = MetricsAggregator(identity=identity, cpu=StaticCpuCollector())
        snapshot = await aggregator.collect_all()
        assert snapshot.is_error
        assert snapshot.error == "hostname lookup failed"
        assert snapshot.server.hostname == "web-01"
        assert snapshot.cpu is None
        assert aggregator.stats()["total_errors"] == 1

    def test_from_config(self) -> None:
        config = Config(
            server={"hostname": "db-02"},
            collectors={"top_processes": 3, "timeout_seconds": 2.5},
        )
        aggregator = MetricsAggregator.from_config(config)
        assert aggregator.identity.resolve_hostname() == "db-02"
        assert aggregator.processes.top_n == 3
        assert aggregator.timeout == 2.5
        assert [c.name for c in aggregator.collectors] == ["cpu", "memory", "disk", "network", "processes"]
