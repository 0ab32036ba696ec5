"""Tests for JSON, console and unit formatting."""

from datetime import UTC, datetime
import io
import json

from rich.console import Console

from servermon.formatters import (
    format_bytes,
    format_duration,
    format_rate,
    print_snapshot,
    render_snapshot,
    snapshot_to_dict,
    snapshot_to_json,
    summary_line,
)
from servermon.models import (
    CpuData,
    DiskData,
    MemoryData,
    MetricSnapshot,
    NetworkData,
    ProcessData,
    ProcessEntry,
    ServerInfo,
    SwapData,
)


def _snapshot() -> MetricSnapshot:
    return MetricSnapshot(
        timestamp=datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
        server=ServerInfo(hostname="web-01", platform="linux", release="6.1", uptime_seconds=3600),
        cpu=CpuData(usage_percent=12.5, core_count=4, load_avg=(0.5, 0.25, 0.1)),
        memory=MemoryData(
            total_bytes=8 * 1024**3,
            free_bytes=6 * 1024**3,
            used_bytes=2 * 1024**3,
            used_percent=25.0,
            swap=SwapData(total_bytes=1024, used_bytes=0, free_bytes=1024, used_percent=0.0),
        ),
        disk=DiskData(size_bytes=100, used_bytes=95, available_bytes=5, used_percent=95.0),
        network=NetworkData(interface_name="eth0", rx_rate_bytes_per_sec=1536.0),
        processes=ProcessData(
            top_by_cpu=[ProcessEntry(pid=42, name="postgres", cpu_percent=9.5, memory_percent=3.0)],
            total_count=80,
        ),
    )


def _render(snapshot: MetricSnapshot, **kwargs: object) -> str:
    output = io.StringIO()
    Console(file=output, width=100).print(render_snapshot(snapshot, **kwargs))
    return output.getvalue()


class TestSnapshotJson:
    """Tests for JSON serialization."""

    def test_compact_by_default(self) -> None:
        text = snapshot_to_json(_snapshot())
        assert "\n" not in text
        assert '"hostname":"web-01"' in text

    def test_pretty(self) -> None:
        assert "\n  " in snapshot_to_json(_snapshot(), pretty=True)

    def test_structure(self) -> None:
        data = json.loads(snapshot_to_json(_snapshot()))
        assert set(data) == {"timestamp", "server", "cpu", "memory", "disk", "network", "processes"}
        assert data["timestamp"].startswith("2024-01-15T10:30:00")
        assert data["cpu"]["load_avg"] == [0.5, 0.25, 0.1]
        assert data["processes"]["top_by_cpu"][0]["name"] == "postgres"

    def test_error_snapshot_omits_sections(self) -> None:
        snapshot = MetricSnapshot.failed(ServerInfo(hostname="web-01"), "boom")
        data = snapshot_to_dict(snapshot)
        assert set(data) == {"timestamp", "server", "error"}
        assert data["error"] == "boom"


class TestUnits:
    """Tests for human-readable units."""

    def test_format_bytes(self) -> None:
        assert format_bytes(0) == "0 B"
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.50 KB"
        assert format_bytes(5 * 1024**3) == "5.00 GB"
        assert format_bytes(1536, decimals=0) == "2 KB"

    def test_format_negative_bytes(self) -> None:
        assert format_bytes(-2048) == "-2.00 KB"

    def test_format_rate(self) -> None:
        assert format_rate(1536.0) == "1.50 KB/s"

    def test_format_duration(self) -> None:
        assert format_duration(750) == "750ms"
        assert format_duration(45_000) == "45s"
        assert format_duration(90_000) == "1m 30s"
        assert format_duration(3_661_000) == "1h 1m 1s"
        assert format_duration(90_061_000) == "1d 1h 1m"


class TestConsoleFormatter:
    """Tests for the rich console summary."""

    def test_summary_line(self) -> None:
        assert summary_line(_snapshot()) == "Collected metrics - CPU: 12.5%, Memory: 25.0%, Disk: 95.0%"

    def test_summary_line_for_error(self) -> None:
        snapshot = MetricSnapshot.failed(ServerInfo(hostname="web-01"), "boom")
        assert summary_line(snapshot) == "Collection failed on web-01: boom"

    def test_render_sections(self) -> None:
        text = _render(_snapshot())
        assert "SERVER MONITOR" in text
        assert "web-01" in text
        assert "CPU Usage" in text
        assert "12.50%" in text
        assert "Swap Usage" in text
        assert "Network (eth0)" in text
        assert "1.50 KB/s" in text
        assert "postgres" in text
        assert "Next update" not in text

    def test_next_update(self) -> None:
        assert "Next update in 1m 0s" in _render(_snapshot(), next_update_ms=60000)

    def test_render_error(self) -> None:
        text = _render(MetricSnapshot.failed(ServerInfo(hostname="web-01"), "boom"))
        assert "Collection failed: boom" in text
        assert "CPU Usage" not in text

    def test_print_snapshot(self) -> None:
        output = io.StringIO()
        print_snapshot(_snapshot(), console=Console(file=output, width=100))
        assert "SERVER MONITOR" in output.getvalue()
