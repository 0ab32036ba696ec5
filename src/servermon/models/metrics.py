"""Per-section metric models.

One model per collector. Each is the payload a collector returns and the
shape it takes inside a MetricSnapshot. Every model also has a zero-value
form (see the ``fallback`` methods of the collectors) used when the OS query
behind it fails.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from servermon.models.base import MetricData


class ServerInfo(MetricData):
    """Identity of the host a snapshot was taken on."""

    hostname: str = Field(default="unknown", description="Host name or configured identifier")
    platform: str = Field(default="unknown", description="OS platform (sys.platform)")
    release: str = Field(default="unknown", description="OS release string")
    uptime_seconds: float = Field(description="Seconds since boot", default=0.0, ge=0.0)


class CpuData(MetricData):
    """Aggregate CPU metrics.

    Attributes:
        usage_percent: Busy percentage across all cores since the previous tick [gauge]
        core_count: Number of logical cores
        model: CPU model string ("Unknown" if unavailable)
        speed_mhz: Current clock speed in MHz [gauge]
        load_avg: 1, 5 and 15 minute load averages [gauge]
    """

    usage_percent: float = Field(description="CPU usage percentage", default=0.0, ge=0.0, le=100.0)
    core_count: int = Field(default=0, ge=0, description="Logical core count")
    model: str = Field(default="Unknown", description="CPU model name")
    speed_mhz: float = Field(description="Current clock speed in MHz", default=0.0, ge=0.0)
    load_avg: tuple[float, float, float] = Field(
        default=(0.0, 0.0, 0.0), description="1/5/15 minute load averages"
    )


class SwapData(BaseModel):
    """Swap space statistics."""

    model_config = ConfigDict(frozen=True)

    total_bytes: int = Field(description="Total swap space in bytes", ge=0)
    used_bytes: int = Field(description="Used swap space in bytes", ge=0)
    free_bytes: int = Field(description="Free swap space in bytes", ge=0)
    used_percent: float = Field(description="Swap usage percentage", ge=0.0, le=100.0)


class MemoryData(MetricData):
    """RAM usage plus optional swap.

    ``swap`` is None on platforms that do not expose swap statistics, which
    is distinct from a host that has swap configured at zero usage.
    """

    total_bytes: int = Field(description="Total physical memory in bytes", default=0, ge=0)
    free_bytes: int = Field(description="Available memory in bytes", default=0, ge=0)
    used_bytes: int = Field(description="Used memory in bytes", default=0, ge=0)
    used_percent: float = Field(description="Memory usage percentage", default=0.0, ge=0.0, le=100.0)
    swap: SwapData | None = Field(default=None, description="Swap statistics, if supported")


class DiskIOStats(BaseModel):
    """Cumulative I/O counters for one disk device (since boot)."""

    model_config = ConfigDict(frozen=True)

    device: str = Field(..., description="Device name")
    read_count: int = Field(description="Number of read operations", ge=0)
    write_count: int = Field(description="Number of write operations", ge=0)
    read_bytes: int = Field(description="Total bytes read", ge=0)
    write_bytes: int = Field(description="Total bytes written", ge=0)
    busy_time_ms: int | None = Field(
        default=None, ge=0, description="Time spent doing I/O in milliseconds (Linux/BSD)"
    )


class DiskData(MetricData):
    """Usage of the root filesystem plus best-effort I/O counters."""

    filesystem: str = Field(default="/", description="Device backing the root filesystem")
    mountpoint: str = Field(default="/", description="Mount location")
    size_bytes: int = Field(description="Total size in bytes", default=0, ge=0)
    used_bytes: int = Field(description="Used space in bytes", default=0, ge=0)
    available_bytes: int = Field(description="Available space in bytes", default=0, ge=0)
    used_percent: float = Field(description="Usage percentage", default=0.0, ge=0.0, le=100.0)
    io: list[DiskIOStats] | None = Field(default=None, description="Per-device I/O counters")


class NetworkData(MetricData):
    """Traffic on the primary interface and TCP connection states.

    Transfer rates have no lower bound. A negative rate means the interface
    counters were reset between two ticks.
    """

    interface_name: str = Field(default="unknown", description="Primary interface name")
    rx_bytes: int = Field(description="Total bytes received", default=0, ge=0)
    tx_bytes: int = Field(description="Total bytes transmitted", default=0, ge=0)
    rx_rate_bytes_per_sec: float = Field(description="Receive rate in bytes/sec", default=0.0)
    tx_rate_bytes_per_sec: float = Field(description="Transmit rate in bytes/sec", default=0.0)
    connection_state_counts: dict[str, int] = Field(
        default_factory=lambda: {"ESTABLISHED": 0},
        description="TCP connection count per state",
    )
    total_connections: int = Field(description="Sum of all counted connections", default=0, ge=0)


class ProcessEntry(BaseModel):
    """One row of a top-N process list."""

    model_config = ConfigDict(frozen=True)

    pid: int = Field(..., ge=0, description="Process ID")
    name: str = Field(default="", description="Process name")
    cpu_percent: float = Field(description="CPU usage percentage", default=0.0, ge=0.0)
    memory_percent: float = Field(description="Memory usage percentage", default=0.0, ge=0.0)

    @field_validator("name", mode="before")
    @classmethod
    def _none_name(cls, v: str | None) -> str:
        return v or ""


class ProcessData(MetricData):
    """Top processes by CPU and by memory, plus a total count.

    The two lists are sorted independently and may overlap.
    """

    top_by_cpu: list[ProcessEntry] = Field(default_factory=list)
    top_by_memory: list[ProcessEntry] = Field(default_factory=list)
    total_count: int = Field(description="Total number of processes", default=0, ge=0)
