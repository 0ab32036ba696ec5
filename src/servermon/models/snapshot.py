"""The merged per-tick snapshot."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from servermon.models.base import utcnow
from servermon.models.metrics import (
    CpuData,
    DiskData,
    MemoryData,
    NetworkData,
    ProcessData,
    ServerInfo,
)


class MetricSnapshot(BaseModel):
    """Complete host state at a single point in time.

    Built once per tick by the aggregator and never modified afterwards.
    All sections are present on a normal snapshot. An error snapshot carries
    only ``server`` and ``error``.

    Attributes:
        timestamp: When the sections were merged (UTC)
        server: Host identity
        cpu: CPU section
        memory: Memory section
        disk: Root filesystem section
        network: Primary interface section
        processes: Top process lists
        error: Set only when aggregation itself failed
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: datetime = Field(default_factory=utcnow)
    server: ServerInfo = Field(default_factory=ServerInfo)
    cpu: CpuData | None = None
    memory: MemoryData | None = None
    disk: DiskData | None = None
    network: NetworkData | None = None
    processes: ProcessData | None = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        """True if this snapshot records a failed aggregation."""
        return self.error is not None

    @classmethod
    def failed(cls, server: ServerInfo, message: str) -> "MetricSnapshot":
        """Build an error snapshot for a tick whose aggregation raised."""
        return cls(server=server, error=message)
