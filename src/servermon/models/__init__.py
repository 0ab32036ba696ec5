"""Pydantic data models for servermon.

- MetricData: Base class for every snapshot section
- CpuData, MemoryData, DiskData, NetworkData, ProcessData: Per-collector sections
- ServerInfo: Host identity
- MetricSnapshot: One merged, immutable tick result
"""

from servermon.models.base import MetricData, utcnow
from servermon.models.metrics import (
    CpuData,
    DiskData,
    DiskIOStats,
    MemoryData,
    NetworkData,
    ProcessData,
    ProcessEntry,
    ServerInfo,
    SwapData,
)
from servermon.models.snapshot import MetricSnapshot

__all__ = [
    # Base models
    "MetricData",
    # Sections
    "ServerInfo",
    "CpuData",
    "MemoryData",
    "SwapData",
    "DiskData",
    "DiskIOStats",
    "NetworkData",
    "ProcessData",
    "ProcessEntry",
    # Snapshot
    "MetricSnapshot",
    # Helpers
    "utcnow",
]
