"""Disk collector for the root filesystem."""

import logging
import os
import sys

import psutil

from servermon.collectors.base import DataCollector
from servermon.models.metrics import DiskData, DiskIOStats

logger = logging.getLogger(__name__)


def root_path() -> str:
    """Root mount point: ``/`` or the system drive on Windows."""
    if sys.platform == "win32":
        return os.environ.get("SystemDrive", "C:") + "\\"
    return "/"


def _root_device(mountpoint: str) -> str:
    """Device backing ``mountpoint``, falling back to the mount point itself."""
    try:
        partitions = psutil.disk_partitions(all=False)
    except OSError:
        return mountpoint
    for partition in partitions:
        if partition.mountpoint == mountpoint:
            return partition.device or mountpoint
    return mountpoint


def _read_io_stats() -> list[DiskIOStats] | None:
    try:
        io_counters = psutil.disk_io_counters(perdisk=True)
    except (OSError, RuntimeError) as e:
        logger.debug("Disk I/O counters unavailable: %s", e)
        return None
    if not io_counters:
        return None

    return [
        DiskIOStats(
            device=device,
            read_count=counters.read_count,
            write_count=counters.write_count,
            read_bytes=counters.read_bytes,
            write_bytes=counters.write_bytes,
            busy_time_ms=getattr(counters, "busy_time", None),
        )
        for device, counters in io_counters.items()
    ]


class DiskCollector(DataCollector[DiskData]):
    """Collector for root filesystem usage and per-device I/O counters.

    Args:
        path: Mount point to report; defaults to the root filesystem
    """

    name: str = "disk"
    timeout: float = 10.0

    def __init__(self, path: str | None = None) -> None:
        super().__init__()
        self.path = path or root_path()

    async def collect(self) -> DiskData:
        usage = psutil.disk_usage(self.path)
        return DiskData(
            filesystem=_root_device(self.path),
            mountpoint=self.path,
            size_bytes=usage.total,
            used_bytes=usage.used,
            available_bytes=usage.free,
            used_percent=round(usage.percent, 2),
            io=_read_io_stats(),
        )

    def fallback(self) -> DiskData:
        return DiskData(filesystem="unknown", mountpoint=self.path)
