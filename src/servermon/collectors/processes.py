"""Top-process collector.

One pass over the process table yields the N heaviest processes by CPU and by
memory. psutil caches process objects between ``process_iter`` calls, so CPU
percentages become meaningful from the second tick on.
"""

import asyncio
import logging
from typing import Any

import psutil

from servermon.collectors.base import DataCollector
from servermon.models.metrics import ProcessData, ProcessEntry

logger = logging.getLogger(__name__)

PROCESS_ATTRS = ["pid", "name", "cpu_percent", "memory_percent"]


def _scan_processes() -> tuple[list[ProcessEntry], int]:
    """Return readable process entries and the total process count."""
    entries: list[ProcessEntry] = []
    total = 0

    for proc in psutil.process_iter(attrs=PROCESS_ATTRS):
        total += 1
        try:
            info: dict[str, Any] = proc.info
            entries.append(
                ProcessEntry(
                    pid=info["pid"],
                    name=info.get("name"),
                    cpu_percent=round(info.get("cpu_percent") or 0.0, 2),
                    memory_percent=round(info.get("memory_percent") or 0.0, 2),
                )
            )
        except (psutil.AccessDenied, psutil.NoSuchProcess, psutil.ZombieProcess):
            # Vanished or unreadable; still counted
            continue

    return entries, total


class ProcessCollector(DataCollector[ProcessData]):
    """Collector for the heaviest processes.

    Args:
        top_n: Length of each top list
    """

    name: str = "processes"
    timeout: float = 15.0

    def __init__(self, top_n: int = 5) -> None:
        super().__init__()
        if top_n <= 0:
            raise ValueError("top_n must be positive")
        self.top_n = top_n

    async def collect(self) -> ProcessData:
        entries, total = await asyncio.to_thread(_scan_processes)

        by_cpu = sorted(entries, key=lambda p: p.cpu_percent, reverse=True)[: self.top_n]
        by_memory = sorted(entries, key=lambda p: p.memory_percent, reverse=True)[: self.top_n]

        return ProcessData(top_by_cpu=by_cpu, top_by_memory=by_memory, total_count=total)

    def fallback(self) -> ProcessData:
        return ProcessData()
