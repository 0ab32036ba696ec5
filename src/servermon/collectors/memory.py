"""Memory collector.

Reports physical memory with ``free`` taken as the memory available to new
processes, plus swap where the platform exposes it.
"""

import logging

import psutil

from servermon.collectors.base import DataCollector
from servermon.models.metrics import MemoryData, SwapData

logger = logging.getLogger(__name__)


def _percent(part: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(part / total * 100, 2)


def _read_swap() -> SwapData | None:
    try:
        sm = psutil.swap_memory()
    except (OSError, RuntimeError, NotImplementedError) as e:
        logger.debug("Swap statistics unavailable: %s", e)
        return None
    return SwapData(
        total_bytes=sm.total,
        used_bytes=sm.used,
        free_bytes=sm.free,
        used_percent=_percent(sm.used, sm.total),
    )


class MemoryCollector(DataCollector[MemoryData]):
    """Collector for RAM and swap usage."""

    name: str = "memory"
    timeout: float = 5.0

    async def collect(self) -> MemoryData:
        """Collect current memory statistics.

        Raises:
            Exception: If psutil fails to read virtual memory
        """
        vm = psutil.virtual_memory()
        free = min(vm.available, vm.total)
        used = vm.total - free

        return MemoryData(
            total_bytes=vm.total,
            free_bytes=free,
            used_bytes=used,
            used_percent=_percent(used, vm.total),
            swap=_read_swap(),
        )

    def fallback(self) -> MemoryData:
        return MemoryData()
