"""CPU usage sampler.

Usage is derived from the change in aggregate CPU times between two ticks,
so the first sample after start only records a baseline and reports 0.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
import logging
import platform
import time
from typing import NamedTuple

import psutil

from servermon.collectors.base import DataCollector
from servermon.collectors.state import SamplerState
from servermon.models.metrics import CpuData

logger = logging.getLogger(__name__)

_GUEST_FIELDS = frozenset({"guest", "guest_nice"})


class CpuTimes(NamedTuple):
    """Aggregate CPU time counters, in seconds."""

    idle: float
    total: float


def read_cpu_times() -> CpuTimes:
    """Sum every CPU time category across all cores.

    Linux counts guest time inside user and nice as well, so the guest
    fields are left out of the total.
    """
    times = psutil.cpu_times()._asdict()
    total = sum(v for k, v in times.items() if k not in _GUEST_FIELDS)
    return CpuTimes(idle=float(times.get("idle", 0.0)), total=float(total))


def compute_cpu_usage(previous: CpuTimes, current: CpuTimes) -> float:
    """Busy percentage between two readings.

    Returns 0.0 when no time elapsed. The result is rounded to two decimals
    and clamped to [0, 100].

    Example:
        >>> compute_cpu_usage(CpuTimes(1000, 2000), CpuTimes(1500, 3000))
        50.0
    """
    total_delta = current.total - previous.total
    if total_delta <= 0:
        return 0.0
    idle_delta = current.idle - previous.idle
    usage = 100.0 - (idle_delta / total_delta) * 100.0
    return round(min(max(usage, 0.0), 100.0), 2)


@lru_cache(maxsize=1)
def _get_cpu_model() -> str:
    """Best-effort CPU model name (cached)."""
    try:
        with open("/proc/cpuinfo", encoding="utf-8") as f:
            for line in f:
                if line.lower().startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.processor() or "Unknown"


def _get_speed_mhz() -> float:
    try:
        freq = psutil.cpu_freq()
    except (NotImplementedError, OSError, RuntimeError):
        return 0.0
    return float(freq.current) if freq else 0.0


def _get_load_avg() -> tuple[float, float, float]:
    try:
        one, five, fifteen = psutil.getloadavg()
    except (AttributeError, OSError):
        return (0.0, 0.0, 0.0)
    return (round(one, 2), round(five, 2), round(fifteen, 2))


class CpuCollector(DataCollector[CpuData]):
    """Delta-based CPU sampler.

    Args:
        state: Previous-reading state; a fresh one is created if omitted
        clock: Monotonic time source
        read_times: Source of aggregate CPU times
    """

    name: str = "cpu"
    timeout: float = 5.0

    def __init__(
        self,
        state: SamplerState[CpuTimes] | None = None,
        clock: Callable[[], float] = time.monotonic,
        read_times: Callable[[], CpuTimes] = read_cpu_times,
    ) -> None:
        super().__init__()
        self.state: SamplerState[CpuTimes] = state if state is not None else SamplerState()
        self._clock = clock
        self._read_times = read_times

    async def collect(self) -> CpuData:
        current = self._read_times()
        now = self._clock()

        usage = 0.0
        previous = self.state.previous
        if previous is not None:
            usage = compute_cpu_usage(previous, current)
        else:
            logger.debug("CPU sampler seeded with baseline")

        data = CpuData(
            usage_percent=usage,
            core_count=psutil.cpu_count(logical=True) or 0,
            model=_get_cpu_model(),
            speed_mhz=_get_speed_mhz(),
            load_avg=_get_load_avg(),
        )
        self.state.update(current, now)
        return data

    def fallback(self) -> CpuData:
        return CpuData()
