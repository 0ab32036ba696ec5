"""Network sampler for the primary interface.

Transfer rates are byte-count deltas divided by the elapsed time between two
ticks. TCP connection states are counted on every tick.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
import socket
import time
from typing import NamedTuple

import psutil

from servermon.collectors.base import DataCollector
from servermon.collectors.state import SamplerState
from servermon.models.metrics import NetworkData

logger = logging.getLogger(__name__)

TCP_STATES: tuple[str, ...] = (
    "ESTABLISHED",
    "TIME_WAIT",
    "CLOSE_WAIT",
    "SYN_SENT",
    "SYN_RECV",
    "FIN_WAIT1",
    "FIN_WAIT2",
    "LAST_ACK",
    "CLOSING",
    "LISTEN",
)


class InterfaceCounters(NamedTuple):
    """Cumulative byte counters of one interface."""

    name: str
    rx_bytes: int
    tx_bytes: int


def compute_rate(previous: int, current: int, elapsed: float) -> float:
    """Per-second rate between two counter readings.

    Returns 0.0 when ``elapsed`` is not positive. A counter that went
    backwards yields a negative rate.

    Example:
        >>> compute_rate(1000, 3000, 2.0)
        1000.0
    """
    if elapsed <= 0:
        return 0.0
    return (current - previous) / elapsed


def _is_loopback(name: str, addresses: list) -> bool:
    if name == "lo" or name.startswith("lo0") or name.lower().startswith("loopback"):
        return True
    return any(
        addr.family == socket.AF_INET and addr.address.startswith("127.") for addr in addresses
    )


def find_primary_interface() -> str | None:
    """Name of the first up, non-loopback interface with an IPv4 address.

    Falls back to the first non-loopback interface that has I/O counters.
    """
    addrs = psutil.net_if_addrs()
    try:
        if_stats = psutil.net_if_stats()
    except OSError:
        if_stats = {}

    for name, addresses in addrs.items():
        if _is_loopback(name, addresses):
            continue
        stats = if_stats.get(name)
        if stats is not None and not stats.isup:
            continue
        if any(addr.family == socket.AF_INET for addr in addresses):
            return name

    for name in psutil.net_io_counters(pernic=True):
        if not _is_loopback(name, addrs.get(name, [])):
            return name
    return None


def read_interface_counters() -> InterfaceCounters:
    """Read rx/tx byte counters of the primary interface.

    Raises:
        RuntimeError: If no usable interface exists
    """
    name = find_primary_interface()
    if name is None:
        raise RuntimeError("No non-loopback network interface found")
    counters = psutil.net_io_counters(pernic=True).get(name)
    if counters is None:
        raise RuntimeError(f"No I/O counters for interface '{name}'")
    return InterfaceCounters(name=name, rx_bytes=counters.bytes_recv, tx_bytes=counters.bytes_sent)


def count_tcp_states() -> dict[str, int]:
    """Count TCP connections per state.

    Listing sockets of other users needs elevated privileges on some
    platforms; in that case only ``{"ESTABLISHED": 0}`` is reported.
    """
    try:
        connections = psutil.net_connections(kind="tcp")
    except psutil.AccessDenied:
        logger.debug("Access denied listing TCP connections")
        return {"ESTABLISHED": 0}

    counts = dict.fromkeys(TCP_STATES, 0)
    for conn in connections:
        if conn.status in counts:
            counts[conn.status] += 1
    return counts


class NetworkCollector(DataCollector[NetworkData]):
    """Delta-based sampler for the primary network interface.

    Args:
        state: Previous-reading state; a fresh one is created if omitted
        clock: Monotonic time source
        read_counters: Source of primary interface counters
        count_states: Source of TCP state counts
    """

    name: str = "network"
    timeout: float = 10.0

    def __init__(
        self,
        state: SamplerState[InterfaceCounters] | None = None,
        clock: Callable[[], float] = time.monotonic,
        read_counters: Callable[[], InterfaceCounters] = read_interface_counters,
        count_states: Callable[[], dict[str, int]] = count_tcp_states,
    ) -> None:
        super().__init__()
        self.state: SamplerState[InterfaceCounters] = (
            state if state is not None else SamplerState()
        )
        self._clock = clock
        self._read_counters = read_counters
        self._count_states = count_states

    def _rates(self, current: InterfaceCounters, now: float) -> tuple[float, float]:
        previous = self.state.previous
        if not self.state.seeded or previous is None or self.state.previous_timestamp is None:
            logger.debug("Network sampler seeded with baseline on '%s'", current.name)
            return 0.0, 0.0
        if previous.name != current.name:
            logger.info(
                "Primary interface changed from '%s' to '%s'; re-baselining",
                previous.name,
                current.name,
            )
            return 0.0, 0.0

        elapsed = now - self.state.previous_timestamp
        rx_rate = compute_rate(previous.rx_bytes, current.rx_bytes, elapsed)
        tx_rate = compute_rate(previous.tx_bytes, current.tx_bytes, elapsed)
        if rx_rate < 0 or tx_rate < 0:
            logger.debug("Counter reset detected on '%s'", current.name)
        return rx_rate, tx_rate

    async def collect(self) -> NetworkData:
        current = self._read_counters()
        now = self._clock()
        states = await asyncio.to_thread(self._count_states)

        rx_rate, tx_rate = self._rates(current, now)
        data = NetworkData(
            interface_name=current.name,
            rx_bytes=current.rx_bytes,
            tx_bytes=current.tx_bytes,
            rx_rate_bytes_per_sec=round(rx_rate, 2),
            tx_rate_bytes_per_sec=round(tx_rate, 2),
            connection_state_counts=states,
            total_connections=sum(states.values()),
        )
        self.state.update(current, now)
        return data

    def fallback(self) -> NetworkData:
        return NetworkData()
