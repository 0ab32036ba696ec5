"""Rich console summary of a snapshot.

Printed after each tick when ``display_metrics`` is on, and by
``servermon once --summary``.
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from servermon.formatters.units import format_bytes, format_duration, format_rate
from servermon.models.snapshot import MetricSnapshot


def _usage_style(percent: float) -> str:
    if percent >= 90:
        return "bold red"
    if percent >= 70:
        return "yellow"
    return "green"


def _usage(percent: float) -> Text:
    return Text(f"{percent:.2f}%", style=_usage_style(percent))


def render_snapshot(snapshot: MetricSnapshot, next_update_ms: int | None = None) -> Panel:
    """Build a renderable summary of ``snapshot``."""
    server = snapshot.server
    header = Text.assemble(
        (server.hostname, "bold cyan"),
        f" ({server.platform} {server.release})\n",
        f"Uptime: {format_duration(server.uptime_seconds * 1000)}\n",
        f"Time: {snapshot.timestamp.isoformat()}",
    )

    if snapshot.is_error:
        body: list = [header, Text(f"\nCollection failed: {snapshot.error}", style="bold red")]
        return Panel(Group(*body), title="SERVER MONITOR", border_style="red")

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("metric", style="bold")
    table.add_column("value")

    if snapshot.cpu is not None:
        cpu = snapshot.cpu
        table.add_row("CPU Usage", Text.assemble(_usage(cpu.usage_percent), f" ({cpu.core_count} cores)"))
        table.add_row("Load Average", ", ".join(f"{v:.2f}" for v in cpu.load_avg))

    if snapshot.memory is not None:
        mem = snapshot.memory
        table.add_row(
            "Memory Usage",
            Text.assemble(
                _usage(mem.used_percent),
                f" ({format_bytes(mem.used_bytes)} / {format_bytes(mem.total_bytes)})",
            ),
        )
        if mem.swap is not None:
            table.add_row(
                "Swap Usage",
                Text.assemble(
                    _usage(mem.swap.used_percent),
                    f" ({format_bytes(mem.swap.used_bytes)} / {format_bytes(mem.swap.total_bytes)})",
                ),
            )

    if snapshot.disk is not None:
        disk = snapshot.disk
        table.add_row(
            "Disk Usage",
            Text.assemble(
                _usage(disk.used_percent),
                f" ({format_bytes(disk.used_bytes)} / {format_bytes(disk.size_bytes)})",
            ),
        )

    if snapshot.network is not None:
        net = snapshot.network
        table.add_row(f"Network ({net.interface_name})", "")
        table.add_row("  Download", format_rate(net.rx_rate_bytes_per_sec))
        table.add_row("  Upload", format_rate(net.tx_rate_bytes_per_sec))
        table.add_row("  Connections", str(net.total_connections))

    parts: list = [header, Text(""), table]

    if snapshot.processes is not None and snapshot.processes.top_by_cpu:
        procs = Table(title="Top CPU Processes", title_justify="left", box=None)
        procs.add_column("PID", justify="right")
        procs.add_column("CPU%", justify="right")
        procs.add_column("MEM%", justify="right")
        procs.add_column("NAME")
        for proc in snapshot.processes.top_by_cpu:
            procs.add_row(
                str(proc.pid),
                f"{proc.cpu_percent:.1f}%",
                f"{proc.memory_percent:.1f}%",
                proc.name,
            )
        parts.extend([Text(""), procs])

    if next_update_ms is not None:
        parts.extend([Text(""), Text(f"Next update in {format_duration(next_update_ms)}", style="dim")])

    return Panel(Group(*parts), title="SERVER MONITOR", border_style="blue")


def print_snapshot(
    snapshot: MetricSnapshot,
    console: Console | None = None,
    next_update_ms: int | None = None,
) -> None:
    """Print the summary panel to ``console`` (stdout by default)."""
    (console or Console()).print(render_snapshot(snapshot, next_update_ms=next_update_ms))


def summary_line(snapshot: MetricSnapshot) -> str:
    """One-line log summary of a tick."""
    if snapshot.is_error:
        return f"Collection failed on {snapshot.server.hostname}: {snapshot.error}"
    cpu = snapshot.cpu.usage_percent if snapshot.cpu else 0.0
    mem = snapshot.memory.used_percent if snapshot.memory else 0.0
    disk = snapshot.disk.used_percent if snapshot.disk else 0.0
    return f"Collected metrics - CPU: {cpu}%, Memory: {mem}%, Disk: {disk}%"
