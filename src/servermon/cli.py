"""Command-line interface for servermon.

This module provides:
- Typer-based CLI application
- Config file loading with CLI overrides
- The long-running agent and its one-shot and maintenance commands

Usage:
    servermon run                 # Start the agent
    servermon once                # Print a single snapshot as JSON
    servermon setup-db            # Create the PostgreSQL schema
    servermon cleanup --days 7    # Delete stored metrics older than 7 days

Examples:
    # Sample every 10 seconds and show the console summary
    servermon run --interval 10000 --display

    # Use a custom configuration file
    servermon run --config /etc/servermon/config.yaml

    # Human-readable summary instead of JSON
    servermon once --summary
"""

import asyncio
import logging
from pathlib import Path
import signal
from typing import Annotated, Any

from rich.console import Console
from rich.markup import escape
import typer

from servermon import __version__, sentry
from servermon.collectors.aggregator import MetricsAggregator
from servermon.config import Config, ConfigError, load_config
from servermon.dispatch.buffer import DispatchBuffer
from servermon.formatters.console import print_snapshot
from servermon.formatters.json_formatter import snapshot_to_json
from servermon.logs import configure_logging
from servermon.models.snapshot import MetricSnapshot
from servermon.scheduler import AgentScheduler
from servermon.sinks import PostgresSink, build_sink

logger = logging.getLogger(__name__)

# Create the main Typer app
app = typer.Typer(
    name="servermon",
    help="Server monitor - periodic host telemetry agent",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

# Console for rich output
console = Console()


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        console.print(f"servermon version {__version__}")
        raise typer.Exit()


def build_cli_overrides(
    interval: int | None = None,
    batch_size: int | None = None,
    display: bool | None = None,
    log_level: str | None = None,
) -> dict[str, Any]:
    """Build a config override dict from CLI arguments.

    Only values that were actually given are included.
    """
    overrides: dict[str, Any] = {}
    if interval is not None:
        overrides["refresh_interval_ms"] = interval
    if batch_size is not None:
        overrides["batch_size"] = batch_size
    if display is not None:
        overrides["display_metrics"] = display
    if log_level is not None:
        overrides["logging"] = {"level": log_level}
    return overrides


def _load(config: Path | None, overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration, turning failures into a clean exit."""
    try:
        config_path = str(config) if config else None
        return load_config(config_path=config_path, cli_overrides=overrides)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


# Common options
ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to custom config file",
        envvar="SERVERMON_CONFIG_PATH",
        exists=False,  # load_config reports a missing file itself
    ),
]

VersionOption = Annotated[
    bool | None,
    typer.Option(
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
]


@app.callback()
def main(version: VersionOption = None) -> None:
    """Server monitor - periodic host telemetry agent."""


async def run_agent(cfg: Config) -> None:
    """Run the agent until SIGINT or SIGTERM."""
    sink = build_sink(cfg)
    buffer = DispatchBuffer(sink, batch_size=cfg.batch_size)
    aggregator = MetricsAggregator.from_config(cfg)
    scheduler = AgentScheduler(aggregator, buffer, sink, cfg, console=console)

    sentry.set_agent_context(
        hostname=aggregator.identity.resolve_hostname(),
        sink=sink.kind.value,
        refresh_interval_ms=cfg.refresh_interval_ms,
        batch_size=cfg.batch_size,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops; Ctrl+C surfaces as KeyboardInterrupt there
            logger.debug("Signal handler for %s not supported on this platform", sig.name)

    logger.info(
        "Server monitoring started (interval %dms, batch size %d, sink %s)",
        cfg.refresh_interval_ms,
        cfg.batch_size,
        sink.kind.value,
    )
    await scheduler.run_until_stopped(stop_event)


@app.command("run")
def run_command(
    config: ConfigOption = None,
    interval: Annotated[
        int | None,
        typer.Option("--interval", "-i", help="Refresh interval in milliseconds", min=1),
    ] = None,
    batch_size: Annotated[
        int | None,
        typer.Option("--batch-size", "-b", help="Snapshots buffered before a flush", min=1),
    ] = None,
    display: Annotated[
        bool | None,
        typer.Option("--display/--no-display", help="Print a console summary each tick"),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR"),
    ] = None,
) -> None:
    """Start the monitoring agent."""
    overrides = build_cli_overrides(
        interval=interval,
        batch_size=batch_size,
        display=display,
        log_level=log_level,
    )
    cfg = _load(config, overrides)

    configure_logging(cfg.logging)
    sentry.init_sentry(cfg.sentry)
    try:
        asyncio.run(run_agent(cfg))
    finally:
        sentry.shutdown()


async def collect_once(cfg: Config, warmup: float) -> MetricSnapshot:
    """Take one snapshot with primed CPU and network baselines.

    The first sample only seeds the delta-based collectors, so two samples
    ``warmup`` seconds apart are taken and the second is returned.
    """
    aggregator = MetricsAggregator.from_config(cfg)
    if warmup > 0:
        await aggregator.collect_all()
        await asyncio.sleep(warmup)
    return await aggregator.collect_all()


@app.command("once")
def once_command(
    config: ConfigOption = None,
    warmup: Annotated[
        float,
        typer.Option("--warmup", "-w", help="Seconds between the seeding and the reported sample", min=0.0),
    ] = 1.0,
    pretty: Annotated[
        bool,
        typer.Option("--pretty/--no-pretty", help="Indent JSON output"),
    ] = True,
    summary: Annotated[
        bool,
        typer.Option("--summary", "-s", help="Print the console summary instead of JSON"),
    ] = False,
) -> None:
    """Collect a single snapshot and print it."""
    cfg = _load(config)
    configure_logging(cfg.logging)

    snapshot = asyncio.run(collect_once(cfg, warmup))
    if summary:
        print_snapshot(snapshot, console=console)
    else:
        typer.echo(snapshot_to_json(snapshot, pretty=pretty))

    if snapshot.is_error:
        raise typer.Exit(1)


async def _setup_db(sink: PostgresSink) -> bool:
    try:
        return await sink.setup_schema()
    finally:
        await sink.close()


@app.command("setup-db")
def setup_db_command(config: ConfigOption = None) -> None:
    """Create the PostgreSQL tables, views and functions."""
    cfg = _load(config)
    configure_logging(cfg.logging)

    if not cfg.db.enabled:
        console.print("[red]Error:[/red] database storage is not enabled (set db.enabled or DB_ENABLED)")
        raise typer.Exit(1)

    if not asyncio.run(_setup_db(PostgresSink.from_config(cfg.db))):
        console.print("[red]Database schema setup failed[/red]")
        raise typer.Exit(1)
    console.print("[green]Database schema is ready[/green]")


async def _cleanup(cfg: Config, days: int) -> bool:
    sink = build_sink(cfg)
    try:
        if not sink.supports_cleanup:
            console.print(f"[yellow]Sink '{sink.kind.value}' keeps no data; nothing to clean up[/yellow]")
            return False
        return await sink.cleanup(days)
    finally:
        await sink.close()


@app.command("cleanup")
def cleanup_command(
    config: ConfigOption = None,
    days: Annotated[
        int | None,
        typer.Option("--days", "-d", help="Delete metrics older than this many days", min=1),
    ] = None,
) -> None:
    """Run retention cleanup once and exit."""
    cfg = _load(config)
    configure_logging(cfg.logging)

    days_to_keep = days if days is not None else cfg.cleanup.days_to_keep
    if not asyncio.run(_cleanup(cfg, days_to_keep)):
        raise typer.Exit(1)
    console.print(f"[green]Removed metrics older than {days_to_keep} days[/green]")


def cli_main() -> None:
    """Entry point for the CLI application."""
    app()
