"""Sentry SDK integration for servermon.

Error tracking is opt-in: nothing is sent unless a DSN is configured. All
capture helpers are safe to call when Sentry was never initialized.

Usage:
    from servermon.sentry import init_sentry, capture_collector_error

    init_sentry(config.sentry)  # Call at startup
    capture_collector_error("cpu", exc)
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from typing import TYPE_CHECKING, Any

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from servermon import __version__

if TYPE_CHECKING:
    from servermon.config.loader import SentryConfig

logger = logging.getLogger(__name__)

_initialized = False


def is_enabled() -> bool:
    """True once init_sentry() has configured a client."""
    return _initialized


def init_sentry(config: SentryConfig) -> bool:
    """Initialize Sentry when ``config.dsn`` is set.

    Configures:
    - AsyncioIntegration for errors in tasks
    - LoggingIntegration (INFO as breadcrumbs, ERROR as events)
    - Default tags for filtering

    Args:
        config: Sentry section of the agent configuration

    Returns:
        True if Sentry was initialized
    """
    global _initialized

    if not config.dsn:
        logger.debug("Sentry disabled (no DSN configured)")
        return False

    sentry_sdk.init(
        dsn=config.dsn,
        traces_sample_rate=config.traces_sample_rate,
        send_default_pii=False,
        environment=config.environment or os.environ.get("SERVERMON_ENV", "production"),
        release=f"servermon@{__version__}",
        integrations=[
            AsyncioIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        before_send=_before_send,
    )

    sentry_sdk.set_tag("app.version", __version__)
    sentry_sdk.set_tag("python.version", platform.python_version())
    sentry_sdk.set_tag("os.name", platform.system())
    sentry_sdk.set_tag("os.version", platform.release())
    sentry_sdk.set_context("system", {
        "os_full": platform.platform(),
        "python_implementation": platform.python_implementation(),
        "architecture": platform.machine(),
        "is_tty": sys.stdout.isatty(),
    })

    _initialized = True
    logger.info("Sentry error tracking enabled")
    return True


def _before_send(
    event: dict[str, Any],
    hint: dict[str, Any],
) -> dict[str, Any] | None:
    """Drop interrupts; they are shutdowns, not errors."""
    if "exc_info" in hint:
        exc_type, _, _ = hint["exc_info"]
        if exc_type is KeyboardInterrupt:
            return None
    return event


def set_agent_context(
    *,
    hostname: str,
    sink: str,
    refresh_interval_ms: int,
    batch_size: int,
) -> None:
    """Attach agent settings to every subsequent event."""
    if not _initialized:
        return
    sentry_sdk.set_tag("servermon.sink", sink)
    sentry_sdk.set_tag("server.hostname", hostname)
    sentry_sdk.set_context("servermon", {
        "sink": sink,
        "refresh_interval_ms": refresh_interval_ms,
        "batch_size": batch_size,
    })


def capture_collector_error(
    collector_name: str,
    error: Exception,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Capture an error from a collector with context.

    Args:
        collector_name: Name of the collector that failed
        error: The exception that occurred
        extra: Additional context to include
    """
    if not _initialized:
        return
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("collector", collector_name)
        scope.set_context("collector_error", {
            "collector": collector_name,
            "error_type": type(error).__name__,
            **(extra or {}),
        })
        sentry_sdk.capture_exception(error)


def capture_delivery_error(
    sink: str,
    error: Exception,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Capture a failed snapshot delivery.

    Args:
        sink: Kind of the sink that failed (api, db)
        error: The exception that occurred
        extra: Additional context to include
    """
    if not _initialized:
        return
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("sink", sink)
        scope.set_context("delivery_error", {
            "sink": sink,
            "error_type": type(error).__name__,
            **(extra or {}),
        })
        sentry_sdk.capture_exception(error)


def add_breadcrumb(
    message: str,
    category: str = "servermon",
    level: str = "info",
    data: dict[str, Any] | None = None,
) -> None:
    """Add a breadcrumb for debugging.

    Args:
        message: Description of the event
        category: Category for grouping (e.g., "tick", "dispatch", "cleanup")
        level: Severity level (debug, info, warning, error)
        data: Additional data to attach
    """
    if not _initialized:
        return
    sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data)


def shutdown(timeout: float = 2.0) -> None:
    """Flush pending events before exit."""
    global _initialized

    if not _initialized:
        return
    sentry_sdk.flush(timeout=timeout)
    _initialized = False
