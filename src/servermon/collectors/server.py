"""Host identity for snapshots."""

import logging
import platform
import socket
import sys
import time

import psutil

from servermon.models.metrics import ServerInfo

logger = logging.getLogger(__name__)


def primary_ipv4_address() -> str | None:
    """First non-loopback IPv4 address of any interface, if any."""
    try:
        addrs = psutil.net_if_addrs()
    except OSError:
        return None
    for addresses in addrs.values():
        for addr in addresses:
            if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                return addr.address
    return None


def _uptime_seconds() -> float:
    try:
        return max(time.time() - psutil.boot_time(), 0.0)
    except (OSError, RuntimeError):
        return 0.0


class ServerIdentity:
    """Resolves the ServerInfo block attached to every snapshot.

    Args:
        hostname: Fixed identifier overriding the system host name
        use_ip_as_id: Report the primary IPv4 address instead of the host name
    """

    def __init__(self, hostname: str | None = None, use_ip_as_id: bool = False) -> None:
        self.hostname_override = hostname
        self.use_ip_as_id = use_ip_as_id

    def resolve_hostname(self) -> str:
        if self.hostname_override:
            return self.hostname_override
        if self.use_ip_as_id:
            address = primary_ipv4_address()
            if address:
                return address
        return socket.gethostname() or "unknown"

    def current(self) -> ServerInfo:
        """Identity with the current uptime.

        Raises:
            Exception: If the host name cannot be determined
        """
        return ServerInfo(
            hostname=self.resolve_hostname(),
            platform=sys.platform,
            release=platform.release() or "unknown",
            uptime_seconds=_uptime_seconds(),
        )

    def safe_current(self) -> ServerInfo:
        """Identity that never raises, with ``unknown`` for unreadable fields."""
        try:
            return self.current()
        except Exception as e:
            logger.warning("Could not resolve server identity: %s", e)
            return ServerInfo(hostname=self.hostname_override or "unknown")
