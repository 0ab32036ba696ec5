"""Abstract sink interface and the no-op sink."""

from abc import ABC, abstractmethod
from enum import Enum
import logging

from servermon.models.snapshot import MetricSnapshot

logger = logging.getLogger(__name__)


class SinkKind(str, Enum):
    """Delivery targets, in selection precedence order."""

    API = "api"
    DB = "db"
    NOOP = "noop"


class Sink(ABC):
    """Destination for snapshots.

    ``store`` and ``cleanup`` report failure by returning False; they never
    raise past their boundary.

    Class Attributes:
        kind: Which delivery target this sink implements
        enabled: False for sinks that discard snapshots
    """

    kind: SinkKind
    enabled: bool = True

    @abstractmethod
    async def store(self, snapshot: MetricSnapshot) -> bool:
        """Deliver one snapshot.

        Returns:
            True if the snapshot was accepted
        """
        ...

    @property
    def supports_cleanup(self) -> bool:
        """True if this sink holds data that retention cleanup can prune."""
        return False

    async def cleanup(self, days_to_keep: int) -> bool:
        """Delete data older than ``days_to_keep`` days.

        Sinks that keep nothing have nothing to clean.
        """
        return True

    async def close(self) -> None:
        """Release any held resources."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r})"


class NoOpSink(Sink):
    """Sink used when no delivery target is enabled."""

    kind = SinkKind.NOOP
    enabled = False

    async def store(self, snapshot: MetricSnapshot) -> bool:
        logger.debug("No storage method enabled, snapshot %s not stored", snapshot.timestamp)
        return True
