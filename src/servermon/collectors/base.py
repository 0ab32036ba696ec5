"""Abstract base class for metric collectors.

Every collector gathers one snapshot section asynchronously. ``collect()`` may
raise; ``safe_collect()`` wraps it with timing and error capture; ``sample()``
is what the aggregator calls and always yields a section, substituting the
collector's zero-value ``fallback()`` when collection fails.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Any, Generic, TypeVar

from servermon import sentry
from servermon.models.base import MetricData, utcnow

T = TypeVar("T", bound=MetricData)

logger = logging.getLogger(__name__)


@dataclass
class CollectionResult(Generic[T]):
    """Result of a collection attempt.

    Attributes:
        success: Whether the collection succeeded
        data: The collected section (None if failed)
        error: Error message if collection failed
        collection_time_ms: How long the collection took in milliseconds
        timestamp: When the collection was attempted
        collector_name: Name of the collector that produced this result
    """

    success: bool
    data: T | None = None
    error: str | None = None
    collection_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=utcnow)
    collector_name: str = ""

    def __post_init__(self) -> None:
        """Validate result consistency."""
        if self.success and self.data is None:
            raise ValueError("Successful collection must include data")
        if not self.success and self.error is None:
            raise ValueError("Failed collection must include error message")


class DataCollector(ABC, Generic[T]):
    """Abstract base class for collectors.

    Type Parameters:
        T: The MetricData subclass this collector produces

    Class Attributes:
        name: Unique identifier, also the snapshot section name
        timeout: Maximum time allowed for a single collection in seconds

    Example:
        class MemoryCollector(DataCollector[MemoryData]):
            name = "memory"

            async def collect(self) -> MemoryData:
                return MemoryData(...)

            def fallback(self) -> MemoryData:
                return MemoryData()
    """

    name: str = "unnamed_collector"
    timeout: float = 10.0

    def __init__(self) -> None:
        self._last_collection: datetime | None = None
        self._last_error: str | None = None
        self._consecutive_failures: int = 0
        self._total_collections: int = 0
        self._total_failures: int = 0

    @property
    def stats(self) -> dict[str, Any]:
        """Collection statistics for this collector."""
        return {
            "name": self.name,
            "last_collection": self._last_collection,
            "last_error": self._last_error,
            "consecutive_failures": self._consecutive_failures,
            "total_collections": self._total_collections,
            "total_failures": self._total_failures,
        }

    @abstractmethod
    async def collect(self) -> T:
        """Collect one section from the OS.

        Returns:
            The collected section

        Raises:
            Exception: Any failure reading the underlying source
        """
        ...

    @abstractmethod
    def fallback(self) -> T:
        """Return the zero-value section used when collection fails."""
        ...

    async def safe_collect(self) -> CollectionResult[T]:
        """Collect data with error handling and timing.

        Returns:
            CollectionResult with data or error information
        """
        start_time = utcnow()
        self._total_collections += 1

        try:
            data = await self.collect()
        except PermissionError as e:
            # Expected for unprivileged agents; keep it quiet
            logger.debug("Permission denied in collector '%s': %s", self.name, str(e))
            return self._failure(start_time, f"Permission denied: {e!s}")
        except Exception as e:
            logger.warning("Collector '%s' failed: %s: %s", self.name, type(e).__name__, e)
            sentry.capture_collector_error(self.name, e)
            return self._failure(start_time, f"{type(e).__name__}: {e!s}")

        elapsed_ms = (utcnow() - start_time).total_seconds() * 1000
        self._last_collection = utcnow()
        self._consecutive_failures = 0
        return CollectionResult(
            success=True,
            data=data,
            collection_time_ms=elapsed_ms,
            timestamp=start_time,
            collector_name=self.name,
        )

    async def sample(self) -> T:
        """Collect a section, falling back to zero values on failure. Never raises."""
        result = await self.safe_collect()
        if result.success and result.data is not None:
            return result.data
        return self.fallback()

    def _failure(self, start_time: datetime, error: str) -> CollectionResult[T]:
        self._consecutive_failures += 1
        self._total_failures += 1
        self._last_error = error
        return CollectionResult(
            success=False,
            error=error,
            collection_time_ms=(utcnow() - start_time).total_seconds() * 1000,
            timestamp=start_time,
            collector_name=self.name,
        )
