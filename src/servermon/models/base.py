"""Base Pydantic model for servermon snapshot sections."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class MetricData(BaseModel):
    """Base class for every metric section produced by a collector.

    Sections are immutable once built. They carry no timestamp of their own;
    the snapshot they are merged into is stamped once at merge time.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )
