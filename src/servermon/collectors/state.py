"""Previous-sample state for delta-based collectors."""

from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


@dataclass
class SamplerState(Generic[V]):
    """Last successful reading of a delta sampler.

    Owned by one sampler instance. Only written after a successful sample, so
    a failed tick leaves the previous baseline in place.

    Attributes:
        previous: Counters from the last successful sample
        previous_timestamp: Monotonic clock value when they were read
    """

    previous: V | None = None
    previous_timestamp: float | None = None

    @property
    def seeded(self) -> bool:
        """True once a baseline has been recorded."""
        return self.previous is not None and self.previous_timestamp is not None

    def update(self, value: V, timestamp: float) -> None:
        """Record a new baseline."""
        self.previous = value
        self.previous_timestamp = timestamp

    def reset(self) -> None:
        """Forget the baseline; the next sample reports zero deltas."""
        self.previous = None
        self.previous_timestamp = None
