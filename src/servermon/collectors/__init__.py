"""Metric collectors.

Delta samplers (cpu, network) keep their previous reading in a
SamplerState; snapshot collectors (memory, disk, processes) are stateless.
The aggregator runs them all for one tick.
"""

from servermon.collectors.base import CollectionResult, DataCollector
from servermon.collectors.state import SamplerState

__all__ = [
    "CollectionResult",
    "DataCollector",
    "SamplerState",
]
