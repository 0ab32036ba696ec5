"""servermon - periodic host telemetry agent.

Samples CPU, memory, disk, network and process metrics on a fixed interval,
batches the snapshots and forwards them to an HTTP API or a PostgreSQL
database.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
