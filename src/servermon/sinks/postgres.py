"""PostgreSQL sink.

Every snapshot is written in one transaction: the server row is upserted, a
metrics row is inserted, and one processes row per top-CPU process is
attached to it. psycopg2 is blocking, so all database work runs in a worker
thread.
"""

from __future__ import annotations

import asyncio
from importlib import resources
import logging
import threading
from typing import TYPE_CHECKING, Any

import psycopg2
from psycopg2.pool import ThreadedConnectionPool

from servermon import sentry
from servermon.models.snapshot import MetricSnapshot
from servermon.sinks.base import Sink, SinkKind

if TYPE_CHECKING:
    from servermon.config.loader import DbConfig

logger = logging.getLogger(__name__)

UPSERT_SERVER_SQL = """
    INSERT INTO servers (hostname, platform, release, last_seen)
    VALUES (%s, %s, %s, CURRENT_TIMESTAMP)
    ON CONFLICT (hostname) DO UPDATE
    SET platform = EXCLUDED.platform, release = EXCLUDED.release, last_seen = CURRENT_TIMESTAMP
"""

METRIC_COLUMNS = (
    "server_hostname",
    "timestamp",
    "uptime_seconds",
    "cpu_usage",
    "cpu_cores",
    "cpu_model",
    "cpu_speed",
    "cpu_load_1m",
    "cpu_load_5m",
    "cpu_load_15m",
    "memory_total",
    "memory_free",
    "memory_used",
    "memory_percentage",
    "swap_total",
    "swap_used",
    "swap_percentage",
    "disk_filesystem",
    "disk_size",
    "disk_used",
    "disk_available",
    "disk_percentage",
    "network_interface",
    "network_rx_bytes",
    "network_tx_bytes",
    "network_rx_rate",
    "network_tx_rate",
    "network_connections",
    "process_count",
    "error",
)

INSERT_METRICS_SQL = (
    f"INSERT INTO metrics ({', '.join(METRIC_COLUMNS)}) "
    f"VALUES ({', '.join(['%s'] * len(METRIC_COLUMNS))}) RETURNING id"
)

INSERT_PROCESS_SQL = """
    INSERT INTO processes (metric_id, pid, name, cpu_usage, memory_usage)
    VALUES (%s, %s, %s, %s, %s)
"""

CLEANUP_SQL = "SELECT cleanup_old_metrics(%s)"


def metric_row(snapshot: MetricSnapshot) -> tuple[Any, ...]:
    """Column values for the metrics row, in METRIC_COLUMNS order.

    Missing sections become NULLs.
    """
    cpu, memory, disk, network = snapshot.cpu, snapshot.memory, snapshot.disk, snapshot.network
    swap = memory.swap if memory is not None else None
    load = cpu.load_avg if cpu is not None else (None, None, None)

    return (
        snapshot.server.hostname,
        snapshot.timestamp,
        snapshot.server.uptime_seconds,
        cpu.usage_percent if cpu else None,
        cpu.core_count if cpu else None,
        cpu.model if cpu else None,
        cpu.speed_mhz if cpu else None,
        load[0],
        load[1],
        load[2],
        memory.total_bytes if memory else None,
        memory.free_bytes if memory else None,
        memory.used_bytes if memory else None,
        memory.used_percent if memory else None,
        swap.total_bytes if swap else None,
        swap.used_bytes if swap else None,
        swap.used_percent if swap else None,
        disk.filesystem if disk else None,
        disk.size_bytes if disk else None,
        disk.used_bytes if disk else None,
        disk.available_bytes if disk else None,
        disk.used_percent if disk else None,
        network.interface_name if network else None,
        network.rx_bytes if network else None,
        network.tx_bytes if network else None,
        network.rx_rate_bytes_per_sec if network else None,
        network.tx_rate_bytes_per_sec if network else None,
        network.connection_state_counts.get("ESTABLISHED", 0) if network else None,
        snapshot.processes.total_count if snapshot.processes else None,
        snapshot.error,
    )


def load_schema() -> str:
    """Text of the packaged schema.sql."""
    return resources.files("servermon.sinks").joinpath("schema.sql").read_text(encoding="utf-8")


class PostgresSink(Sink):
    """Stores snapshots in PostgreSQL through a threaded connection pool.

    The pool is created on first use, so constructing the sink never touches
    the network.

    Args:
        host, port, user, password, dbname: Connection parameters
        ssl: Require SSL (``sslmode=require``) instead of ``prefer``
        min_connections, max_connections: Pool bounds
    """

    kind = SinkKind.DB

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        user: str = "postgres",
        password: str = "",
        dbname: str = "server_monitor",
        ssl: bool = False,
        min_connections: int = 1,
        max_connections: int = 5,
    ) -> None:
        self.connect_kwargs: dict[str, Any] = {
            "host": host,
            "port": port,
            "user": user,
            "password": password,
            "dbname": dbname,
            "sslmode": "require" if ssl else "prefer",
        }
        self.min_connections = min_connections
        self.max_connections = max_connections
        self._pool: ThreadedConnectionPool | None = None
        self._pool_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: DbConfig) -> PostgresSink:
        return cls(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            dbname=config.name,
            ssl=config.ssl,
            min_connections=config.pool_min,
            max_connections=config.pool_max,
        )

    @property
    def supports_cleanup(self) -> bool:
        return True

    def _get_pool(self) -> ThreadedConnectionPool:
        with self._pool_lock:
            if self._pool is None:
                logger.info(
                    "Connecting to PostgreSQL at %s:%s/%s",
                    self.connect_kwargs["host"],
                    self.connect_kwargs["port"],
                    self.connect_kwargs["dbname"],
                )
                self._pool = ThreadedConnectionPool(
                    self.min_connections, self.max_connections, **self.connect_kwargs
                )
            return self._pool

    def _store_sync(self, snapshot: MetricSnapshot) -> bool:
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    UPSERT_SERVER_SQL,
                    (snapshot.server.hostname, snapshot.server.platform, snapshot.server.release),
                )
                cur.execute(INSERT_METRICS_SQL, metric_row(snapshot))
                metric_id = cur.fetchone()[0]

                if snapshot.processes is not None:
                    for proc in snapshot.processes.top_by_cpu:
                        cur.execute(
                            INSERT_PROCESS_SQL,
                            (metric_id, proc.pid, proc.name, proc.cpu_percent, proc.memory_percent),
                        )
            conn.commit()
            logger.debug("Metrics stored successfully in PostgreSQL (id=%s)", metric_id)
            return True
        except Exception as e:
            conn.rollback()
            logger.error("Error storing metrics in PostgreSQL database: %s", e)
            sentry.capture_delivery_error(self.kind.value, e)
            return False
        finally:
            pool.putconn(conn)

    async def store(self, snapshot: MetricSnapshot) -> bool:
        try:
            return await asyncio.to_thread(self._store_sync, snapshot)
        except psycopg2.Error as e:
            logger.error("No database connection available: %s", e)
            sentry.capture_delivery_error(self.kind.value, e)
            return False
        except Exception as e:
            logger.error("Unexpected error storing metrics in PostgreSQL: %s", e, exc_info=True)
            sentry.capture_delivery_error(self.kind.value, e)
            return False

    def _cleanup_sync(self, days_to_keep: int) -> int:
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(CLEANUP_SQL, (days_to_keep,))
                deleted = cur.fetchone()[0]
            conn.commit()
            return int(deleted or 0)
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    async def cleanup(self, days_to_keep: int) -> bool:
        try:
            deleted = await asyncio.to_thread(self._cleanup_sync, days_to_keep)
        except psycopg2.Error as e:
            logger.error("Error cleaning up old metrics: %s", e)
            return False
        logger.info("Cleaned up %d old metrics older than %d days", deleted, days_to_keep)
        return True

    def _setup_schema_sync(self) -> None:
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(load_schema())
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    async def setup_schema(self) -> bool:
        """Apply the packaged schema. Safe to run against an existing database."""
        logger.info("Setting up database schema...")
        try:
            await asyncio.to_thread(self._setup_schema_sync)
        except psycopg2.Error as e:
            logger.error("Error setting up database schema: %s", e)
            return False
        logger.info("Database schema set up successfully")
        return True

    async def close(self) -> None:
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            logger.info("Closing database connections...")
            await asyncio.to_thread(pool.closeall)
