"""Tests for the API, PostgreSQL and no-op sinks."""

import json
from unittest.mock import MagicMock, patch

import httpx
import psycopg2
import pytest

from servermon.config import Config
from servermon.models import CpuData, MemoryData, MetricSnapshot, NetworkData, ProcessData, ProcessEntry, ServerInfo
from servermon.sinks import ApiSink, NoOpSink, PostgresSink, SinkKind, build_sink
from servermon.sinks.postgres import METRIC_COLUMNS, load_schema, metric_row


def _snapshot() -> MetricSnapshot:
    return MetricSnapshot(
        server=ServerInfo(hostname="web-01", platform="linux", release="6.1"),
        cpu=CpuData(usage_percent=42.0, core_count=8, load_avg=(1.0, 0.5, 0.25)),
        memory=MemoryData(total_bytes=1000, free_bytes=400, used_bytes=600, used_percent=60.0),
        network=NetworkData(
            interface_name="eth0",
            connection_state_counts={"ESTABLISHED": 7, "LISTEN": 3},
            total_connections=10,
        ),
        processes=ProcessData(
            top_by_cpu=[
                ProcessEntry(pid=10, name="postgres", cpu_percent=30.0, memory_percent=12.0),
                ProcessEntry(pid=11, name="nginx", cpu_percent=5.0, memory_percent=1.0),
            ],
            total_count=120,
        ),
    )


def _api_sink(handler, **kwargs) -> ApiSink:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ApiSink(url="https://metrics.example.com/ingest", client=client, **kwargs)


class TestApiSink:
    """Tests for ApiSink."""

    @pytest.mark.asyncio
    async def test_posts_json_with_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        sink = _api_sink(handler, api_key="secret", server_id="web-01")
        assert await sink.store(_snapshot())

        request = seen[0]
        assert request.method == "POST"
        assert request.headers["Authorization"] == "ApiKey secret"
        assert request.headers["X-Server-ID"] == "web-01"
        assert request.headers["Content-Type"] == "application/json"
        body = json.loads(request.content)
        assert body["server"]["hostname"] == "web-01"
        assert body["cpu"]["usage_percent"] == 42.0
        assert "error" not in body
        await sink.close()

    @pytest.mark.asyncio
    async def test_non_2xx_fails(self) -> None:
        sink = _api_sink(lambda request: httpx.Response(500, text="internal error"))
        assert not await sink.store(_snapshot())

    @pytest.mark.asyncio
    async def test_transport_error_fails(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        sink = _api_sink(handler)
        assert not await sink.store(_snapshot())

    @pytest.mark.asyncio
    async def test_missing_url_fails(self) -> None:
        sink = ApiSink(url="", client=MagicMock())
        assert not await sink.store(_snapshot())
        sink._client.post.assert_not_called()

    def test_server_id_defaults_to_hostname(self) -> None:
        with patch("servermon.sinks.api.socket.gethostname", return_value="box"):
            sink = ApiSink(url="https://x")
        assert sink.headers["X-Server-ID"] == "box"

    @pytest.mark.asyncio
    async def test_close_releases_client(self) -> None:
        sink = _api_sink(lambda request: httpx.Response(200))
        await sink.close()
        assert sink._client is None
        await sink.close()


def _pg_sink() -> tuple[PostgresSink, MagicMock, MagicMock, MagicMock]:
    sink = PostgresSink()
    pool = MagicMock()
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value
    pool.getconn.return_value = conn
    sink._pool = pool
    return sink, pool, conn, cursor


class TestPostgresSink:
    """Tests for PostgresSink with a mocked connection pool."""

    def test_metric_row_matches_columns(self) -> None:
        row = metric_row(_snapshot())
        assert len(row) == len(METRIC_COLUMNS)
        values = dict(zip(METRIC_COLUMNS, row, strict=True))
        assert values["server_hostname"] == "web-01"
        assert values["cpu_usage"] == 42.0
        assert values["cpu_load_1m"] == 1.0
        assert values["memory_percentage"] == 60.0
        assert values["network_connections"] == 7
        assert values["process_count"] == 120
        assert values["disk_size"] is None
        assert values["swap_total"] is None
        assert values["error"] is None

    def test_metric_row_for_error_snapshot(self) -> None:
        snapshot = MetricSnapshot.failed(ServerInfo(hostname="web-01"), "boom")
        values = dict(zip(METRIC_COLUMNS, metric_row(snapshot), strict=True))
        assert values["error"] == "boom"
        assert values["cpu_usage"] is None
        assert values["network_connections"] is None

    @pytest.mark.asyncio
    async def test_store_commits_one_transaction(self) -> None:
        sink, pool, conn, cursor = _pg_sink()
        cursor.fetchone.return_value = (42,)

        assert await sink.store(_snapshot())

        # server upsert, metrics insert, one insert per top-CPU process
        assert cursor.execute.call_count == 4
        process_args = cursor.execute.call_args_list[2].args[1]
        assert process_args == (42, 10, "postgres", 30.0, 12.0)
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        pool.putconn.assert_called_once_with(conn)

    @pytest.mark.asyncio
    async def test_store_rolls_back_on_error(self) -> None:
        sink, pool, conn, cursor = _pg_sink()
        cursor.execute.side_effect = [None, psycopg2.DatabaseError("constraint violated")]

        assert not await sink.store(_snapshot())
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.putconn.assert_called_once_with(conn)

    @pytest.mark.asyncio
    async def test_store_without_connection(self) -> None:
        sink, pool, _, _ = _pg_sink()
        pool.getconn.side_effect = psycopg2.OperationalError("could not connect")
        assert not await sink.store(_snapshot())

    @pytest.mark.asyncio
    async def test_cleanup(self) -> None:
        sink, pool, conn, cursor = _pg_sink()
        cursor.fetchone.return_value = (17,)

        assert sink.supports_cleanup
        assert await sink.cleanup(30)
        cursor.execute.assert_called_once_with("SELECT cleanup_old_metrics(%s)", (30,))
        conn.commit.assert_called_once()
        pool.putconn.assert_called_once_with(conn)

    @pytest.mark.asyncio
    async def test_cleanup_failure(self) -> None:
        sink, _, conn, cursor = _pg_sink()
        cursor.execute.side_effect = psycopg2.ProgrammingError("function does not exist")
        assert not await sink.cleanup(30)
        conn.rollback.assert_called_once()

    @pytest.mark.asyncio
    async def test_setup_schema_runs_packaged_sql(self) -> None:
        sink, _, conn, cursor = _pg_sink()
        assert await sink.setup_schema()
        cursor.execute.assert_called_once_with(load_schema())
        conn.commit.assert_called_once()

    def test_schema_is_idempotent(self) -> None:
        schema = load_schema()
        assert "CREATE TABLE IF NOT EXISTS servers" in schema
        assert "cleanup_old_metrics" in schema
        assert "DROP TRIGGER IF EXISTS" in schema

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        sink, pool, _, _ = _pg_sink()
        await sink.close()
        pool.closeall.assert_called_once()
        assert sink._pool is None

    def test_from_config(self) -> None:
        config = Config(db={"enabled": True, "host": "db", "ssl": True, "name": "metrics"})
        sink = PostgresSink.from_config(config.db)
        assert sink.connect_kwargs["host"] == "db"
        assert sink.connect_kwargs["dbname"] == "metrics"
        assert sink.connect_kwargs["sslmode"] == "require"


class TestBuildSink:
    """Tests for sink selection."""

    def test_api_takes_precedence(self) -> None:
        config = Config(api={"enabled": True, "url": "https://x"}, db={"enabled": True})
        sink = build_sink(config)
        assert isinstance(sink, ApiSink)
        assert sink.kind is SinkKind.API

    def test_db(self) -> None:
        assert isinstance(build_sink(Config(db={"enabled": True})), PostgresSink)

    def test_nothing_enabled(self) -> None:
        sink = build_sink(Config())
        assert isinstance(sink, NoOpSink)
        assert not sink.enabled

    def test_configured_hostname_is_server_id(self) -> None:
        config = Config(api={"enabled": True, "url": "https://x"}, server={"hostname": "web-07"})
        sink = build_sink(config)
        assert isinstance(sink, ApiSink)
        assert sink.server_id == "web-07"

    @pytest.mark.asyncio
    async def test_noop_store(self) -> None:
        assert await NoOpSink().store(_snapshot())
        assert await NoOpSink().cleanup(30)
