"""HTTP API sink.

Each snapshot is POSTed as one JSON document. Any 2xx response counts as
delivered; there is no retry.
"""

from __future__ import annotations

import logging
import socket
from typing import TYPE_CHECKING

import httpx

from servermon import sentry
from servermon.formatters.json_formatter import snapshot_to_json
from servermon.models.snapshot import MetricSnapshot
from servermon.sinks.base import Sink, SinkKind

if TYPE_CHECKING:
    from servermon.config.loader import ApiConfig

logger = logging.getLogger(__name__)


class ApiSink(Sink):
    """POSTs snapshots to a collection endpoint.

    Args:
        url: Endpoint URL
        api_key: Sent as ``Authorization: ApiKey <key>``
        server_id: Sent as ``X-Server-ID``; defaults to the host name
        timeout: Request timeout in seconds
        client: Pre-built client; one is created on first use if omitted

    Example:
        >>> sink = ApiSink(url="https://metrics.example.com/ingest", api_key="secret")
        >>> await sink.store(snapshot)
        True
    """

    kind = SinkKind.API

    def __init__(
        self,
        url: str,
        api_key: str = "",
        server_id: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.server_id = server_id or socket.gethostname()
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config: ApiConfig, server_id: str | None = None) -> ApiSink:
        return cls(
            url=config.url,
            api_key=config.key,
            server_id=server_id,
            timeout=config.timeout_seconds,
        )

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"ApiKey {self.api_key}",
            "X-Server-ID": self.server_id,
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def store(self, snapshot: MetricSnapshot) -> bool:
        if not self.url:
            logger.error("API URL not configured")
            return False

        try:
            response = await self._get_client().post(
                self.url,
                content=snapshot_to_json(snapshot),
                headers=self.headers,
            )
        except httpx.HTTPError as e:
            logger.error("Error sending metrics to API: %s", e)
            sentry.capture_delivery_error(self.kind.value, e, extra={"url": self.url})
            return False
        except Exception as e:
            logger.error("Exception sending metrics to API: %s", e, exc_info=True)
            sentry.capture_delivery_error(self.kind.value, e, extra={"url": self.url})
            return False

        if 200 <= response.status_code < 300:
            logger.debug("Metrics sent successfully to API")
            return True

        logger.error("HTTP Error: %d - %s", response.status_code, response.text[:500])
        return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
