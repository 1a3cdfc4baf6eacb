"""
HTTP document source for the IoT SVG runtime.

Implements the DocumentSource protocol with httpx. Relative paths are
resolved against IOTSVG_ASSET_BASE_URL.
"""

from __future__ import annotations

import logging

import httpx

from iotsvg.config import config
from iotsvg.kernel.host import DocumentSource, TransportError

logger = logging.getLogger(__name__)


class HttpDocumentSource(DocumentSource):
    """Fetches SVG documents over HTTP(S)."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = config.ASSET_BASE_URL if base_url is None else base_url
        self._timeout = config.FETCH_TIMEOUT if timeout is None else timeout
        self._transport = transport

    def resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://")) or not self._base_url:
            return url
        return f"{self._base_url.rstrip('/')}/{url.lstrip('/')}"

    async def fetch_text(self, url: str) -> str:
        """
        GET the document and return its body as text.

        Raises:
            TransportError: if the host is unreachable or answers non-2xx
        """
        target = self.resolve(url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(target, headers={"Accept": "image/svg+xml, text/plain"})
                response.raise_for_status()
                return response.text
        except httpx.HTTPStatusError as e:
            logger.warning("http_source: %s answered %s", target, e.response.status_code)
            raise TransportError(
                f"Failed to fetch {target}: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("http_source: failed to fetch %s: %s", target, e)
            raise TransportError(f"Failed to fetch {target}: {e}") from e
