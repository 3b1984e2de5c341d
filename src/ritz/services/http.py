"""Shared HTTP helpers for provider clients."""

import logging
from pathlib import Path
from typing import Any, Optional, Type
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from ..errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DOWNLOAD_TIMEOUT = 120.0


class HttpProvider:
    """Base for providers talking JSON over HTTP."""

    name = "http"
    timeout = DEFAULT_TIMEOUT

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _request_json(
        self,
        method: str,
        url: str,
        error_cls: Type[ProviderError] = ProviderError,
        **kwargs: Any,
    ) -> Any:
        """Send a request and decode the JSON body.

        HTTP error responses keep their body text in the raised message.

        Raises:
            ProviderError: ``error_cls`` on transport, status or decoding errors.
        """
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise error_cls(f"request failed: {e}", provider=self.name) from e

        if response.is_error:
            raise error_cls(
                f"HTTP {response.status_code}: {response.text}", provider=self.name
            )

        try:
            return response.json()
        except ValueError as e:
            raise error_cls(
                f"invalid JSON response: {response.text[:500]}", provider=self.name
            ) from e


async def download_bytes(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bytes:
    """Download a provider result.

    Raises:
        ProviderError: If the download fails.
    """
    if url.startswith("file://"):
        path = Path(url2pathname(urlparse(url).path))
        try:
            return path.read_bytes()
        except OSError as e:
            raise ProviderError(f"cannot read {url}: {e}", provider="download") from e

    try:
        async with httpx.AsyncClient(
            timeout=DOWNLOAD_TIMEOUT, follow_redirects=True, transport=transport
        ) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        raise ProviderError(f"download of {url} failed: {e}", provider="download") from e

    if response.is_error:
        raise ProviderError(
            f"download of {url} failed with HTTP {response.status_code}: {response.text[:500]}",
            provider="download",
        )
    logger.debug(f"Downloaded {len(response.content)} bytes from {url}")
    return response.content
