"""Upstream fetcher and shared HTTP client management.

Every upstream call (price feed, blockchain info, mempool) goes through
UpstreamFetcher.fetch(). Shared httpx.AsyncClient instances are kept per TLS
mode so that connections are reused across requests.

.. code-block:: python

    fetcher = UpstreamFetcher()
    info = await fetcher.fetch("https://example.org/api/v1/blockchain-info")

    # Relaxed certificate validation for a self-signed upstream
    mempool = await fetcher.fetch("https://example.org:3000/mempool", verify_tls=False)
"""

from __future__ import annotations

import json
import logging
from typing import Any, ClassVar

import httpx

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Raised when an upstream request fails.

    :ivar url: URL of the upstream that failed.
    :ivar status: HTTP status code, or a transport error code string.
    """

    def __init__(self, url: str, status: int | str):
        """Initialize the upstream error.

        :param url: Upstream URL.
        :param status: HTTP status code or transport error code.
        """
        self.url = url
        self.status = status
        super().__init__(f"{url} -> HTTP {status}")


def normalize_json(value: Any) -> Any:
    """Parse a JSON document delivered as a string, if possible.

    Some upstreams return JSON encoded a second time as a string body.

    :param value: Decoded response body.
    :returns: Parsed value, or the input unchanged if it is not a JSON string.
    """
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


class UpstreamFetcher:
    """Performs normalized JSON GET requests against upstream services.

    :cvar DEFAULT_TIMEOUT: Default request timeout in seconds.
    :cvar DEFAULT_HEADERS: Headers sent with every request unless overridden.
    :ivar timeout: Request timeout in seconds for this instance.
    :ivar headers: Extra headers for this instance.
    """

    # Shared HTTP clients, keyed by TLS verification mode
    _shared_clients: ClassVar[dict[bool, httpx.AsyncClient]] = {}

    DEFAULT_TIMEOUT = 15.0

    DEFAULT_HEADERS: ClassVar[dict[str, str]] = {
        "accept": "application/json",
        "user-agent": "zcash-totem/1.0",
    }

    def __init__(
        self,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ):
        """Initialize the fetcher.

        :param timeout: Request timeout in seconds (default: 15).
        :param headers: Extra headers applied on top of DEFAULT_HEADERS.
        """
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.headers = dict(headers or {})

    @classmethod
    def get_shared_client(cls, verify: bool = True) -> httpx.AsyncClient:
        """Get or create the shared HTTP client for a TLS mode.

        :param verify: Whether server certificates are validated.
        :returns: Shared httpx.AsyncClient instance.
        """
        client = cls._shared_clients.get(verify)
        if client is None or client.is_closed:
            client = httpx.AsyncClient(
                verify=verify,
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
            cls._shared_clients[verify] = client
        return client

    @classmethod
    async def close_shared_clients(cls) -> None:
        """Close all shared HTTP clients."""
        clients = list(cls._shared_clients.values())
        cls._shared_clients.clear()
        for client in clients:
            if not client.is_closed:
                await client.aclose()

    def build_headers(self, headers: dict[str, str] | None = None) -> dict[str, str]:
        """Merge default, instance and call headers (names are case-insensitive).

        :param headers: Per-call headers, highest precedence.
        :returns: Merged header dict with lowercase names.
        """
        merged: dict[str, str] = {}
        for source in (self.DEFAULT_HEADERS, self.headers, headers or {}):
            for name, value in source.items():
                merged[name.lower()] = value
        return merged

    async def fetch(
        self,
        url: str,
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        verify_tls: bool = True,
    ) -> Any:
        """GET a URL and return its parsed JSON body.

        :param url: Upstream URL.
        :param timeout: Per-call timeout in seconds, overrides the instance value.
        :param headers: Per-call headers, override the defaults.
        :param verify_tls: Set to False to accept invalid certificates.
        :returns: Parsed JSON value, or the raw body text if it is not JSON.
        :raises UpstreamError: On timeout, transport failure or non-2xx status.
        """
        client = self.get_shared_client(verify_tls)
        try:
            response = await client.get(
                url,
                headers=self.build_headers(headers),
                timeout=timeout or self.timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamError(url, "timeout") from e
        except httpx.RequestError as e:
            raise UpstreamError(url, type(e).__name__) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamError(url, "request_failed") from e

        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise UpstreamError(url, response.status_code)

        try:
            body = response.json()
        except ValueError:
            return response.text
        return normalize_json(body)
