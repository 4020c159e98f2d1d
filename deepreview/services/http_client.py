"""
Pooled HTTP client for the analysis providers.

Each AnalysisGateway owns one HTTPClientManager; every provider in its list
borrows the same httpx.AsyncClient, so retries and fallthrough between
providers reuse connections instead of reconnecting per attempt.

Usage:
    async with HTTPClientManager(default_timeout=90.0) as manager:
        client = await manager.get_client()
        response = await client.post(url, json=payload)

The client is created lazily on first get_client(); shutdown() closes it and
a later get_client() opens a fresh one.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from deepreview import __version__

logger = logging.getLogger("DeepReview.HTTP.Client")

USER_AGENT = f"DeepReview/{__version__}"


class HTTPClientManager:
    """
    Owns one httpx.AsyncClient with connection limits and timeouts.

    Args:
        max_connections: Total connection cap across all providers
        max_keepalive_connections: Idle connections kept between requests
        default_timeout: Read/write/pool timeout per request, in seconds
        connect_timeout: Timeout for establishing a connection, in seconds
        transport: Custom transport (httpx.MockTransport in tests)
    """

    def __init__(
        self,
        max_connections: int = 10,
        max_keepalive_connections: int = 5,
        default_timeout: float = 90.0,
        connect_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
        )
        self._default_timeout = default_timeout
        self._connect_timeout = min(connect_timeout, default_timeout)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def limits(self) -> httpx.Limits:
        return self._limits

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self._default_timeout, connect=self._connect_timeout)

    @property
    def is_initialized(self) -> bool:
        return self._client is not None and not self._client.is_closed

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "limits": self._limits,
            "timeout": self.timeout,
            "headers": {"User-Agent": USER_AGENT},
            "follow_redirects": True,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    async def startup(self) -> None:
        """Open the pooled client. A no-op when it is already open."""
        if self.is_initialized:
            return
        self._client = httpx.AsyncClient(**self._client_kwargs())
        logger.debug(
            f"HTTP client opened (timeout={self._default_timeout}s, "
            f"connect_timeout={self._connect_timeout}s)"
        )

    async def shutdown(self) -> None:
        """Close the client and release its connections."""
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        logger.debug("HTTP client closed")

    async def get_client(self) -> httpx.AsyncClient:
        """The shared client, opened on first use."""
        if not self.is_initialized:
            await self.startup()
        return self._client

    async def __aenter__(self) -> "HTTPClientManager":
        await self.startup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
