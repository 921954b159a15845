"""
CouchDB clients for Python SDK.

This module provides the entry points:
- Client: blocking client, operations return their results
- AsyncClient: non-blocking client, operations return awaitables

Both hand out the same Database and request builder classes; the only
difference is the transport strategy they wire in.

Example:
    >>> with Client("http://localhost:5984") as client:
    ...     db = client.database("items")
    ...     db.create()
    ...     created = db.insert({"title": "My Task"}).send()

    >>> async with AsyncClient("http://localhost:5984") as client:
    ...     db = client.database("items")
    ...     doc = await db.get("doc123").send()

Invariants:
    - The base URL is parsed once, at construction
    - All databases of one client share its connection pool
    - A client closes only the httpx client it created itself
"""

from __future__ import annotations

import logging
from typing import Any, Generic

import httpx

from ._transport import (
    AsyncTransport,
    Endpoint,
    SyncTransport,
    TransportT,
    parse_base_url,
    quote_segment,
)
from .config import Settings
from .database import Database
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_HEADERS = {"Accept": "application/json"}


def _headers(headers: dict[str, str] | None) -> dict[str, str]:
    return {**DEFAULT_HEADERS, **(headers or {})}


class _BaseClient(Generic[TransportT]):
    """Database lookup shared by both clients."""

    _root: Endpoint[TransportT]

    @property
    def url(self) -> httpx.URL:
        return self._root.url

    @property
    def transport(self) -> TransportT:
        return self._root.transport

    def database(self, name: str) -> Database[TransportT]:
        """Create an interface to a database.

        This is lazy: no check is made that the database exists. Call
        create() on the result if you need it to.

        Args:
            name: Database name

        Raises:
            ValidationError: If the name is empty
            UrlParseError: If the joined URL cannot be parsed
        """
        if not isinstance(name, str) or not name:
            raise ValidationError("Database name must be a non-empty string", field_name="name")
        return Database(self._root.join(quote_segment(name) + "/"), name)


class Client(_BaseClient[SyncTransport]):
    """A blocking CouchDB client.

    Easier to reason about than the async one; each operation blocks the
    calling thread until the round trip completes. Safe to share between
    threads.

    Example:
        >>> client = Client("http://localhost:5984")
        >>> database = client.database("some_collection")
    """

    def __init__(
        self,
        url: str | httpx.URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        verify: bool = True,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize client.

        Args:
            url: Server base URL
            timeout: Request timeout in seconds
            headers: Extra default headers
            verify: Whether to verify TLS certificates
            http_client: Pre-configured httpx client; used as is and not closed

        Raises:
            UrlParseError: If the URL is malformed
        """
        base = parse_base_url(url)
        owns_client = http_client is None
        if http_client is None:
            http_client = httpx.Client(timeout=timeout, headers=_headers(headers), verify=verify)

        self._transport = SyncTransport(http_client, owns_client=owns_client)
        self._root = Endpoint(base, self._transport)
        logger.debug(f"CouchDB client for {base}")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Client:
        """Build a client from environment configuration."""
        settings = settings or Settings()
        return cls(settings.url, timeout=settings.timeout, verify=settings.verify_tls)

    def close(self) -> None:
        """Close the connection pool."""
        self._transport.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class AsyncClient(_BaseClient[AsyncTransport]):
    """A non-blocking CouchDB client.

    Operations return awaitables; the caller suspends only while a request
    is in flight.

    Example:
        >>> client = AsyncClient("http://localhost:5984")
        >>> exists = await client.database("some_collection").exists()
    """

    def __init__(
        self,
        url: str | httpx.URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        verify: bool = True,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            url: Server base URL
            timeout: Request timeout in seconds
            headers: Extra default headers
            verify: Whether to verify TLS certificates
            http_client: Pre-configured httpx async client; used as is and not closed

        Raises:
            UrlParseError: If the URL is malformed
        """
        base = parse_base_url(url)
        owns_client = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=timeout, headers=_headers(headers), verify=verify)

        self._transport = AsyncTransport(http_client, owns_client=owns_client)
        self._root = Endpoint(base, self._transport)
        logger.debug(f"Async CouchDB client for {base}")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AsyncClient:
        """Build a client from environment configuration."""
        settings = settings or Settings()
        return cls(settings.url, timeout=settings.timeout, verify=settings.verify_tls)

    async def aclose(self) -> None:
        """Close the connection pool."""
        await self._transport.aclose()

    async def __aenter__(self) -> AsyncClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
