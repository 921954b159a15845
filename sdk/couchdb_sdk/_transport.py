"""
Internal HTTP transport for the CouchDB SDK.

This module provides the low-level communication layer:
- Endpoint: an absolute URL bound to a shared transport
- PendingRequest: a request under construction, dispatched by send()
- SyncTransport / AsyncTransport: the two execution strategies

Request builders never touch httpx directly. They describe a request on an
Endpoint and hand send() a response handler; the transport strategy decides
whether the round trip blocks or is awaited. This keeps a single code path
for both execution modes.

It is internal to the SDK and should not be used directly by users.

Invariants:
    - Endpoints are never mutated after construction
    - Every Endpoint derived from one client shares that client's transport
    - No I/O happens before PendingRequest.send()
    - send() performs exactly one round trip
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, TypeVar
from urllib.parse import quote

import httpx

from .errors import TransportError, UrlParseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ResponseHandler = Callable[[httpx.Response], T]

# Document id prefixes whose slash is part of the CouchDB path grammar.
RESERVED_ID_PREFIXES = ("_design/", "_local/")

# Segments URL joining would resolve instead of sending.
DOT_SEGMENTS = (".", "..")


def quote_segment(segment: str) -> str:
    """Percent-encode a single path segment, including any '/'.

    '.' and '..' are encoded as %2E so they name a resource rather than
    a directory step.
    """
    if segment in DOT_SEGMENTS:
        return segment.replace(".", "%2E")
    return quote(segment, safe="")


def quote_document_id(doc_id: str) -> str:
    """Percent-encode a document id for use as a path segment.

    Design and local documents keep the literal slash after their prefix,
    everything else is fully encoded.
    """
    for prefix in RESERVED_ID_PREFIXES:
        if doc_id.startswith(prefix) and len(doc_id) > len(prefix):
            return prefix + quote_segment(doc_id[len(prefix) :])
    return quote_segment(doc_id)


def parse_base_url(url: str | httpx.URL) -> httpx.URL:
    """Parse a client base URL.

    Raises:
        UrlParseError: If the URL is malformed or not an absolute http(s) URL
    """
    try:
        parsed = url if isinstance(url, httpx.URL) else httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise UrlParseError(f"Invalid base URL {url!r}: {e}", url=str(url)) from e

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise UrlParseError(
            f"Base URL must be an absolute http(s) URL, got {url!r}",
            url=str(url),
        )
    return parsed


def _request_error(request: httpx.Request, exc: httpx.TransportError) -> TransportError:
    return TransportError(
        f"{request.method} {request.url} failed: {exc}",
        url=str(request.url),
    )


class SyncTransport:
    """Blocking strategy on top of an httpx.Client.

    execute() returns the handler's result directly. httpx.Client is safe to
    share between threads, so one SyncTransport can serve many workers.
    """

    def __init__(self, client: httpx.Client, *, owns_client: bool = True) -> None:
        self._client = client
        self._owns_client = owns_client

    def build_request(
        self,
        method: str,
        url: httpx.URL,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Request:
        return self._client.build_request(method, url, params=params, json=json, headers=headers)

    def execute(self, request: httpx.Request, handler: ResponseHandler[T]) -> T:
        try:
            response = self._client.send(request)
        except httpx.TransportError as e:
            raise _request_error(request, e) from e

        logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        return handler(response)

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            self._client.close()


class AsyncTransport:
    """Non-blocking strategy on top of an httpx.AsyncClient.

    execute() returns a coroutine; the caller suspends only while the round
    trip is in flight.
    """

    def __init__(self, client: httpx.AsyncClient, *, owns_client: bool = True) -> None:
        self._client = client
        self._owns_client = owns_client

    def build_request(
        self,
        method: str,
        url: httpx.URL,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Request:
        return self._client.build_request(method, url, params=params, json=json, headers=headers)

    def execute(self, request: httpx.Request, handler: ResponseHandler[T]) -> Awaitable[T]:
        return self._execute(request, handler)

    async def _execute(self, request: httpx.Request, handler: ResponseHandler[T]) -> T:
        try:
            response = await self._client.send(request)
        except httpx.TransportError as e:
            raise _request_error(request, e) from e

        logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        return handler(response)

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()


# Execution strategy shared by every Endpoint of one client. Builders are
# generic over it so a type checker sees results under a blocking client and
# awaitables under an async one.
TransportT = TypeVar("TransportT", SyncTransport, AsyncTransport)


class PendingRequest:
    """A request scoped to an Endpoint, not yet dispatched.

    Query parameters, a JSON body and headers can be attached fluently.
    """

    def __init__(self, endpoint: Endpoint[Any], method: str) -> None:
        self._endpoint = endpoint
        self._method = method
        self._params: dict[str, str] = {}
        self._headers: dict[str, str] = {}
        self._json: Any = None

    @property
    def method(self) -> str:
        return self._method

    @property
    def url(self) -> httpx.URL:
        return self._endpoint.url

    def params(self, params: Mapping[str, str]) -> PendingRequest:
        self._params.update(params)
        return self

    def json(self, body: Any) -> PendingRequest:
        self._json = body
        return self

    def header(self, name: str, value: str) -> PendingRequest:
        self._headers[name] = value
        return self

    def build(self) -> httpx.Request:
        """Build the httpx.Request without sending it."""
        return self._endpoint.transport.build_request(
            self._method,
            self._endpoint.url,
            params=self._params or None,
            json=self._json,
            headers=self._headers or None,
        )

    def send(self, handler: ResponseHandler[T]) -> Any:
        """Dispatch through the Endpoint's transport.

        Returns:
            The handler's result under a blocking transport, or an awaitable
            resolving to it under a non-blocking one.
        """
        request = self.build()
        logger.debug(f"Dispatching {request.method} {request.url}")
        return self._endpoint.transport.execute(request, handler)


class Endpoint(Generic[TransportT]):
    """An absolute URL plus the transport shared by its client.

    Example:
        >>> root = Endpoint.from_url("http://localhost:5984", transport)
        >>> db = root.join("items/")
        >>> str(db.join("doc123").url)
        'http://localhost:5984/items/doc123'
    """

    __slots__ = ("_url", "_transport")

    def __init__(self, url: httpx.URL, transport: TransportT) -> None:
        self._url = url
        self._transport = transport

    @classmethod
    def from_url(cls, url: str | httpx.URL, transport: TransportT) -> Endpoint[TransportT]:
        """Parse a base URL and bind it to a transport.

        Raises:
            UrlParseError: If the URL is malformed or not an absolute http(s) URL
        """
        return cls(parse_base_url(url), transport)

    @property
    def url(self) -> httpx.URL:
        return self._url

    @property
    def transport(self) -> TransportT:
        return self._transport

    def join(self, segment: str) -> Endpoint[TransportT]:
        """Derive an Endpoint for a path relative to this one.

        The current path is always treated as a directory, so repeated joins
        compose: 'base/db/' + 'doc' gives 'base/db/doc'. The segment must
        already be escaped.

        Raises:
            UrlParseError: If the joined URL cannot be parsed
        """
        base = self._url
        path = base.raw_path.split(b"?", 1)[0]
        if not path.endswith(b"/"):
            base = base.copy_with(raw_path=path + b"/")

        try:
            joined = base.join(segment)
        except httpx.InvalidURL as e:
            raise UrlParseError(
                f"Cannot join {segment!r} onto {base}: {e}",
                url=f"{base}{segment}",
            ) from e
        return Endpoint(joined, self._transport)

    def get(self) -> PendingRequest:
        return PendingRequest(self, "GET")

    def post(self) -> PendingRequest:
        return PendingRequest(self, "POST")

    def put(self) -> PendingRequest:
        return PendingRequest(self, "PUT")

    def delete(self) -> PendingRequest:
        return PendingRequest(self, "DELETE")

    def head(self) -> PendingRequest:
        return PendingRequest(self, "HEAD")

    def __repr__(self) -> str:
        return f"Endpoint({str(self._url)!r})"
