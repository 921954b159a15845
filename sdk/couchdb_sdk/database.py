"""
Database handle for the CouchDB SDK.

A Database binds one Endpoint (`<base>/<name>/`) and hands out request
builders scoped to it. It holds no state of its own.

Example:
    >>> db = client.database("items")
    >>> db.create()
    >>> created = db.insert({"field1": 5, "field2": "x"}).send()
    >>> db.get(created.id).send()

Invariants:
    - Creating a Database performs no I/O
    - create() succeeds whether or not the database already existed
    - exists() answers only True or False; other statuses raise
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, Generic, overload

import httpx

from ._transport import AsyncTransport, Endpoint, SyncTransport, TransportT, quote_document_id
from .document import GetResponse
from .errors import raise_for_status
from .replication import ReplicateRequest, ReplicationDescriptor
from .requests import DeleteRequest, GetRequest, InsertRequest, UpdateRequest

logger = logging.getLogger(__name__)

CREATE_SUCCESS = (200, 201, 202)
# 412 Precondition Failed: the database already exists
CREATE_EXISTS = 412


class Database(Generic[TransportT]):
    """Interface to one database on a CouchDB server."""

    def __init__(self, endpoint: Endpoint[TransportT], name: str) -> None:
        """Initialize a database handle.

        Args:
            endpoint: Endpoint of the database root, with a trailing slash
            name: Database name
        """
        self._endpoint = endpoint
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def endpoint(self) -> Endpoint[TransportT]:
        return self._endpoint

    @overload
    def create(self: Database[SyncTransport]) -> None: ...

    @overload
    def create(self: Database[AsyncTransport]) -> Awaitable[None]: ...

    def create(self) -> Any:
        """Create the database if it does not exist.

        Returns:
            None, or an awaitable resolving to None under an async client

        Raises:
            UnexpectedStatusError: Server refused for another reason (e.g. 401)
            TransportError: The round trip failed
        """
        return self._endpoint.put().send(self._handle_create)

    def _handle_create(self, response: httpx.Response) -> None:
        if response.status_code == CREATE_EXISTS:
            logger.debug(f"Database '{self._name}' already exists")
            return
        raise_for_status(response, expected=CREATE_SUCCESS, resource_id=self._name)
        logger.info(f"Created database '{self._name}'")

    @overload
    def exists(self: Database[SyncTransport]) -> bool: ...

    @overload
    def exists(self: Database[AsyncTransport]) -> Awaitable[bool]: ...

    def exists(self) -> Any:
        """Check whether the database exists.

        Returns:
            bool, or an awaitable resolving to it under an async client

        Raises:
            UnexpectedStatusError: Any status other than 200 or 404
            TransportError: The round trip failed
        """
        return self._endpoint.head().send(self._handle_exists)

    def _handle_exists(self, response: httpx.Response) -> bool:
        if response.status_code == 404:
            return False
        raise_for_status(response, expected=(200,), resource_id=self._name)
        return True

    def _document(self, doc_id: str) -> Endpoint[TransportT]:
        return self._endpoint.join(quote_document_id(doc_id))

    def get(self, doc_id: str) -> GetRequest[TransportT]:
        """Build a request fetching a document."""
        return GetRequest(self._document(doc_id), doc_id)

    def insert(self, document: Any, doc_id: str | None = None) -> InsertRequest[TransportT]:
        """Build a request storing a new document.

        Args:
            document: Anything that serializes to a JSON object
            doc_id: Optional id; CouchDB assigns one if omitted
        """
        return InsertRequest(self._endpoint, document, doc_id)

    def update(self, document: Any, doc_id: str, rev: str) -> UpdateRequest[TransportT]:
        """Build a request replacing a document.

        You'll need the id and the current revision (from a get, insert or
        previous update). A partial document replaces the whole body.
        """
        return UpdateRequest(self._document(doc_id), document, doc_id, rev)

    def update_document(self, current: GetResponse[Any], document: Any) -> UpdateRequest[TransportT]:
        """Build an update from a previously fetched envelope's id and revision."""
        return self.update(document, current.id, current.rev)

    def delete(self, doc_id: str, rev: str) -> DeleteRequest[TransportT]:
        """Build a request deleting a document at its current revision."""
        return DeleteRequest(self._document(doc_id), doc_id, rev)

    def replicate_to(self, target: str) -> ReplicateRequest:
        """Build a replication from this database to `target`. Not implemented."""
        return ReplicateRequest(self._server(), ReplicationDescriptor(source=self._name, target=target))

    def replicate_from(self, source: str) -> ReplicateRequest:
        """Build a replication from `source` into this database. Not implemented."""
        return ReplicateRequest(self._server(), ReplicationDescriptor(source=source, target=self._name))

    def _server(self) -> Endpoint[TransportT]:
        return self._endpoint.join("../")

    def __repr__(self) -> str:
        return f"Database({self._name!r}, {str(self._endpoint.url)!r})"
