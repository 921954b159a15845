"""
Document request builders for the CouchDB SDK.

This module provides one builder per document operation:
- GetRequest: fetch a document, with CouchDB's query options
- OpenRevsRequest: fetch several leaf revisions of a document
- InsertRequest: create a document (POST to the database)
- UpdateRequest: replace a document at a known revision (PUT)
- DeleteRequest: delete a document at a known revision (DELETE)

Builders are lazy value objects created by Database. Configuration methods
return self for chaining; nothing touches the network until send(). Under a
blocking client send() returns the result, under an async client it returns
an awaitable. The builders are identical in both modes; they are generic
over the transport so type checkers see which of the two a call returns.

Example:
    >>> response = db.get("doc123").conflicts().revs_info().send(Task)
    >>> db.update({"title": "Done"}, response.id, response.rev).send()

Invariants:
    - Unset or false query options are never sent
    - Update and delete always carry a revision (optimistic concurrency)
    - Insert splices `_id` only when the caller supplied one
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, fields, replace
from typing import Any, Generic, Literal, TypeVar, overload

import httpx

from ._transport import AsyncTransport, Endpoint, PendingRequest, SyncTransport, TransportT
from .document import (
    GetResponse,
    WriteResponse,
    decode_envelope,
    decode_write,
    encode_document,
    read_json,
)
from .errors import DecodeError, ValidationError, raise_for_status

logger = logging.getLogger(__name__)

T = TypeVar("T")

WRITE_SUCCESS = (200, 201, 202)
BATCH_OK = "ok"


def _require(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field_name} must be a non-empty string", field_name=field_name)
    return value


@dataclass
class GetQuery:
    """Query options of a document GET.

    Attributes:
        attachments: Include attachment bodies
        att_encoding_info: Include encoding info for compressed attachments
        atts_since: Only include attachments newer than these revisions
        conflicts: Include conflicting revisions
        deleted_conflicts: Include deleted conflicting revisions
        latest: Return the latest leaf for the requested revisions
        local_seq: Include the local update sequence
        meta: Shorthand for conflicts, deleted_conflicts and revs_info
        open_revs: Fetch these leaf revisions, or "all" of them
        rev: Fetch this specific revision
        revs: Include the revision history
        revs_info: Include revision availability
    """

    attachments: bool = False
    att_encoding_info: bool = False
    atts_since: list[str] | None = None
    conflicts: bool = False
    deleted_conflicts: bool = False
    latest: bool = False
    local_seq: bool = False
    meta: bool = False
    open_revs: list[str] | Literal["all"] | None = None
    rev: str | None = None
    revs: bool = False
    revs_info: bool = False

    def to_params(self) -> dict[str, str]:
        """Serialize to query parameters, omitting everything at its default."""
        params: dict[str, str] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value is False:
                continue
            if value is True:
                params[f.name] = "true"
            elif isinstance(value, str):
                params[f.name] = value
            elif value:
                params[f.name] = json.dumps(list(value))
        return params


_Q = TypeVar("_Q", bound="_DocumentQuery[Any]")


class _DocumentQuery(Generic[TransportT]):
    """Query options shared by single and multi-revision gets."""

    def __init__(
        self,
        endpoint: Endpoint[TransportT],
        doc_id: str,
        query: GetQuery | None = None,
    ) -> None:
        """Initialize a get request.

        Args:
            endpoint: Endpoint already joined to `<database>/<document id>`
            doc_id: Document id, for error context
            query: Options carried over from another builder
        """
        self._endpoint = endpoint
        self._doc_id = doc_id
        self._query = query or GetQuery()

    @property
    def doc_id(self) -> str:
        return self._doc_id

    @property
    def query(self) -> GetQuery:
        return self._query

    def attachments(self: _Q, enabled: bool = True) -> _Q:
        self._query.attachments = enabled
        return self

    def att_encoding_info(self: _Q, enabled: bool = True) -> _Q:
        self._query.att_encoding_info = enabled
        return self

    def atts_since(self: _Q, revs: Sequence[str]) -> _Q:
        self._query.atts_since = list(revs)
        return self

    def conflicts(self: _Q, enabled: bool = True) -> _Q:
        self._query.conflicts = enabled
        return self

    def deleted_conflicts(self: _Q, enabled: bool = True) -> _Q:
        self._query.deleted_conflicts = enabled
        return self

    def latest(self: _Q, enabled: bool = True) -> _Q:
        self._query.latest = enabled
        return self

    def local_seq(self: _Q, enabled: bool = True) -> _Q:
        self._query.local_seq = enabled
        return self

    def meta(self: _Q, enabled: bool = True) -> _Q:
        self._query.meta = enabled
        return self

    def revs(self: _Q, enabled: bool = True) -> _Q:
        self._query.revs = enabled
        return self

    def revs_info(self: _Q, enabled: bool = True) -> _Q:
        self._query.revs_info = enabled
        return self


class GetRequest(_DocumentQuery[TransportT]):
    """Fetch one document by id."""

    def rev(self, rev: str) -> GetRequest[TransportT]:
        self._query.rev = _require(rev, "rev")
        return self

    def open_revs(self, revs: Sequence[str] | Literal["all"]) -> OpenRevsRequest[TransportT]:
        """Fetch several leaf revisions at once.

        Args:
            revs: Revision tokens, or "all" for every leaf

        Returns:
            An OpenRevsRequest carrying the options set so far; its send()
            returns a list of envelopes

        Raises:
            ValidationError: If revs is a string other than "all"
        """
        if isinstance(revs, str):
            if revs != "all":
                raise ValidationError(
                    f"open_revs takes a list of revisions or 'all', got {revs!r}",
                    field_name="open_revs",
                )
            selected: list[str] | Literal["all"] = "all"
        else:
            selected = [_require(rev, "open_revs") for rev in revs]
        query = replace(self._query, open_revs=selected)
        return OpenRevsRequest(self._endpoint, self._doc_id, query)

    @overload
    def send(self: GetRequest[SyncTransport], payload_type: type[T]) -> GetResponse[T]: ...

    @overload
    def send(
        self: GetRequest[SyncTransport], payload_type: None = None
    ) -> GetResponse[dict[str, Any]]: ...

    @overload
    def send(
        self: GetRequest[AsyncTransport], payload_type: type[T]
    ) -> Awaitable[GetResponse[T]]: ...

    @overload
    def send(
        self: GetRequest[AsyncTransport], payload_type: None = None
    ) -> Awaitable[GetResponse[dict[str, Any]]]: ...

    def send(self, payload_type: Any = None) -> Any:
        """Send the GET.

        Args:
            payload_type: Type to decode the payload as; None keeps a dict

        Returns:
            GetResponse, or an awaitable resolving to it under an async client

        Raises:
            NotFoundError: No document or revision at this id
            DecodeError: Body does not match the envelope or payload type
            TransportError: The round trip failed
        """
        request = self._endpoint.get().params(self._query.to_params())
        return request.send(lambda response: self._handle(response, payload_type))

    def _handle(self, response: httpx.Response, payload_type: Any) -> GetResponse[Any]:
        raise_for_status(response, expected=(200,), resource_id=self._doc_id)
        return decode_envelope(read_json(response), payload_type, response.status_code)


class OpenRevsRequest(_DocumentQuery[TransportT]):
    """Fetch several leaf revisions of one document.

    Revisions the server reports as missing are left out of the result.
    """

    @overload
    def send(
        self: OpenRevsRequest[SyncTransport], payload_type: type[T]
    ) -> list[GetResponse[T]]: ...

    @overload
    def send(
        self: OpenRevsRequest[SyncTransport], payload_type: None = None
    ) -> list[GetResponse[dict[str, Any]]]: ...

    @overload
    def send(
        self: OpenRevsRequest[AsyncTransport], payload_type: type[T]
    ) -> Awaitable[list[GetResponse[T]]]: ...

    @overload
    def send(
        self: OpenRevsRequest[AsyncTransport], payload_type: None = None
    ) -> Awaitable[list[GetResponse[dict[str, Any]]]]: ...

    def send(self, payload_type: Any = None) -> Any:
        """Send the GET with `open_revs`.

        The JSON form of the answer is requested explicitly; CouchDB would
        otherwise reply multipart.

        Returns:
            A list of GetResponse, or an awaitable resolving to it

        Raises:
            NotFoundError: No document at this id
            DecodeError: Body is not a list of {"ok"} / {"missing"} entries
            TransportError: The round trip failed
        """
        request = (
            self._endpoint.get()
            .params(self._query.to_params())
            .header("Accept", "application/json")
        )
        return request.send(lambda response: self._handle(response, payload_type))

    def _handle(self, response: httpx.Response, payload_type: Any) -> list[GetResponse[Any]]:
        raise_for_status(response, expected=(200,), resource_id=self._doc_id)
        body = read_json(response)
        if not isinstance(body, list):
            raise DecodeError(
                f"Expected a list of revisions for '{self._doc_id}'",
                status_code=response.status_code,
            )

        envelopes = []
        for entry in body:
            if isinstance(entry, dict) and "ok" in entry:
                envelopes.append(decode_envelope(entry["ok"], payload_type, response.status_code))
            elif isinstance(entry, dict) and "missing" in entry:
                logger.debug(f"Revision {entry['missing']} of '{self._doc_id}' is missing")
            else:
                raise DecodeError(
                    f"Unexpected open_revs entry for '{self._doc_id}'",
                    status_code=response.status_code,
                )
        return envelopes


def _handle_write(response: httpx.Response, doc_id: str | None) -> WriteResponse:
    raise_for_status(response, expected=WRITE_SUCCESS, resource_id=doc_id)
    return decode_write(read_json(response), response.status_code)


class _WriteRequest(Generic[TransportT]):
    """Typed send() shared by the write builders."""

    _doc_id: str | None

    @overload
    def send(self: _WriteRequest[SyncTransport]) -> WriteResponse: ...

    @overload
    def send(self: _WriteRequest[AsyncTransport]) -> Awaitable[WriteResponse]: ...

    def send(self) -> Any:
        return self._request().send(lambda response: _handle_write(response, self._doc_id))

    def _request(self) -> PendingRequest:
        raise NotImplementedError


class InsertRequest(_WriteRequest[TransportT]):
    """Create a document.

    CouchDB assigns an id when none is given. Do not retry an id-less insert
    blindly: a lost response followed by a retry creates a second document.

    send() returns a WriteResponse, or an awaitable resolving to it, and
    raises ConflictError when a document with this id already exists.
    """

    def __init__(
        self,
        endpoint: Endpoint[TransportT],
        document: Any,
        doc_id: str | None = None,
    ) -> None:
        """Initialize an insert request.

        Args:
            endpoint: Endpoint of the database root
            document: Document to store (dict, pydantic model, dataclass, ...)
            doc_id: Optional id; the server assigns one if omitted

        Raises:
            ValidationError: If the document is not a JSON object or the id is empty
        """
        self._endpoint = endpoint
        self._doc_id = None if doc_id is None else _require(doc_id, "doc_id")
        self._payload = encode_document(document)
        self._batch = False

    @property
    def payload(self) -> dict[str, Any]:
        """Wire body: the document with `_id` spliced in when given."""
        if self._doc_id is None:
            return dict(self._payload)
        return {"_id": self._doc_id, **{k: v for k, v in self._payload.items() if k != "_id"}}

    def batch(self, enabled: bool = True) -> InsertRequest[TransportT]:
        """Use batch mode: the server acknowledges before the write is durable."""
        self._batch = enabled
        return self

    def _request(self) -> PendingRequest:
        request = self._endpoint.post().json(self.payload)
        if self._batch:
            request.params({"batch": BATCH_OK})
        return request


class UpdateRequest(_WriteRequest[TransportT]):
    """Replace a document at a known revision.

    The revision must be the document's current one, as returned by the last
    get, insert or update. A stale revision fails with ConflictError instead
    of overwriting someone else's change; a missing document fails with
    NotFoundError.
    """

    def __init__(
        self,
        endpoint: Endpoint[TransportT],
        document: Any,
        doc_id: str,
        rev: str,
    ) -> None:
        """Initialize an update request.

        Args:
            endpoint: Endpoint already joined to `<database>/<document id>`
            document: New document body
            doc_id: Document id
            rev: Current revision token

        Raises:
            ValidationError: If the document is not a JSON object or id/rev is empty
        """
        self._endpoint = endpoint
        self._doc_id = _require(doc_id, "doc_id")
        self._rev = _require(rev, "rev")
        self._payload = encode_document(document)

    @property
    def payload(self) -> dict[str, Any]:
        """Wire body: the document with `_rev` spliced in."""
        return {"_rev": self._rev, **{k: v for k, v in self._payload.items() if k != "_rev"}}

    def _request(self) -> PendingRequest:
        return self._endpoint.put().json(self.payload)


class DeleteRequest(_WriteRequest[TransportT]):
    """Delete a document at a known revision."""

    def __init__(self, endpoint: Endpoint[TransportT], doc_id: str, rev: str) -> None:
        self._endpoint = endpoint
        self._doc_id = _require(doc_id, "doc_id")
        self._rev = _require(rev, "rev")
        self._batch = False

    @property
    def params(self) -> dict[str, str]:
        params = {"rev": self._rev}
        if self._batch:
            params["batch"] = BATCH_OK
        return params

    def batch(self, enabled: bool = True) -> DeleteRequest[TransportT]:
        self._batch = enabled
        return self

    def _request(self) -> PendingRequest:
        return self._endpoint.delete().params(self.params)
