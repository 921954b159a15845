"""
Document envelope model for the CouchDB SDK.

CouchDB returns a document as one flat JSON object mixing the caller's
fields with server-managed metadata (`_id`, `_rev`, `_deleted`, ...). This
module splits that object back into its two halves:
- DocumentMeta: the `_`-prefixed metadata
- GetResponse: a payload of the caller's declared type plus its metadata
- WriteResponse: the `{id, ok, rev}` answer to insert/update/delete

Payloads are validated with pydantic, so the declared type can be a pydantic
model, a dataclass, a TypedDict or any other type pydantic understands. When
no type is declared the payload stays a plain dict.

Invariants:
    - Every key starting with '_' is metadata, everything else is payload
    - Envelopes are immutable once decoded
    - A missing payload is None, never an empty value
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from .errors import DecodeError, ValidationError

T = TypeVar("T")

METADATA_PREFIX = "_"


class RevisionInfo(BaseModel):
    """One entry of `_revs_info`."""

    model_config = ConfigDict(frozen=True)

    rev: str
    status: str


class Revisions(BaseModel):
    """The `_revisions` history: `start` is the generation of `ids[0]`."""

    model_config = ConfigDict(frozen=True)

    start: int
    ids: list[str]


class DocumentMeta(BaseModel):
    """Server-managed metadata of a document.

    Attributes:
        id: Document id (`_id`)
        rev: Current revision token (`_rev`)
        deleted: True for a deletion tombstone
        attachments: Attachment stubs or bodies, keyed by name
        conflicts: Conflicting leaf revisions
        deleted_conflicts: Deleted conflicting revisions
        local_seq: Local update sequence of this revision
        revs_info: Known revisions with their availability
        revisions: Revision history
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    rev: str = Field(alias="_rev")
    deleted: bool | None = Field(default=None, alias="_deleted")
    attachments: dict[str, Any] | None = Field(default=None, alias="_attachments")
    conflicts: list[str] | None = Field(default=None, alias="_conflicts")
    deleted_conflicts: list[str] | None = Field(default=None, alias="_deleted_conflicts")
    local_seq: int | str | None = Field(default=None, alias="_local_seq")
    revs_info: list[RevisionInfo] | None = Field(default=None, alias="_revs_info")
    revisions: Revisions | None = Field(default=None, alias="_revisions")


@dataclass(frozen=True)
class GetResponse(Generic[T]):
    """A fetched document.

    Attributes:
        payload: The caller's fields decoded as the declared type, or None
            for a deletion tombstone
        metadata: The document's metadata
    """

    payload: T | None
    metadata: DocumentMeta

    @property
    def id(self) -> str:
        return self.metadata.id

    @property
    def rev(self) -> str:
        return self.metadata.rev

    @property
    def deleted(self) -> bool:
        return bool(self.metadata.deleted)

    def into_inner(self) -> T | None:
        """Drop the metadata and return the payload."""
        return self.payload


class WriteResponse(BaseModel):
    """Server answer to insert, update and delete.

    Attributes:
        id: Document id
        ok: Operation status
        rev: New revision token; absent when the write was accepted in batch mode
    """

    model_config = ConfigDict(frozen=True)

    id: str
    ok: bool = True
    rev: str | None = None


InsertResponse = WriteResponse
UpdateResponse = WriteResponse
DeleteResponse = WriteResponse


def _messages(exc: PydanticValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]


def read_json(response: httpx.Response) -> Any:
    """Parse a response body as JSON.

    Raises:
        DecodeError: If the body is not valid JSON
    """
    try:
        return response.json()
    except ValueError as e:
        raise DecodeError(
            f"Response from {response.request.url} is not valid JSON: {e}",
            status_code=response.status_code,
        ) from e


def decode_envelope(
    body: Any,
    payload_type: Any = None,
    status_code: int | None = None,
) -> GetResponse[Any]:
    """Split a document body into metadata and a typed payload.

    Args:
        body: Decoded JSON object as returned by the server
        payload_type: Type to validate the payload against; None keeps a dict
        status_code: Response status, for error context

    Returns:
        GetResponse envelope

    Raises:
        DecodeError: If the body is not an object or does not match the types
    """
    if not isinstance(body, dict):
        raise DecodeError(
            f"Expected a JSON object for a document, got {type(body).__name__}",
            status_code=status_code,
        )

    meta_fields = {k: v for k, v in body.items() if k.startswith(METADATA_PREFIX)}
    payload_fields = {k: v for k, v in body.items() if not k.startswith(METADATA_PREFIX)}

    try:
        metadata = DocumentMeta.model_validate(meta_fields)
    except PydanticValidationError as e:
        raise DecodeError(
            "Document metadata does not match the expected shape",
            status_code=status_code,
            errors=_messages(e),
        ) from e

    if not payload_fields and metadata.deleted:
        return GetResponse(payload=None, metadata=metadata)

    if payload_type is None:
        return GetResponse(payload=payload_fields, metadata=metadata)

    try:
        payload = TypeAdapter(payload_type).validate_python(payload_fields)
    except PydanticValidationError as e:
        raise DecodeError(
            f"Document '{metadata.id}' does not match {getattr(payload_type, '__name__', payload_type)}",
            status_code=status_code,
            errors=_messages(e),
        ) from e

    return GetResponse(payload=payload, metadata=metadata)


def decode_write(body: Any, status_code: int | None = None) -> WriteResponse:
    """Decode an `{id, ok, rev}` write answer.

    Raises:
        DecodeError: If the body does not have that shape
    """
    try:
        return WriteResponse.model_validate(body)
    except PydanticValidationError as e:
        raise DecodeError(
            "Write response does not match {id, ok, rev}",
            status_code=status_code,
            errors=_messages(e),
        ) from e


def encode_document(document: Any) -> dict[str, Any]:
    """Encode a caller document as a JSON object.

    Accepts dicts, pydantic models, dataclasses and anything else pydantic
    can serialize.

    Raises:
        ValidationError: If the document cannot be encoded or is not an object
    """
    try:
        encoded = to_jsonable_python(document)
    except PydanticSerializationError as e:
        raise ValidationError(f"Document cannot be encoded as JSON: {e}", field_name="document") from e

    if not isinstance(encoded, dict):
        raise ValidationError(
            f"Document must encode to a JSON object, got {type(encoded).__name__}",
            field_name="document",
        )
    return encoded
