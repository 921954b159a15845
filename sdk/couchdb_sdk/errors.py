"""
Error types for the CouchDB SDK.

This module defines all exception types raised by the SDK:
- CouchDbError: Base exception
- TransportError: Connection, TLS or timeout failures
- UrlParseError: Malformed base URL or path segment
- DecodeError: Response body does not match the expected shape
- NotFoundError: Server answered 404
- ConflictError: Server answered 409 (id collision or stale revision)
- UnexpectedStatusError: Any status outside the documented set
- ValidationError: Caller input rejected before anything is sent

Invariants:
    - All errors inherit from CouchDbError
    - Server-reported conditions are raised as typed errors, never as crashes
    - Nothing in the SDK retries or swallows an error
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)


class CouchDbError(Exception):
    """Base exception for all CouchDB SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "COUCHDB_ERROR"
        self.details = details or {}


class TransportError(CouchDbError):
    """The HTTP round trip itself failed.

    Raised when:
    - Server is unreachable
    - TLS handshake fails
    - Connect, read or write times out
    """

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message, code="TRANSPORT_ERROR", details={"url": url})
        self.url = url


class UrlParseError(CouchDbError):
    """A base URL or joined path could not be parsed."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message, code="URL_PARSE_ERROR", details={"url": url})
        self.url = url


class DecodeError(CouchDbError):
    """Response body is not JSON or does not match the expected shape.

    Usually means the server and the declared payload type disagree.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="DECODE_ERROR",
            details={"status_code": status_code, "errors": errors or []},
        )
        self.status_code = status_code
        self.errors = errors or []


class ValidationError(CouchDbError):
    """Caller input was rejected locally.

    Raised when:
    - Document id or revision is empty
    - Document does not encode to a JSON object
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name},
        )
        self.field_name = field_name


class HttpStatusError(CouchDbError):
    """Base class for errors derived from a response status.

    Attributes:
        status_code: HTTP status returned by the server
        error: CouchDB error name from the body (e.g. "conflict")
        reason: CouchDB reason string from the body
        resource_id: Document id or database name the request targeted
    """

    default_code = "HTTP_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int,
        error: Optional[str] = None,
        reason: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=self.default_code,
            details={
                "status_code": status_code,
                "error": error,
                "reason": reason,
                "resource_id": resource_id,
            },
        )
        self.status_code = status_code
        self.error = error
        self.reason = reason
        self.resource_id = resource_id


class NotFoundError(HttpStatusError):
    """Resource not found.

    Raised when:
    - Document doesn't exist or was deleted
    - Requested revision doesn't exist
    - Database doesn't exist
    """

    default_code = "NOT_FOUND"


class ConflictError(HttpStatusError):
    """Write rejected by optimistic concurrency.

    Raised when:
    - Inserting an id that already exists
    - Updating or deleting with a revision that is no longer current

    Re-read the document, re-apply the change and retry with the fresh revision.
    """

    default_code = "CONFLICT"


class UnexpectedStatusError(HttpStatusError):
    """Server answered with a status outside the documented set."""

    default_code = "UNEXPECTED_STATUS"


def _error_body(response: httpx.Response) -> Tuple[Optional[str], Optional[str]]:
    """Extract CouchDB's {"error", "reason"} pair if the body carries one."""
    if not response.content:
        return None, None
    try:
        body = response.json()
    except ValueError:
        return None, response.text or None
    if not isinstance(body, dict):
        return None, None
    return body.get("error"), body.get("reason")


def raise_for_status(
    response: httpx.Response,
    expected: Collection[int],
    resource_id: Optional[str] = None,
) -> None:
    """Map a response status onto the SDK error taxonomy.

    Args:
        response: Response to inspect
        expected: Status codes the caller treats as success
        resource_id: Document id or database name, for error context

    Raises:
        NotFoundError: On 404 when 404 is not expected
        ConflictError: On 409 when 409 is not expected
        UnexpectedStatusError: On any other unexpected status
    """
    status = response.status_code
    if status in expected:
        return

    error, reason = _error_body(response)
    target = resource_id or str(response.request.url)
    detail = f": {reason}" if reason else ""

    if status == 404:
        raise NotFoundError(
            f"'{target}' not found{detail}",
            status_code=status,
            error=error,
            reason=reason,
            resource_id=resource_id,
        )
    if status == 409:
        raise ConflictError(
            f"Conflict on '{target}'{detail}",
            status_code=status,
            error=error,
            reason=reason,
            resource_id=resource_id,
        )

    logger.warning(f"Unexpected status {status} from {response.request.method} {response.request.url}")
    raise UnexpectedStatusError(
        f"Unexpected status {status} for '{target}'{detail}",
        status_code=status,
        error=error,
        reason=reason,
        resource_id=resource_id,
    )
