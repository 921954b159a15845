"""
CouchDB Python SDK - Typed client library for the CouchDB HTTP API.

This SDK provides a typed interface to CouchDB documents:
- Client / AsyncClient for connecting to the server
- Database handles with create/exists
- Request builders for get, insert, update and delete
- GetResponse envelopes pairing a typed payload with its metadata

Example:
    >>> from pydantic import BaseModel
    >>> from couchdb_sdk import Client, ConflictError
    >>>
    >>> class Task(BaseModel):
    ...     title: str
    ...     done: bool = False
    >>>
    >>> with Client("http://localhost:5984") as client:
    ...     db = client.database("tasks")
    ...     db.create()
    ...     created = db.insert(Task(title="My Task")).send()
    ...     doc = db.get(created.id).send(Task)
    ...     db.update(Task(title="My Task", done=True), doc.id, doc.rev).send()

Invariants:
    - Nothing touches the network until send(), create() or exists()
    - Updates and deletes require the current revision
    - Every server-reported failure is a typed CouchDbError

Version: 0.1.0
"""

__version__ = "0.1.0"

from ._transport import AsyncTransport, SyncTransport
from .client import AsyncClient, Client
from .config import Settings
from .database import Database
from .document import (
    DeleteResponse,
    DocumentMeta,
    GetResponse,
    InsertResponse,
    RevisionInfo,
    Revisions,
    UpdateResponse,
    WriteResponse,
)
from .errors import (
    ConflictError,
    CouchDbError,
    DecodeError,
    HttpStatusError,
    NotFoundError,
    TransportError,
    UnexpectedStatusError,
    UrlParseError,
    ValidationError,
)
from .replication import ReplicateRequest, ReplicationDescriptor
from .requests import (
    DeleteRequest,
    GetQuery,
    GetRequest,
    InsertRequest,
    OpenRevsRequest,
    UpdateRequest,
)

__all__ = [
    # Version
    "__version__",
    # Clients
    "Client",
    "AsyncClient",
    "Settings",
    "Database",
    # Execution strategies, for annotating Database[SyncTransport] and friends
    "SyncTransport",
    "AsyncTransport",
    # Requests
    "GetRequest",
    "OpenRevsRequest",
    "GetQuery",
    "InsertRequest",
    "UpdateRequest",
    "DeleteRequest",
    "ReplicateRequest",
    "ReplicationDescriptor",
    # Documents
    "GetResponse",
    "DocumentMeta",
    "RevisionInfo",
    "Revisions",
    "WriteResponse",
    "InsertResponse",
    "UpdateResponse",
    "DeleteResponse",
    # Errors
    "CouchDbError",
    "TransportError",
    "UrlParseError",
    "DecodeError",
    "ValidationError",
    "HttpStatusError",
    "NotFoundError",
    "ConflictError",
    "UnexpectedStatusError",
]
