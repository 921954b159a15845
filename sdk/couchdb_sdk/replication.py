"""
Replication descriptor for the CouchDB SDK.

Replication is an extension point: the descriptor and request exist so the
interface is complete, but sending a replication raises NotImplementedError.

Example:
    >>> request = db.replicate_to("http://backup:5984/items")
    >>> request.descriptor.to_payload()
    {'source': 'items', 'target': 'http://backup:5984/items'}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NoReturn

from ._transport import Endpoint

REPLICATE_PATH = "_replicate"


@dataclass
class ReplicationDescriptor:
    """Body of a `POST /_replicate`.

    Attributes:
        source: Source database name or URL
        target: Target database name or URL
        cancel: Cancel a running replication with the same parameters
        continuous: Keep replicating new changes
        create_target: Create the target database if missing
        doc_ids: Only replicate these documents
        filter: Filter function (`ddoc/name`)
        proxy: Proxy URL to replicate through
    """

    source: str
    target: str
    cancel: bool = False
    continuous: bool = False
    create_target: bool = False
    doc_ids: list[str] = field(default_factory=list)
    filter: str | None = None
    proxy: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize, omitting false flags, empty lists and unset options."""
        payload: dict[str, Any] = {"source": self.source, "target": self.target}
        for name in ("cancel", "continuous", "create_target"):
            if getattr(self, name):
                payload[name] = True
        if self.doc_ids:
            payload["doc_ids"] = list(self.doc_ids)
        if self.filter is not None:
            payload["filter"] = self.filter
        if self.proxy is not None:
            payload["proxy"] = self.proxy
        return payload


class ReplicateRequest:
    """A replication between two databases. Not implemented."""

    def __init__(self, endpoint: Endpoint[Any], descriptor: ReplicationDescriptor) -> None:
        """Initialize a replicate request.

        Args:
            endpoint: Endpoint of the server root
            descriptor: What to replicate
        """
        self._endpoint = endpoint.join(REPLICATE_PATH)
        self._descriptor = descriptor

    @property
    def descriptor(self) -> ReplicationDescriptor:
        return self._descriptor

    def continuous(self, enabled: bool = True) -> ReplicateRequest:
        self._descriptor.continuous = enabled
        return self

    def create_target(self, enabled: bool = True) -> ReplicateRequest:
        self._descriptor.create_target = enabled
        return self

    def doc_ids(self, doc_ids: list[str]) -> ReplicateRequest:
        self._descriptor.doc_ids = list(doc_ids)
        return self

    def send(self) -> NoReturn:
        raise NotImplementedError(
            f"Replication to {self._endpoint.url} is not implemented "
            f"({self._descriptor.source} -> {self._descriptor.target})"
        )
