"""
Integration test fixtures for the CouchDB SDK.

FakeCouchDB emulates the slice of the CouchDB HTTP API the SDK speaks:
database create/exists and document get/insert/update/delete with revision
checks. It is plugged into real httpx clients through httpx.MockTransport,
so the SDK runs its full request/response path without a server.
"""

import json
import threading
import uuid
from dataclasses import dataclass, field
from urllib.parse import unquote

import httpx
import pytest

from sdk.couchdb_sdk import AsyncClient, Client

BASE_URL = "http://couch.test:5984"


@dataclass
class StoredDoc:
    """One document with its full revision history."""

    revs: list[str] = field(default_factory=list)
    bodies: dict[str, dict] = field(default_factory=dict)
    deleted: set[str] = field(default_factory=set)

    @property
    def rev(self) -> str:
        return self.revs[-1]

    @property
    def is_deleted(self) -> bool:
        return self.rev in self.deleted

    def next_rev(self) -> str:
        return f"{len(self.revs) + 1}-{uuid.uuid4().hex}"


def _json(status: int, body) -> httpx.Response:
    return httpx.Response(status, json=body)


def _error(status: int, error: str, reason: str) -> httpx.Response:
    return _json(status, {"error": error, "reason": reason})


class FakeCouchDB:
    """In-memory CouchDB speaking HTTP through httpx.MockTransport."""

    def __init__(self) -> None:
        self.databases: dict[str, dict[str, StoredDoc]] = {}
        self.requests: list[httpx.Request] = []
        self.force_status: int | None = None
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
            if self.force_status is not None:
                return _error(self.force_status, "forced", "forced by test")
            return self._route(request)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def _route(self, request: httpx.Request) -> httpx.Response:
        raw = request.url.raw_path.decode("ascii").split("?", 1)[0]
        segments = [unquote(s) for s in raw.strip("/").split("/") if s]
        if not segments:
            return _json(200, {"couchdb": "Welcome"})

        db_name = segments[0]
        if len(segments) == 1:
            return self._database(request, db_name)

        doc_id = "/".join(segments[1:])
        db = self.databases.get(db_name)
        if db is None:
            return _error(404, "not_found", "Database does not exist.")
        return self._document(request, db, doc_id)

    def _database(self, request: httpx.Request, name: str) -> httpx.Response:
        if request.method == "PUT":
            if name in self.databases:
                return _error(412, "file_exists", "The database could not be created, the file already exists.")
            self.databases[name] = {}
            return _json(201, {"ok": True})
        if request.method == "HEAD":
            return httpx.Response(200 if name in self.databases else 404)
        if request.method == "POST":
            db = self.databases.get(name)
            if db is None:
                return _error(404, "not_found", "Database does not exist.")
            return self._insert(request, db)
        return _error(405, "method_not_allowed", request.method)

    def _insert(self, request: httpx.Request, db: dict[str, StoredDoc]) -> httpx.Response:
        body = json.loads(request.content)
        doc_id = body.pop("_id", None) or uuid.uuid4().hex
        stored = db.get(doc_id)
        if stored is not None and not stored.is_deleted:
            return _error(409, "conflict", "Document update conflict.")
        stored = stored or StoredDoc()
        rev = self._write(db, doc_id, stored, body)
        if request.url.params.get("batch") == "ok":
            return _json(202, {"ok": True, "id": doc_id})
        return _json(201, {"ok": True, "id": doc_id, "rev": rev})

    def _write(self, db, doc_id: str, stored: StoredDoc, body: dict, deleted: bool = False) -> str:
        rev = stored.next_rev()
        stored.revs.append(rev)
        stored.bodies[rev] = {k: v for k, v in body.items() if not k.startswith("_")}
        if deleted:
            stored.deleted.add(rev)
        db[doc_id] = stored
        return rev

    def _document(self, request: httpx.Request, db: dict[str, StoredDoc], doc_id: str) -> httpx.Response:
        stored = db.get(doc_id)
        params = request.url.params

        if request.method == "GET":
            return self._get(stored, doc_id, params)

        if request.method == "PUT":
            body = json.loads(request.content)
            rev = body.pop("_rev", None)
            if stored is None:
                if rev is not None:
                    return _error(404, "not_found", "missing")
                stored = StoredDoc()
            elif rev != stored.rev:
                return _error(409, "conflict", "Document update conflict.")
            new_rev = self._write(db, doc_id, stored, body)
            return _json(201, {"ok": True, "id": doc_id, "rev": new_rev})

        if request.method == "DELETE":
            if stored is None or stored.is_deleted:
                return _error(404, "not_found", "missing" if stored is None else "deleted")
            if params.get("rev") != stored.rev:
                return _error(409, "conflict", "Document update conflict.")
            new_rev = self._write(db, doc_id, stored, {}, deleted=True)
            status = 202 if params.get("batch") == "ok" else 200
            return _json(status, {"ok": True, "id": doc_id, "rev": new_rev})

        return _error(405, "method_not_allowed", request.method)

    def _render(self, stored: StoredDoc, doc_id: str, rev: str, params) -> dict:
        if rev in stored.deleted:
            doc = {"_id": doc_id, "_rev": rev, "_deleted": True}
        else:
            doc = {"_id": doc_id, "_rev": rev, **stored.bodies[rev]}

        meta = params.get("meta") == "true"
        if meta or params.get("revs_info") == "true":
            doc["_revs_info"] = [
                {"rev": r, "status": "deleted" if r in stored.deleted else "available"}
                for r in reversed(stored.revs)
            ]
        if params.get("revs") == "true":
            doc["_revisions"] = {
                "start": len(stored.revs),
                "ids": [r.split("-", 1)[1] for r in reversed(stored.revs)],
            }
        if params.get("local_seq") == "true":
            doc["_local_seq"] = len(stored.revs)
        return doc

    def _get(self, stored: StoredDoc | None, doc_id: str, params) -> httpx.Response:
        if stored is None:
            return _error(404, "not_found", "missing")

        open_revs = params.get("open_revs")
        if open_revs is not None:
            wanted = list(reversed(stored.revs[-1:])) if open_revs == "all" else json.loads(open_revs)
            entries = []
            for rev in wanted:
                if rev in stored.bodies:
                    entries.append({"ok": self._render(stored, doc_id, rev, params)})
                else:
                    entries.append({"missing": rev})
            return _json(200, entries)

        rev = params.get("rev")
        if rev is None:
            if stored.is_deleted:
                return _error(404, "not_found", "deleted")
            rev = stored.rev
        elif rev not in stored.bodies:
            return _error(404, "not_found", "missing")
        return _json(200, self._render(stored, doc_id, rev, params))


@pytest.fixture
def couch() -> FakeCouchDB:
    """A fresh, empty fake server."""
    return FakeCouchDB()


@pytest.fixture
def client(couch: FakeCouchDB):
    """Blocking client wired to the fake server."""
    http_client = httpx.Client(transport=httpx.MockTransport(couch))
    with Client(BASE_URL, http_client=http_client) as c:
        yield c
    http_client.close()


@pytest.fixture
def async_client_factory(couch: FakeCouchDB):
    """Build async clients wired to the fake server; use with `async with`."""

    def make() -> AsyncClient:
        return AsyncClient(
            BASE_URL,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(couch)),
        )

    return make
