"""
CouchDB SDK Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (in-memory fake server over httpx.MockTransport)
- e2e/: End-to-end tests (real CouchDB server)
"""
