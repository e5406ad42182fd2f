"""
Ledger Server Test Suite.

This package contains:
- unit/: Unit tests (SQLite in temporary directories, no network)
- integration/: HTTP API tests through the ASGI app
"""
