"""
Shared fixtures: a temporary data directory and an isolated registry.
"""

import tempfile

import pytest
import pytest_asyncio

from backend.ledger_server.ledger import CategoryLedger, TransactionLedger
from backend.ledger_server.store import ConnectionRegistry


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest_asyncio.fixture
async def registry(data_dir):
    """Registry over the temporary directory, closed after the test."""
    registry = ConnectionRegistry(data_dir, wal_mode=False)
    yield registry
    await registry.close_all()


@pytest.fixture
def categories(registry):
    return CategoryLedger(registry)


@pytest.fixture
def transactions(registry):
    return TransactionLedger(registry)
