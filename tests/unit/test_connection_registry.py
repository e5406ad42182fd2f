"""
Unit tests for the shard connection registry.

Tests cover:
- Handle caching and eviction
- Lazy directory and file creation
- Bootstrap failures
- Year discovery
"""

import asyncio
import os
import sqlite3
import tempfile

import pytest

from backend.ledger_server.errors import BadRequestError, StorageError
from backend.ledger_server.store import ConnectionRegistry, resolve_shard


class TestConnectionRegistry:
    """Tests for ConnectionRegistry."""

    @pytest.mark.asyncio
    async def test_same_handle_for_same_shard(self, registry):
        """Repeated lookups return the cached handle."""
        first = await registry.get_connection("42", 2024)
        second = await registry.get_connection("42", "2024")

        assert first is second
        assert registry.open_shards() == [resolve_shard("42", 2024)]

    @pytest.mark.asyncio
    async def test_distinct_shards_distinct_handles(self, registry):
        """Each (tenant, year) gets its own handle and file."""
        a = await registry.get_connection("42", 2024)
        b = await registry.get_connection("42", 2025)
        c = await registry.get_connection("43", 2024)

        assert len({id(a), id(b), id(c)}) == 3
        assert registry.shard_path("42", 2025).is_file()
        assert registry.shard_path("43", 2024).is_file()

    @pytest.mark.asyncio
    async def test_new_handle_is_bootstrapped(self, registry):
        """Handles come back with defaults in place."""
        conn = await registry.get_connection("42", 2024)

        count = conn.execute("SELECT COUNT(*) FROM categories WHERE is_default = 1").fetchone()[0]
        assert count == 14

    @pytest.mark.asyncio
    async def test_creates_data_dir_lazily(self):
        """Missing data directory is created on first open."""
        with tempfile.TemporaryDirectory() as tmpdir:
            data_dir = os.path.join(tmpdir, "nested", "databases")
            registry = ConnectionRegistry(data_dir, wal_mode=False)
            assert not os.path.exists(data_dir)

            await registry.get_connection("42", 2024)

            assert os.path.isfile(os.path.join(data_dir, "tenant_42_2024.db"))
            await registry.close_all()

    @pytest.mark.asyncio
    async def test_close_connection(self, registry):
        """Closing evicts the handle; reopening gives a new one with data intact."""
        conn = await registry.get_connection("42", 2024)
        conn.execute("INSERT INTO categories (name, type) VALUES ('Gifts', 'income')")

        assert await registry.close_connection("42", 2024) is True
        assert resolve_shard("42", 2024) not in registry

        reopened = await registry.get_connection("42", 2024)
        assert reopened is not conn
        count = reopened.execute("SELECT COUNT(*) FROM categories").fetchone()[0]
        assert count == 15

    @pytest.mark.asyncio
    async def test_close_unknown_connection(self, registry):
        """Closing a shard that was never opened is a no-op."""
        assert await registry.close_connection("42", 1999) is False

    @pytest.mark.asyncio
    async def test_close_all(self, registry):
        """close_all closes every handle."""
        a = await registry.get_connection("42", 2024)
        b = await registry.get_connection("43", 2024)

        await registry.close_all()

        assert registry.open_shards() == []
        for conn in (a, b):
            with pytest.raises(sqlite3.ProgrammingError):
                conn.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_concurrent_opens_share_handle(self, registry):
        """Concurrent first access opens the shard once."""
        handles = await asyncio.gather(
            *(registry.get_connection("42", 2024) for _ in range(10))
        )

        assert all(h is handles[0] for h in handles)
        assert len(registry.open_shards()) == 1

    @pytest.mark.asyncio
    async def test_failed_bootstrap_not_cached(self, registry):
        """A shard whose bootstrap fails raises and is not cached."""
        path = registry.shard_path("42", 2024)
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path))
        conn.execute("CREATE TABLE categories (id INTEGER PRIMARY KEY)")
        conn.commit()
        conn.close()

        with pytest.raises(StorageError):
            await registry.get_connection("42", 2024)

        assert resolve_shard("42", 2024) not in registry

    @pytest.mark.asyncio
    async def test_lookalike_tenant_rejected_before_open(self, registry):
        """A tenant id that would collide with another tenant's file opens nothing."""
        await registry.get_connection("ab", 2024)

        with pytest.raises(BadRequestError):
            await registry.get_connection("a.b", 2024)

        assert registry.open_shards() == [resolve_shard("ab", 2024)]

    @pytest.mark.asyncio
    async def test_unopenable_path_raises_storage_error(self):
        """A data directory that is a file cannot hold shards."""
        with tempfile.NamedTemporaryFile() as blocker:
            registry = ConnectionRegistry(blocker.name, wal_mode=False)

            with pytest.raises(StorageError) as exc_info:
                await registry.get_connection("42", 2024)

            assert exc_info.value.operation == "open_connection"
            assert registry.open_shards() == []


class TestGetUserYears:
    """Tests for year discovery."""

    @pytest.mark.asyncio
    async def test_unsafe_tenant_rejected(self, registry):
        with pytest.raises(BadRequestError):
            await registry.get_user_years("../42")

    @pytest.mark.asyncio
    async def test_missing_data_dir(self):
        """No directory means no years."""
        registry = ConnectionRegistry("/nonexistent/ledger/data", wal_mode=False)
        assert await registry.get_user_years("42") == []

    @pytest.mark.asyncio
    async def test_years_descending(self, registry):
        """Years are listed newest first."""
        for year in (2022, 2024, 2023):
            await registry.get_connection("42", year)

        assert await registry.get_user_years("42") == [2024, 2023, 2022]

    @pytest.mark.asyncio
    async def test_only_matching_tenant(self, registry):
        """Other tenants' files and lookalike names are ignored."""
        await registry.get_connection("42", 2024)
        await registry.get_connection("421", 2023)
        await registry.get_connection("4", 2022)
        for stray in ("tenant_42_2021.db.bak", "tenant_42_20x1.db", "backup_tenant_42_2020.db_1"):
            (registry.data_dir / stray).write_bytes(b"")

        assert await registry.get_user_years("42") == [2024]

    @pytest.mark.asyncio
    async def test_does_not_open_shards(self, registry):
        """Listing years leaves the cache untouched."""
        await registry.get_connection("42", 2024)
        await registry.close_all()

        assert await registry.get_user_years("42") == [2024]
        assert registry.open_shards() == []
