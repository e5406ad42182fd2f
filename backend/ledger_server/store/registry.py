"""
Connection registry for tenant-year shards.

The registry is the single owner of every open shard handle. Handles are
opened lazily on first access, bootstrapped with the shard schema, cached
by shard key and closed explicitly or in bulk at shutdown.

Invariants:
    - At most one open handle per shard key
    - A handle is cached only after its schema bootstrap succeeded
    - Handles never leave the registry's ownership; callers borrow them
    - No retries: open and bootstrap failures surface immediately

How to change safely:
    - Keep the shard file naming stable (see ShardKey.db_filename)
    - Construct one registry per process and pass it around explicitly;
      tests build isolated registries over temporary directories
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
from pathlib import Path

from .connection import open_connection, storage_errors
from .schema import ensure_schema
from .shard import ShardKey, resolve_shard, validate_tenant_id

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Caches one SQLite connection per (tenant, year) shard.

    Thread safety:
        Intended for a single asyncio event loop. Opens are serialized by
        an asyncio.Lock; statement-level concurrency within a shard is left
        to SQLite's own locking.

    Example:
        >>> registry = ConnectionRegistry("/var/lib/ledger")
        >>> conn = await registry.get_connection("42", 2024)
        >>> ...
        >>> await registry.close_all()
    """

    def __init__(
        self,
        data_dir: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -16000,
    ) -> None:
        """Initialize the registry.

        Args:
            data_dir: Directory for shard database files
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.data_dir = Path(data_dir)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self._connections: dict[ShardKey, sqlite3.Connection] = {}
        self._lock = asyncio.Lock()

    def shard_path(self, tenant_id: str, year: int | str) -> Path:
        """Get the database file path for a shard."""
        return self.data_dir / resolve_shard(tenant_id, year).db_filename

    def __contains__(self, shard: object) -> bool:
        return shard in self._connections

    def open_shards(self) -> list[ShardKey]:
        """Shard keys with a cached handle."""
        return list(self._connections)

    async def get_connection(self, tenant_id: str, year: int | str) -> sqlite3.Connection:
        """Return the cached handle for a shard, opening it if needed.

        Opening creates the data directory and database file if absent and
        runs the schema bootstrap before the handle is cached.

        Args:
            tenant_id: Tenant identifier
            year: Calendar year

        Returns:
            Open SQLite connection owned by the registry

        Raises:
            BadRequestError: If the tenant id is not file-name safe
            StorageError: If the open or the schema bootstrap fails
        """
        shard = resolve_shard(tenant_id, year)

        conn = self._connections.get(shard)
        if conn is not None:
            return conn

        async with self._lock:
            # Another task may have opened it while we waited
            conn = self._connections.get(shard)
            if conn is not None:
                return conn

            db_path = self.data_dir / shard.db_filename
            with storage_errors(shard, "open_connection"):
                conn = open_connection(
                    db_path,
                    wal_mode=self.wal_mode,
                    busy_timeout_ms=self.busy_timeout_ms,
                    cache_size_pages=self.cache_size_pages,
                )

            try:
                ensure_schema(conn, shard)
            except Exception:
                conn.close()
                raise

            self._connections[shard] = conn
            logger.info(
                f"Opened shard database: {shard}",
                extra={"tenant_id": shard.tenant_id, "year": shard.year, "path": str(db_path)},
            )
            return conn

    async def close_connection(self, tenant_id: str, year: int | str) -> bool:
        """Close and evict one shard handle.

        Args:
            tenant_id: Tenant identifier
            year: Calendar year

        Returns:
            True if a handle was closed, False if none was cached
        """
        shard = resolve_shard(tenant_id, year)
        async with self._lock:
            conn = self._connections.pop(shard, None)
            if conn is None:
                return False
            self._close(shard, conn)
            return True

    async def close_all(self) -> None:
        """Close and evict every cached handle.

        Used at process shutdown. In-flight operations are not drained.
        """
        async with self._lock:
            connections, self._connections = self._connections, {}
            for shard, conn in connections.items():
                self._close(shard, conn)

        if connections:
            logger.info(f"Closed {len(connections)} shard database(s)")

    def _close(self, shard: ShardKey, conn: sqlite3.Connection) -> None:
        try:
            conn.close()
        except sqlite3.Error as e:
            logger.error(
                f"Error closing shard database {shard}: {e}",
                extra={"tenant_id": shard.tenant_id, "year": shard.year},
            )
        else:
            logger.debug(
                f"Closed shard database: {shard}",
                extra={"tenant_id": shard.tenant_id, "year": shard.year},
            )

    async def get_user_years(self, tenant_id: str) -> list[int]:
        """List years with a shard file on disk for a tenant.

        Args:
            tenant_id: Tenant identifier

        Returns:
            Years in descending order

        Raises:
            BadRequestError: If the tenant id is not file-name safe
        """
        tenant_id = validate_tenant_id(tenant_id)
        if not self.data_dir.is_dir():
            return []

        pattern = re.compile(rf"tenant_{re.escape(tenant_id)}_(\d{{4}})\.db")
        years = set()
        for path in self.data_dir.iterdir():
            match = pattern.fullmatch(path.name)
            if match and path.is_file():
                years.add(int(match.group(1)))

        return sorted(years, reverse=True)
