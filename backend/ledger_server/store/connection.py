"""
SQLite connection helpers shared by the registry and the ledgers.

Invariants:
    - Connections run in autocommit mode; writes use explicit transactions
    - Every sqlite3.Error or OSError leaving this package is logged and re-raised
      as StorageError
    - A failed write transaction is always rolled back
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..errors import StorageError
from .shard import ShardKey

logger = logging.getLogger(__name__)


def open_connection(
    db_path: Path,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
    cache_size_pages: int = -16000,
) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Args:
        db_path: Database file path (created if missing)
        wal_mode: Enable SQLite WAL mode
        busy_timeout_ms: SQLite busy timeout
        cache_size_pages: SQLite cache size (negative = KB)

    Returns:
        Configured connection with ``sqlite3.Row`` rows
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(db_path),
        timeout=busy_timeout_ms / 1000.0,
        isolation_level=None,  # Autocommit by default, explicit transactions
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row

    try:
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        conn.execute(f"PRAGMA cache_size = {int(cache_size_pages)}")
        if wal_mode:
            conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute("PRAGMA foreign_keys = ON")
    except sqlite3.Error:
        conn.close()
        raise

    return conn


@contextmanager
def storage_errors(shard: ShardKey, operation: str) -> Iterator[None]:
    """Translate sqlite3 and filesystem errors into StorageError with logged context."""
    try:
        yield
    except (sqlite3.Error, OSError) as e:
        logger.error(
            f"Storage failure during {operation}: {e}",
            extra={
                "tenant_id": shard.tenant_id,
                "year": shard.year,
                "operation": operation,
            },
            exc_info=True,
        )
        raise StorageError(operation=operation) from e


@contextmanager
def transaction(
    conn: sqlite3.Connection,
    shard: ShardKey,
    operation: str,
    immediate: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Run a block inside one SQLite transaction.

    ``immediate`` takes the write lock up front; read-only snapshots pass
    ``immediate=False`` so concurrent readers are not blocked.

    Args:
        conn: Shard connection
        shard: Shard the connection belongs to (for logging)
        operation: Operation name (for logging)
        immediate: Use BEGIN IMMEDIATE instead of a deferred BEGIN

    Yields:
        The same connection
    """
    with storage_errors(shard, operation):
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
