"""
Store module for the ledger server - shard storage management.

This module handles:
- Shard key resolution (tenant, year) -> database file
- Idempotent schema bootstrap with default categories
- The connection registry owning one handle per shard
- File backups of shard databases

Invariants:
    - One SQLite file per (tenant, year)
    - No relations cross shard boundaries
    - SQLite uses WAL mode for concurrent reads during writes

How to change safely:
    - Keep schema statements idempotent
    - Test bootstrap against databases created by older versions
"""

from .backup import BackupExporter
from .registry import ConnectionRegistry
from .schema import DEFAULT_CATEGORIES, ensure_schema
from .shard import ShardKey, resolve_shard, shard_for_date

__all__ = [
    "BackupExporter",
    "ConnectionRegistry",
    "DEFAULT_CATEGORIES",
    "ensure_schema",
    "ShardKey",
    "resolve_shard",
    "shard_for_date",
]
