"""
Shard backup exporter.

Copies a shard's database file to a timestamped sibling in the data
directory:

    tenant_<tenant>_<year>.db  ->  backup_tenant_<tenant>_<year>.db_<unix_us>

When the shard runs in WAL mode its -wal file is copied next to the backup
as well, so opening the backup sees every committed write.

Invariants:
    - The live shard file is only read, never modified
    - Each call produces a new, distinct backup file
    - A shard with no file on disk yields None and touches nothing

Consistency:
    The copy is a plain file copy, not coordinated with writers on the
    registry's handle. A backup taken during a write may capture a
    partially applied transaction; callers that need a consistent copy
    must serialize backups against writes themselves.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

from .connection import storage_errors
from .registry import ConnectionRegistry
from .shard import resolve_shard

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup_"


class BackupExporter:
    """Creates point-in-time file copies of shards.

    Example:
        >>> exporter = BackupExporter(registry)
        >>> path = await exporter.backup("42", 2024)
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def backup(self, tenant_id: str, year: int | str) -> Path | None:
        """Copy a shard's database file.

        Args:
            tenant_id: Tenant identifier
            year: Calendar year

        Returns:
            Path of the backup file, or None if the shard has no file

        Raises:
            StorageError: If the copy fails
        """
        db_path = self.registry.shard_path(tenant_id, year)
        if not db_path.is_file():
            logger.info(
                "No shard database to back up",
                extra={"tenant_id": tenant_id, "year": int(year)},
            )
            return None

        stamp = time.time_ns() // 1000
        backup_path = db_path.with_name(f"{BACKUP_PREFIX}{db_path.name}_{stamp}")
        while backup_path.exists():
            stamp += 1
            backup_path = db_path.with_name(f"{BACKUP_PREFIX}{db_path.name}_{stamp}")

        with storage_errors(resolve_shard(tenant_id, year), "backup"):
            shutil.copy2(db_path, backup_path)

            # In WAL mode committed pages may still sit in the -wal file
            wal_path = db_path.with_name(f"{db_path.name}-wal")
            if wal_path.is_file():
                shutil.copy2(wal_path, backup_path.with_name(f"{backup_path.name}-wal"))

        logger.info(
            f"Backed up shard database to {backup_path.name}",
            extra={"tenant_id": tenant_id, "year": int(year), "backup": str(backup_path)},
        )
        return backup_path

    async def list_backups(self, tenant_id: str, year: int | str) -> list[Path]:
        """List existing backups of a shard, newest first."""
        db_path = self.registry.shard_path(tenant_id, year)
        if not db_path.parent.is_dir():
            return []

        prefix = f"{BACKUP_PREFIX}{db_path.name}_"
        stamped = []
        for path in db_path.parent.iterdir():
            suffix = path.name[len(prefix):]
            if path.name.startswith(prefix) and suffix.isdigit():
                stamped.append((int(suffix), path))

        return [path for _, path in sorted(stamped, reverse=True)]
