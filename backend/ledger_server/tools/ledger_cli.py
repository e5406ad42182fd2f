"""
Operator CLI for ledger shards.

Commands:
- years: List the years a tenant has shards for
- backup: Copy a shard's database file
- backups: List existing backups of a shard
- stats: Print a shard's statistics as JSON

Usage:
    ledger-cli years 42
    ledger-cli backup 42 2024
    ledger-cli stats 42 2024 --data-dir /var/lib/ledger

Invariants:
    - Read-only except for writing new backup files
    - `backup` exits 1 when the shard has no database file
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from ..config import StorageConfig
from ..ledger import TransactionLedger
from ..store import BackupExporter, ConnectionRegistry, resolve_shard


class LedgerCLI:
    """CLI operations over one data directory.

    Example:
        >>> cli = LedgerCLI("/var/lib/ledger")
        >>> asyncio.run(cli.years("42"))
        [2025, 2024]
    """

    def __init__(self, data_dir: str, wal_mode: bool = True) -> None:
        self.registry = ConnectionRegistry(data_dir, wal_mode=wal_mode)
        self.exporter = BackupExporter(self.registry)

    async def years(self, tenant_id: str) -> list[int]:
        return await self.registry.get_user_years(tenant_id)

    async def backup(self, tenant_id: str, year: int) -> Path | None:
        return await self.exporter.backup(tenant_id, year)

    async def backups(self, tenant_id: str, year: int) -> list[Path]:
        return await self.exporter.list_backups(tenant_id, year)

    async def stats(self, tenant_id: str, year: int) -> dict[str, Any] | None:
        """Shard statistics, or None if the shard has no file.

        Does not create a shard that does not exist yet.
        """
        if year not in await self.years(tenant_id):
            return None
        try:
            stats = await TransactionLedger(self.registry).get_stats(resolve_shard(tenant_id, year))
            return stats.to_dict()
        finally:
            await self.registry.close_all()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ledger tool."""
    parser = argparse.ArgumentParser(description="Ledger shard management tool")
    parser.add_argument("--data-dir", help="Shard directory (default: LEDGER_DATA_DIR)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    years_parser = subparsers.add_parser("years", help="List shard years for a tenant")
    years_parser.add_argument("tenant_id")

    for name, help_text in (
        ("backup", "Back up a shard database"),
        ("backups", "List backups of a shard"),
        ("stats", "Print shard statistics as JSON"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("tenant_id")
        sub.add_argument("year", type=int)

    args = parser.parse_args(argv)
    storage = StorageConfig.from_env()
    cli = LedgerCLI(args.data_dir or storage.data_dir, wal_mode=storage.wal_mode)

    if args.command == "years":
        years = asyncio.run(cli.years(args.tenant_id))
        if not years:
            print(f"No shards for tenant {args.tenant_id}")
        for year in years:
            print(year)

    elif args.command == "backup":
        path = asyncio.run(cli.backup(args.tenant_id, args.year))
        if path is None:
            print(f"No database for tenant {args.tenant_id} in {args.year}", file=sys.stderr)
            sys.exit(1)
        print(path)

    elif args.command == "backups":
        for path in asyncio.run(cli.backups(args.tenant_id, args.year)):
            print(path)

    elif args.command == "stats":
        stats = asyncio.run(cli.stats(args.tenant_id, args.year))
        if stats is None:
            print(f"No database for tenant {args.tenant_id} in {args.year}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps(stats, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
