"""
Ledger Server - tenant and year sharded income/expense ledger.

This package implements the storage core of a personal/organizational ledger:
- One SQLite file per (tenant, year) shard
- Categories and transactions scoped to a single shard
- Aggregate statistics computed from one shard snapshot
- Point-in-time file backups of a shard

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │   Client    │────▶│  FastAPI    │────▶│ Category /      │
    │             │     │  adapter    │     │ Transaction     │
    └─────────────┘     └─────────────┘     │ Ledger          │
                                            └────────┬────────┘
                                                     │
                                                     ▼
                        ┌─────────────────────────────────────────┐
                        │   ConnectionRegistry (one handle/shard) │
                        └─────────────────────────────────────────┘
                                             │
                        ┌────────────────────┼────────────────────┐
                        ▼                    ▼                    ▼
                   ┌──────────┐        ┌──────────┐        ┌──────────┐
                   │ t_1_2024 │        │ t_1_2025 │        │ t_2_2025 │
                   └──────────┘        └──────────┘        └──────────┘

Invariants:
    - A transaction dated in year Y always lives in shard (tenant, Y)
    - Every shard carries the fourteen default categories
    - Default categories are never deleted
    - A category referenced by transactions is never deleted

How to change safely:
    - Schema changes must stay idempotent (CREATE ... IF NOT EXISTS)
    - Never change the seeded default category ids
    - Keep shard file naming stable, existing data depends on it
"""

from ._version import __version__

__all__ = ["__version__"]
