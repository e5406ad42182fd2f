"""
Shard schema bootstrap.

Runs on every connection open. All statements are idempotent so an existing
shard is left untouched and a fresh shard gets tables, indexes and the
fourteen default categories.

Table schema:
    categories:
        - id INTEGER PRIMARY KEY (1-14 reserved for defaults)
        - name TEXT
        - type TEXT ('income' | 'expense')
        - is_default INTEGER (0/1)
        - created_at, updated_at TEXT (UTC, 'YYYY-MM-DD HH:MM:SS')

    transactions:
        - id INTEGER PRIMARY KEY
        - amount_cents INTEGER (> 0)
        - date TEXT ('YYYY-MM-DD HH:MM:SS')
        - type TEXT ('income' | 'expense')
        - category_id INTEGER -> categories(id)
        - description TEXT
        - created_at, updated_at TEXT
"""

from __future__ import annotations

import logging
import sqlite3

from .connection import transaction
from .shard import ShardKey

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# (id, name, type); ids are fixed so seeding is insert-if-absent
DEFAULT_CATEGORIES: tuple[tuple[int, str, str], ...] = (
    (1, "Monthly Fund", "income"),
    (2, "Special Fund", "income"),
    (3, "Donation", "income"),
    (4, "Personal Money", "income"),
    (5, "Bank Loan", "income"),
    (6, "Borrowed Money", "income"),
    (7, "Others", "income"),
    (8, "Employee Salary", "expense"),
    (9, "Foods & Treats", "expense"),
    (10, "Conveyances", "expense"),
    (11, "Purchase", "expense"),
    (12, "Rents", "expense"),
    (13, "Utility Bills", "expense"),
    (14, "Others", "expense"),
)

_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
        is_default INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
        date TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
        category_id INTEGER NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (category_id) REFERENCES categories(id)
    );

    CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date);
    CREATE INDEX IF NOT EXISTS idx_transactions_type ON transactions(type);
    CREATE INDEX IF NOT EXISTS idx_transactions_category ON transactions(category_id);
    CREATE INDEX IF NOT EXISTS idx_categories_type ON categories(type);
"""


def ensure_schema(conn: sqlite3.Connection, shard: ShardKey) -> None:
    """Create tables, indexes and default categories if absent.

    Safe to call on every open. Runs as one transaction, so a failure
    leaves the shard as it was.

    Args:
        conn: Freshly opened shard connection
        shard: Shard being bootstrapped (for logging)

    Raises:
        StorageError: If any schema statement fails
    """
    with transaction(conn, shard, "ensure_schema"):
        for statement in _SCHEMA_SQL.split(";"):
            if statement.strip():
                conn.execute(statement)

        conn.executemany(
            "INSERT OR IGNORE INTO categories (id, name, type, is_default) VALUES (?, ?, ?, 1)",
            DEFAULT_CATEGORIES,
        )
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )

    logger.debug(
        "Schema ensured",
        extra={"tenant_id": shard.tenant_id, "year": shard.year},
    )
