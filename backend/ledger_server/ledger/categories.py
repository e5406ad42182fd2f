"""
Category ledger.

CRUD over the categories of one shard, with the two delete guards:
default categories are permanent, and a category referenced by any
transaction in the shard cannot be removed.

Invariants:
    - User-created categories always have is_default = 0
    - Only the name of a category can change
    - Returned rows are re-read after writes, never synthesized
"""

from __future__ import annotations

import logging
import sqlite3

from ..errors import ConflictError, NotFoundError
from ..store.connection import storage_errors, transaction
from ..store.registry import ConnectionRegistry
from ..store.shard import ShardKey
from .models import Category
from .validation import parse_type, require_text

logger = logging.getLogger(__name__)


class CategoryLedger:
    """Category operations scoped to a resolved shard.

    Example:
        >>> categories = CategoryLedger(registry)
        >>> shard = resolve_shard("42", 2024)
        >>> await categories.create_category(shard, "Groceries", "expense")
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def _connection(self, shard: ShardKey) -> sqlite3.Connection:
        return await self.registry.get_connection(shard.tenant_id, shard.year)

    async def list_categories(self, shard: ShardKey) -> list[Category]:
        """All categories of the shard ordered by type, then name."""
        conn = await self._connection(shard)
        with storage_errors(shard, "list_categories"):
            rows = conn.execute("SELECT * FROM categories ORDER BY type, name, id").fetchall()
        return [Category.from_row(row) for row in rows]

    async def get_category(self, shard: ShardKey, category_id: int) -> Category:
        """Get a category by id.

        Raises:
            NotFoundError: If no category has this id in the shard
        """
        conn = await self._connection(shard)
        with storage_errors(shard, "get_category"):
            row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
        if row is None:
            raise NotFoundError("Category not found", "category", category_id)
        return Category.from_row(row)

    async def create_category(self, shard: ShardKey, name: str, type: str) -> Category:
        """Create a user category.

        Args:
            shard: Target shard
            name: Category name
            type: 'income' or 'expense'

        Returns:
            The persisted category

        Raises:
            BadRequestError: If name or type is missing, or type is invalid
        """
        name = require_text(name, "name")
        category_type = parse_type(type)

        conn = await self._connection(shard)
        with transaction(conn, shard, "create_category"):
            cursor = conn.execute(
                "INSERT INTO categories (name, type, is_default) VALUES (?, ?, 0)",
                (name, category_type.value),
            )
            row = conn.execute(
                "SELECT * FROM categories WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()

        logger.info(
            "Created category",
            extra={"tenant_id": shard.tenant_id, "year": shard.year, "category_id": row["id"]},
        )
        return Category.from_row(row)

    async def rename_category(self, shard: ShardKey, category_id: int, name: str) -> Category:
        """Change a category's name.

        Raises:
            BadRequestError: If name is missing
            NotFoundError: If no category has this id in the shard
        """
        name = require_text(name, "name")

        conn = await self._connection(shard)
        with transaction(conn, shard, "rename_category"):
            cursor = conn.execute(
                "UPDATE categories SET name = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (name, category_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Category not found", "category", category_id)
            row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()

        return Category.from_row(row)

    async def delete_category(self, shard: ShardKey, category_id: int) -> None:
        """Delete a user category that no transaction references.

        The checks and the delete run in one write transaction, so a
        transaction cannot start referencing the category in between.

        Raises:
            NotFoundError: If no category has this id in the shard
            ConflictError: If the category is a default one, or is used by
                transactions (``reference_count`` carries the count)
        """
        conn = await self._connection(shard)
        with transaction(conn, shard, "delete_category"):
            row = conn.execute(
                "SELECT is_default FROM categories WHERE id = ?", (category_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("Category not found", "category", category_id)
            if row["is_default"]:
                raise ConflictError("Cannot delete default categories")

            count = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE category_id = ?", (category_id,)
            ).fetchone()[0]
            if count > 0:
                raise ConflictError(
                    f"Cannot delete category. It is used in {count} transaction(s)",
                    reference_count=count,
                )

            conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))

        logger.info(
            "Deleted category",
            extra={"tenant_id": shard.tenant_id, "year": shard.year, "category_id": category_id},
        )
