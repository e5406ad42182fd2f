"""
Transaction ledger.

CRUD, pagination, date-range queries and statistics over the transactions
of one shard. Writes resolve their shard from the transaction's own date,
never from the caller's year context.

Invariants:
    - A transaction dated in year Y is stored in shard (tenant, Y)
    - amount > 0, two fraction digits, stored as integer cents
    - category_id resolves to a category of the same shard at write time
    - The transaction type is not checked against the category type
    - Listing order is (date DESC, id DESC) so pages are deterministic

How to change safely:
    - Keep validation ahead of the first write in every operation
    - Stats queries must stay inside one read transaction
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any

from ..errors import BadRequestError, NotFoundError
from ..store.connection import storage_errors, transaction
from ..store.registry import ConnectionRegistry
from ..store.shard import ShardKey, resolve_shard, shard_for_date
from .models import (
    LedgerStats,
    MonthlyTotals,
    Transaction,
    TransactionPage,
    TransactionType,
    cents_to_decimal,
    decimal_to_cents,
)
from .validation import (
    coerce_positive_int,
    format_datetime,
    parse_amount,
    parse_date,
    parse_datetime,
    parse_id,
    parse_type,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 50

_SELECT_JOINED = """
    SELECT t.*, c.name AS category_name, c.type AS category_type
    FROM transactions t
    LEFT JOIN categories c ON t.category_id = c.id
"""

_ORDER = " ORDER BY t.date DESC, t.id DESC"


class _TransactionInput:
    """Validated fields of a create/update request."""

    def __init__(
        self,
        amount: Any,
        date: Any,
        type: Any,
        category_id: Any,
        description: Any,
    ) -> None:
        missing = [
            name
            for name, value in (
                ("amount", amount),
                ("date", date),
                ("type", type),
                ("categoryId", category_id),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise BadRequestError(
                "Amount, date, type, and category are required",
                field_name=missing[0],
            )

        self.type = parse_type(type)
        self.amount = parse_amount(amount)
        self.when: datetime = parse_datetime(date)
        self.category_id = parse_id(category_id, "categoryId")
        self.description = "" if description is None else str(description)

    @property
    def params(self) -> tuple[Any, ...]:
        return (
            decimal_to_cents(self.amount),
            format_datetime(self.when),
            self.type.value,
            self.category_id,
            self.description,
        )


class TransactionLedger:
    """Transaction operations over tenant-year shards.

    Example:
        >>> transactions = TransactionLedger(registry)
        >>> txn = await transactions.create_transaction(
        ...     tenant_id="42",
        ...     amount="100.00",
        ...     date="2024-03-15",
        ...     type="expense",
        ...     category_id=9,
        ... )
        >>> txn.category_name
        'Foods & Treats'
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def _connection(self, shard: ShardKey) -> sqlite3.Connection:
        return await self.registry.get_connection(shard.tenant_id, shard.year)

    @staticmethod
    def _fetch_joined(conn: sqlite3.Connection, transaction_id: int) -> sqlite3.Row | None:
        return conn.execute(_SELECT_JOINED + " WHERE t.id = ?", (transaction_id,)).fetchone()

    @staticmethod
    def _require_category(conn: sqlite3.Connection, category_id: int) -> None:
        row = conn.execute("SELECT id FROM categories WHERE id = ?", (category_id,)).fetchone()
        if row is None:
            raise BadRequestError("Invalid category", field_name="categoryId")

    async def list_transactions(
        self,
        shard: ShardKey,
        page: Any = None,
        page_size: Any = None,
    ) -> TransactionPage:
        """One page of the shard's transactions, newest first.

        Args:
            shard: Shard to read
            page: 1-based page number (defaults to 1)
            page_size: Rows per page (defaults to 50)

        Returns:
            TransactionPage with the rows and the shard-wide count
        """
        page = coerce_positive_int(page, DEFAULT_PAGE)
        page_size = coerce_positive_int(page_size, DEFAULT_PAGE_SIZE)
        offset = (page - 1) * page_size

        conn = await self._connection(shard)
        with transaction(conn, shard, "list_transactions", immediate=False):
            total = conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]
            rows = conn.execute(
                _SELECT_JOINED + _ORDER + " LIMIT ? OFFSET ?",
                (page_size, offset),
            ).fetchall()

        return TransactionPage(
            items=[Transaction.from_row(row) for row in rows],
            total_count=total,
            page=page,
            page_size=page_size,
        )

    async def list_transactions_in_range(
        self,
        shard: ShardKey,
        start_date: Any,
        end_date: Any,
    ) -> list[Transaction]:
        """Transactions whose date falls in [start_date, end_date].

        Comparison is by calendar date; time of day is ignored on both the
        bounds and the stored dates.

        Raises:
            BadRequestError: If either bound is missing or unparseable
        """
        if start_date is None or end_date is None or not str(start_date).strip() or not str(end_date).strip():
            raise BadRequestError("Start date and end date are required")
        start = parse_date(start_date, "startDate")
        end = parse_date(end_date, "endDate")

        conn = await self._connection(shard)
        with storage_errors(shard, "list_transactions_in_range"):
            rows = conn.execute(
                _SELECT_JOINED + " WHERE DATE(t.date) BETWEEN DATE(?) AND DATE(?)" + _ORDER,
                (start.isoformat(), end.isoformat()),
            ).fetchall()

        return [Transaction.from_row(row) for row in rows]

    async def get_transaction(self, shard: ShardKey, transaction_id: int) -> Transaction:
        """Get one transaction with its category.

        Raises:
            NotFoundError: If no transaction has this id in the shard
        """
        conn = await self._connection(shard)
        with storage_errors(shard, "get_transaction"):
            row = self._fetch_joined(conn, transaction_id)
        if row is None:
            raise NotFoundError("Transaction not found", "transaction", transaction_id)
        return Transaction.from_row(row)

    async def create_transaction(
        self,
        tenant_id: str,
        amount: Any,
        date: Any,
        type: Any,
        category_id: Any,
        description: str | None = None,
    ) -> Transaction:
        """Record a transaction in the shard of its date's year.

        Args:
            tenant_id: Tenant identifier
            amount: Positive amount (number or numeric string)
            date: Date/datetime or ISO-8601 string
            type: 'income' or 'expense'
            category_id: Category id in the target shard
            description: Optional free text

        Returns:
            The persisted transaction, joined with its category

        Raises:
            BadRequestError: If a field is missing or invalid, or the
                category does not exist in the target shard
        """
        data = _TransactionInput(amount, date, type, category_id, description)
        shard = shard_for_date(tenant_id, data.when)

        conn = await self._connection(shard)
        with transaction(conn, shard, "create_transaction"):
            self._require_category(conn, data.category_id)
            cursor = conn.execute(
                """
                INSERT INTO transactions (amount_cents, date, type, category_id, description)
                VALUES (?, ?, ?, ?, ?)
                """,
                data.params,
            )
            row = self._fetch_joined(conn, cursor.lastrowid)

        logger.info(
            "Created transaction",
            extra={"tenant_id": tenant_id, "year": shard.year, "transaction_id": row["id"]},
        )
        return Transaction.from_row(row)

    async def update_transaction(
        self,
        tenant_id: str,
        transaction_id: int,
        amount: Any,
        date: Any,
        type: Any,
        category_id: Any,
        description: str | None = None,
        current_year: int | str | None = None,
    ) -> Transaction:
        """Replace all fields of a transaction.

        The row is looked up in the shard of the new date's year. When the
        caller says where the row lives now (``current_year``) and that
        differs from the new year, the row is moved: deleted from the old
        shard and inserted into the new one. Ids are shard-local, so a moved
        transaction gets a new id; its created_at is kept.

        Args:
            tenant_id: Tenant identifier
            transaction_id: Id of the row to update
            amount: Positive amount
            date: New date; decides the target shard
            type: 'income' or 'expense'
            category_id: Category id in the target shard
            description: Optional free text
            current_year: Year of the shard the row lives in now, if known

        Returns:
            The updated (or moved) transaction, joined with its category

        Raises:
            BadRequestError: If a field is missing or invalid, or the
                category does not exist in the target shard
            NotFoundError: If the row does not exist in its shard
        """
        data = _TransactionInput(amount, date, type, category_id, description)
        target = shard_for_date(tenant_id, data.when)

        if current_year is not None and int(current_year) != target.year:
            source = resolve_shard(tenant_id, current_year)
            return await self._move_transaction(source, target, transaction_id, data)

        conn = await self._connection(target)
        with transaction(conn, target, "update_transaction"):
            self._require_category(conn, data.category_id)
            cursor = conn.execute(
                """
                UPDATE transactions
                SET amount_cents = ?, date = ?, type = ?, category_id = ?, description = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (*data.params, transaction_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Transaction not found", "transaction", transaction_id)
            row = self._fetch_joined(conn, transaction_id)

        logger.info(
            "Updated transaction",
            extra={"tenant_id": tenant_id, "year": target.year, "transaction_id": transaction_id},
        )
        return Transaction.from_row(row)

    async def _move_transaction(
        self,
        source: ShardKey,
        target: ShardKey,
        transaction_id: int,
        data: _TransactionInput,
    ) -> Transaction:
        """Move a row between shards with delete-then-insert.

        The source delete stays uncommitted until the target insert has
        committed, so any failure before that leaves the row where it was.
        """
        source_conn = await self._connection(source)
        target_conn = await self._connection(target)

        with transaction(source_conn, source, "move_transaction"):
            existing = source_conn.execute(
                "SELECT created_at FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()
            if existing is None:
                raise NotFoundError("Transaction not found", "transaction", transaction_id)
            source_conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))

            with transaction(target_conn, target, "move_transaction"):
                self._require_category(target_conn, data.category_id)
                cursor = target_conn.execute(
                    """
                    INSERT INTO transactions
                        (amount_cents, date, type, category_id, description, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (*data.params, existing["created_at"]),
                )
                row = self._fetch_joined(target_conn, cursor.lastrowid)

        logger.info(
            f"Moved transaction from {source} to {target}",
            extra={
                "tenant_id": source.tenant_id,
                "from_year": source.year,
                "to_year": target.year,
                "old_transaction_id": transaction_id,
                "transaction_id": row["id"],
            },
        )
        return Transaction.from_row(row)

    async def delete_transaction(self, shard: ShardKey, transaction_id: int) -> None:
        """Delete a transaction.

        Raises:
            NotFoundError: If no transaction has this id in the shard
        """
        conn = await self._connection(shard)
        with transaction(conn, shard, "delete_transaction"):
            cursor = conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("Transaction not found", "transaction", transaction_id)

        logger.info(
            "Deleted transaction",
            extra={"tenant_id": shard.tenant_id, "year": shard.year, "transaction_id": transaction_id},
        )

    async def get_stats(self, shard: ShardKey) -> LedgerStats:
        """Totals, count and per-month sums for one shard.

        Both queries run in one read transaction, so every figure comes
        from the same snapshot.
        """
        conn = await self._connection(shard)
        with transaction(conn, shard, "get_stats", immediate=False):
            totals = conn.execute(
                """
                SELECT
                    COALESCE(SUM(CASE WHEN type = 'income' THEN amount_cents END), 0) AS income,
                    COALESCE(SUM(CASE WHEN type = 'expense' THEN amount_cents END), 0) AS expenses,
                    COUNT(*) AS count
                FROM transactions
                """
            ).fetchone()
            monthly = conn.execute(
                """
                SELECT strftime('%Y-%m', date) AS month, type, SUM(amount_cents) AS total
                FROM transactions
                WHERE strftime('%Y', date) = ?
                GROUP BY month, type
                ORDER BY month
                """,
                (f"{shard.year:04d}",),
            ).fetchall()

        stats = LedgerStats(
            total_income=cents_to_decimal(totals["income"]),
            total_expenses=cents_to_decimal(totals["expenses"]),
            transaction_count=totals["count"],
        )
        for row in monthly:
            bucket = stats.monthly_stats.setdefault(row["month"], MonthlyTotals())
            if row["type"] == TransactionType.INCOME.value:
                bucket.income = cents_to_decimal(row["total"])
            else:
                bucket.expenses = cents_to_decimal(row["total"])

        return stats
