"""
Domain models for categories, transactions and statistics.

Amounts are ``Decimal`` with two fraction digits; the database stores them
as integer cents.
"""

from __future__ import annotations

import math
import sqlite3
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

ZERO = Decimal("0.00")


class TransactionType(str, Enum):
    """Direction of money flow, shared by categories and transactions."""

    INCOME = "income"
    EXPENSE = "expense"


def cents_to_decimal(cents: int | None) -> Decimal:
    return Decimal(int(cents or 0)).scaleb(-2)


def decimal_to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


@dataclass
class Category:
    """A category row in one shard.

    Attributes:
        id: Shard-local identifier
        name: Display name
        type: income or expense
        is_default: Seeded category, never deletable
        created_at: Creation timestamp (UTC text)
        updated_at: Last update timestamp (UTC text)
    """

    id: int
    name: str
    type: TransactionType
    is_default: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Category:
        return cls(
            id=row["id"],
            name=row["name"],
            type=TransactionType(row["type"]),
            is_default=bool(row["is_default"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "isDefault": self.is_default,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class Transaction:
    """A transaction row joined with its category.

    Attributes:
        id: Shard-local identifier
        amount: Positive amount, two fraction digits
        date: Transaction date and time ('YYYY-MM-DD HH:MM:SS')
        type: income or expense (independent of the category's type)
        category_id: Referenced category in the same shard
        description: Free text, empty when not given
        category_name: Joined category name
        category_type: Joined category type
        created_at: Creation timestamp (UTC text)
        updated_at: Last update timestamp (UTC text)
    """

    id: int
    amount: Decimal
    date: str
    type: TransactionType
    category_id: int
    description: str
    category_name: str | None
    category_type: TransactionType | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Transaction:
        category_type = row["category_type"]
        return cls(
            id=row["id"],
            amount=cents_to_decimal(row["amount_cents"]),
            date=row["date"],
            type=TransactionType(row["type"]),
            category_id=row["category_id"],
            description=row["description"] or "",
            category_name=row["category_name"],
            category_type=TransactionType(category_type) if category_type else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def year(self) -> int:
        return int(self.date[:4])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "amount": float(self.amount),
            "date": self.date,
            "type": self.type.value,
            "categoryId": self.category_id,
            "categoryName": self.category_name,
            "categoryType": self.category_type.value if self.category_type else None,
            "description": self.description,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class TransactionPage:
    """One page of transactions plus the shard-wide count."""

    items: list[Transaction]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict[str, Any]:
        return {
            "currentPage": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
            "totalCount": self.total_count,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
        }


@dataclass
class MonthlyTotals:
    income: Decimal = ZERO
    expenses: Decimal = ZERO

    def to_dict(self) -> dict[str, float]:
        return {"income": float(self.income), "expenses": float(self.expenses)}


@dataclass
class LedgerStats:
    """Aggregates over one shard.

    Attributes:
        total_income: Sum of income amounts
        total_expenses: Sum of expense amounts
        transaction_count: Number of transactions
        monthly_stats: Totals keyed by 'YYYY-MM', months without rows absent
    """

    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    transaction_count: int = 0
    monthly_stats: dict[str, MonthlyTotals] = field(default_factory=dict)

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expenses

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalIncome": float(self.total_income),
            "totalExpenses": float(self.total_expenses),
            "netBalance": float(self.net_balance),
            "transactionCount": self.transaction_count,
            "monthlyStats": {month: totals.to_dict() for month, totals in self.monthly_stats.items()},
        }
