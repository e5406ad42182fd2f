"""
Ledger module - categories and transactions over tenant-year shards.

This module handles:
- Category CRUD with default-category and usage guards
- Transaction CRUD with category validation
- Pagination, date-range queries and single-snapshot statistics

Invariants:
    - Each operation touches exactly one shard (moves touch two, in order)
    - Validation happens before any write
    - Storage failures surface as StorageError, never silently ignored
"""

from .categories import CategoryLedger
from .models import (
    Category,
    LedgerStats,
    MonthlyTotals,
    Transaction,
    TransactionPage,
    TransactionType,
)
from .transactions import DEFAULT_PAGE_SIZE, TransactionLedger

__all__ = [
    "CategoryLedger",
    "Category",
    "LedgerStats",
    "MonthlyTotals",
    "Transaction",
    "TransactionPage",
    "TransactionType",
    "DEFAULT_PAGE_SIZE",
    "TransactionLedger",
]
