"""
Error types for the ledger server.

This module defines all exception types raised by the storage core:
- LedgerError: Base exception
- BadRequestError: Missing or invalid input
- NotFoundError: Referenced row does not exist in the resolved shard
- ConflictError: Operation forbidden by referential rules
- StorageError: SQLite failure (open, bootstrap, query)

Invariants:
    - All errors inherit from LedgerError
    - StorageError messages never include SQL or driver detail
    - Validation errors are raised before any write is attempted
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base exception for all ledger errors.

    Attributes:
        message: Error message, safe to show to callers
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "LEDGER_ERROR"
        self.details = details or {}


class BadRequestError(LedgerError):
    """Input validation failed.

    Raised when:
    - A required field is missing
    - Type is not income or expense
    - Amount is not a positive number
    - A date or range bound cannot be parsed
    - A transaction references an unknown category
    """

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(
            message,
            code="BAD_REQUEST",
            details={"field": field_name},
        )
        self.field_name = field_name


class NotFoundError(LedgerError):
    """Resource not found in the resolved shard."""

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: int | str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(LedgerError):
    """Operation conflicts with a referential rule.

    Raised when:
    - Deleting a default category
    - Deleting a category still referenced by transactions
    """

    def __init__(self, message: str, reference_count: int | None = None) -> None:
        super().__init__(
            message,
            code="CONFLICT",
            details={"reference_count": reference_count},
        )
        self.reference_count = reference_count


class StorageError(LedgerError):
    """SQLite operation failed.

    The original driver exception is kept as ``__cause__`` for logging;
    it is never part of the message.
    """

    def __init__(self, message: str = "Storage operation failed", operation: str | None = None) -> None:
        super().__init__(
            message,
            code="STORAGE_FAILURE",
            details={"operation": operation},
        )
        self.operation = operation
