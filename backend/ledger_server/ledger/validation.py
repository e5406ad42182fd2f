"""
Input coercion for ledger operations.

Every helper either returns a normalized value or raises BadRequestError.
Nothing here touches storage.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ..errors import BadRequestError
from .models import TransactionType

CENT = Decimal("0.01")
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Amounts are stored as cents in a signed 64-bit SQLite INTEGER
MAX_AMOUNT_CENTS = 2**63 - 1


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_text(value: Any, field_name: str) -> str:
    """Non-blank string, stripped."""
    if _is_missing(value):
        raise BadRequestError(f"{field_name.capitalize()} is required", field_name=field_name)
    return str(value).strip()


def parse_type(value: Any, field_name: str = "type") -> TransactionType:
    if _is_missing(value):
        raise BadRequestError("Type is required", field_name=field_name)
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(str(value))
    except ValueError:
        raise BadRequestError("Type must be income or expense", field_name=field_name)


def parse_amount(value: Any) -> Decimal:
    """Positive amount rounded half-up to cents.

    Raises:
        BadRequestError: If missing, not a number, not greater than 0
            after rounding, or too large to store as cents
    """
    if _is_missing(value) or isinstance(value, bool):
        raise BadRequestError("Amount is required", field_name="amount")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise BadRequestError("Amount must be a number", field_name="amount")
    if not amount.is_finite():
        raise BadRequestError("Amount must be a number", field_name="amount")

    if amount <= 0:
        raise BadRequestError("Amount must be greater than 0", field_name="amount")

    try:
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise BadRequestError("Amount is too large", field_name="amount")
    if amount <= 0:
        raise BadRequestError("Amount must be greater than 0", field_name="amount")
    if amount * 100 > MAX_AMOUNT_CENTS:
        raise BadRequestError("Amount is too large", field_name="amount")
    return amount


def parse_datetime(value: Any, field_name: str = "date") -> datetime:
    """Accept date, datetime or an ISO-8601 string.

    A timezone offset, if present, is dropped; the wall-clock time given by
    the caller is what gets stored and what decides the shard year.
    """
    if _is_missing(value):
        raise BadRequestError(f"{field_name.capitalize()} is required", field_name=field_name)
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            raise BadRequestError(f"Invalid {field_name}: {value}", field_name=field_name)
    return parsed.replace(tzinfo=None, microsecond=0)


def parse_date(value: Any, field_name: str) -> date:
    """Date-only bound; any time-of-day part is ignored."""
    return parse_datetime(value, field_name).date()


def format_datetime(value: datetime) -> str:
    return value.strftime(DATE_FORMAT)


def parse_id(value: Any, field_name: str) -> int:
    if _is_missing(value) or isinstance(value, bool):
        raise BadRequestError(f"{field_name} is required", field_name=field_name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"Invalid {field_name}: {value}", field_name=field_name)


def coerce_positive_int(value: Any, default: int) -> int:
    """Page/size coercion: absent, non-numeric or < 1 falls back to default."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default
