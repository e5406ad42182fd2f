"""
API routes for the ledger server.

Thin adapters over the Category and Transaction ledgers. Every route
resolves its tenant through the auth dependencies and its year from the
``year`` query parameter (current year when absent), except transaction
writes, whose shard follows the transaction date.

Responses use the envelope ``{"success": true, "data": ...}``.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..ledger import CategoryLedger, TransactionLedger
from ..ledger.validation import coerce_positive_int
from ..store import BackupExporter, ConnectionRegistry, ShardKey, resolve_shard
from .auth import Identity, get_tenant_id, require_superadmin
from .config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ledger"])


# --- Request Models ---


class CategoryCreateRequest(BaseModel):
    """Request to create a category.

    Fields are loosely typed so the ledger reports missing or invalid
    values as 400 with its own messages.
    """

    name: Any = Field(None, description="Category name")
    type: Any = Field(None, description="income or expense")


class CategoryUpdateRequest(BaseModel):
    name: Any = Field(None, description="New category name")


class TransactionRequest(BaseModel):
    """Request to create or replace a transaction."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Any = Field(None, description="Positive amount")
    date: Any = Field(None, description="ISO-8601 date or date-time")
    type: Any = Field(None, description="income or expense")
    category_id: Any = Field(None, alias="categoryId", description="Category id")
    description: str | None = Field(None, description="Optional description")


# --- Dependencies ---


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_categories(request: Request) -> CategoryLedger:
    return request.app.state.categories


def get_transactions(request: Request) -> TransactionLedger:
    return request.app.state.transactions


def get_backups(request: Request) -> BackupExporter:
    return request.app.state.backups


def get_shard(
    tenant_id: str = Depends(get_tenant_id),
    year: int | None = Query(None, ge=1, le=9999, description="Shard year"),
) -> ShardKey:
    """Shard for the tenant and requested year (current year by default)."""
    return resolve_shard(tenant_id, year if year is not None else datetime.now().year)


# --- Category Routes ---


@router.get("/categories")
async def list_categories(
    shard: ShardKey = Depends(get_shard),
    categories: CategoryLedger = Depends(get_categories),
):
    """List the shard's categories ordered by type, then name."""
    rows = await categories.list_categories(shard)
    return {"success": True, "data": [c.to_dict() for c in rows]}


@router.post("/categories", status_code=201)
async def create_category(
    body: CategoryCreateRequest,
    shard: ShardKey = Depends(get_shard),
    categories: CategoryLedger = Depends(get_categories),
):
    category = await categories.create_category(shard, body.name, body.type)
    return {"success": True, "data": category.to_dict()}


@router.put("/categories/{category_id}")
async def rename_category(
    category_id: int,
    body: CategoryUpdateRequest,
    shard: ShardKey = Depends(get_shard),
    categories: CategoryLedger = Depends(get_categories),
):
    category = await categories.rename_category(shard, category_id, body.name)
    return {"success": True, "data": category.to_dict()}


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    shard: ShardKey = Depends(get_shard),
    categories: CategoryLedger = Depends(get_categories),
):
    await categories.delete_category(shard, category_id)
    return {"success": True, "message": "Category deleted successfully"}


# --- Transaction Routes ---


@router.get("/transactions")
async def list_transactions(
    page: str | None = Query(None, description="1-based page number"),
    limit: str | None = Query(None, description="Page size"),
    shard: ShardKey = Depends(get_shard),
    transactions: TransactionLedger = Depends(get_transactions),
    settings: Settings = Depends(get_settings),
):
    """
    List transactions newest first, with pagination.

    Non-numeric page or limit values fall back to the defaults.
    """
    page_size = min(
        coerce_positive_int(limit, settings.default_page_size),
        settings.max_page_size,
    )
    result = await transactions.list_transactions(shard, page=page, page_size=page_size)
    return {
        "success": True,
        "data": [t.to_dict() for t in result.items],
        "pagination": result.pagination(),
    }


@router.get("/transactions/range")
async def list_transactions_in_range(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    shard: ShardKey = Depends(get_shard),
    transactions: TransactionLedger = Depends(get_transactions),
):
    rows = await transactions.list_transactions_in_range(shard, start_date, end_date)
    return {"success": True, "data": [t.to_dict() for t in rows]}


@router.get("/transactions/stats")
async def get_stats(
    shard: ShardKey = Depends(get_shard),
    transactions: TransactionLedger = Depends(get_transactions),
):
    stats = await transactions.get_stats(shard)
    return {"success": True, "data": stats.to_dict()}


@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: int,
    shard: ShardKey = Depends(get_shard),
    transactions: TransactionLedger = Depends(get_transactions),
):
    txn = await transactions.get_transaction(shard, transaction_id)
    return {"success": True, "data": txn.to_dict()}


@router.post("/transactions", status_code=201)
async def create_transaction(
    body: TransactionRequest,
    tenant_id: str = Depends(get_tenant_id),
    transactions: TransactionLedger = Depends(get_transactions),
):
    """Create a transaction in the shard of its date's year."""
    txn = await transactions.create_transaction(
        tenant_id,
        amount=body.amount,
        date=body.date,
        type=body.type,
        category_id=body.category_id,
        description=body.description,
    )
    return {"success": True, "data": txn.to_dict()}


@router.put("/transactions/{transaction_id}")
async def update_transaction(
    transaction_id: int,
    body: TransactionRequest,
    year: int | None = Query(None, ge=1, le=9999, description="Year the row lives in now"),
    tenant_id: str = Depends(get_tenant_id),
    transactions: TransactionLedger = Depends(get_transactions),
):
    """
    Replace a transaction.

    Pass ``year`` with the shard the row currently lives in to allow the
    new date to move it to another year.
    """
    txn = await transactions.update_transaction(
        tenant_id,
        transaction_id,
        amount=body.amount,
        date=body.date,
        type=body.type,
        category_id=body.category_id,
        description=body.description,
        current_year=year,
    )
    return {"success": True, "data": txn.to_dict()}


@router.delete("/transactions/{transaction_id}")
async def delete_transaction(
    transaction_id: int,
    shard: ShardKey = Depends(get_shard),
    transactions: TransactionLedger = Depends(get_transactions),
):
    await transactions.delete_transaction(shard, transaction_id)
    return {"success": True, "message": "Transaction deleted successfully"}


# --- Shard Routes ---


@router.get("/years")
async def list_years(
    tenant_id: str = Depends(get_tenant_id),
    registry: ConnectionRegistry = Depends(get_registry),
):
    """Years with a shard on disk, newest first."""
    return {"success": True, "data": await registry.get_user_years(tenant_id)}


@router.post("/backups")
async def create_backup(
    shard: ShardKey = Depends(get_shard),
    admin: Identity = Depends(require_superadmin),
    backups: BackupExporter = Depends(get_backups),
):
    """Copy a shard's database file. ``backup`` is null when the shard has no file."""
    path = await backups.backup(shard.tenant_id, shard.year)
    logger.info(
        "Backup requested",
        extra={"tenant_id": shard.tenant_id, "year": shard.year, "requested_by": admin.tenant_id},
    )
    return {"success": True, "data": {"backup": path.name if path else None}}


def error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "code": code},
    )
