"""
FastAPI application factory for the ledger server.

This module creates the FastAPI app with:
- CORS configuration for the frontend
- An explicitly constructed ConnectionRegistry shared by all routes
- Ledger error to HTTP status mapping
- Registry teardown on shutdown
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import ServerConfig
from ..errors import BadRequestError, ConflictError, LedgerError, NotFoundError, StorageError
from ..ledger import CategoryLedger, TransactionLedger
from ..store import BackupExporter, ConnectionRegistry
from .auth import AuthProvider, HeaderAuthProvider
from .config import Settings
from .routes import error_response, router

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (BadRequestError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StorageError, 500),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Close every shard handle at shutdown."""
    yield
    await app.state.registry.close_all()


def create_app(
    config: ServerConfig | None = None,
    registry: ConnectionRegistry | None = None,
    auth_provider: AuthProvider | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Server configuration (loaded from env if not provided)
        registry: Shard registry (built from ``config.storage`` if not provided)
        auth_provider: Identity source (header based if not provided)
        settings: HTTP adapter settings (loaded from env if not provided)

    Returns:
        FastAPI application
    """
    settings = settings or Settings()
    if registry is None:
        config = config or ServerConfig.from_env()
        registry = ConnectionRegistry(
            data_dir=config.storage.data_dir,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
            cache_size_pages=config.storage.cache_size_pages,
        )

    app = FastAPI(
        title="Ledger Server",
        description="Income and expense ledger sharded by tenant and year",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.categories = CategoryLedger(registry)
    app.state.transactions = TransactionLedger(registry)
    app.state.backups = BackupExporter(registry)
    app.state.auth_provider = auth_provider or HeaderAuthProvider(
        tenant_header=settings.tenant_header,
        role_header=settings.role_header,
    )

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", settings.tenant_header, settings.role_header],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                break
        else:
            status_code = 500

        if status_code >= 500:
            # Details were logged where the failure happened
            return error_response(status_code, "Internal server error", exc.code)
        return error_response(status_code, exc.message, exc.code)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        location = ".".join(str(part) for part in errors[0]["loc"]) if errors else "request"
        return error_response(400, f"Invalid {location}", "BAD_REQUEST")

    app.include_router(router, prefix="/api/v1")

    @app.get("/api/health")
    async def health():
        return {
            "success": True,
            "message": "Ledger API is running",
            "openShards": len(registry.open_shards()),
        }

    return app
