"""
Identity capability consumed by the HTTP adapter.

Authentication itself (tokens, passwords, sessions) happens upstream. The
adapter only needs a verified ``(tenant_id, role)`` per request, produced
by an AuthProvider. Privilege checks happen here, before a shard key is
ever resolved; the storage core only sees an already-authorized tenant id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from fastapi import Depends, HTTPException, Query, Request

SUPERADMIN = "superadmin"


@dataclass(frozen=True)
class Identity:
    """Verified caller identity.

    Attributes:
        tenant_id: Tenant the caller belongs to
        role: Caller role ('user' or 'superadmin')
    """

    tenant_id: str
    role: str = "user"

    @property
    def is_superadmin(self) -> bool:
        return self.role == SUPERADMIN


class AuthProvider(Protocol):
    async def authenticate(self, request: Request) -> Identity: ...


class HeaderAuthProvider:
    """Trusts identity headers injected by an authenticating gateway.

    Deploy only behind a proxy that strips these headers from client
    requests and sets them after verifying the caller's credentials.
    """

    def __init__(self, tenant_header: str = "X-Tenant-ID", role_header: str = "X-Role") -> None:
        self.tenant_header = tenant_header
        self.role_header = role_header

    async def authenticate(self, request: Request) -> Identity:
        tenant_id = request.headers.get(self.tenant_header)
        if not tenant_id:
            raise HTTPException(status_code=401, detail="Access token required")
        role = request.headers.get(self.role_header) or "user"
        return Identity(tenant_id=tenant_id, role=role)


async def get_identity(request: Request) -> Identity:
    """Authenticate the request with the app's AuthProvider."""
    provider: AuthProvider = request.app.state.auth_provider
    return await provider.authenticate(request)


def get_tenant_id(
    identity: Identity = Depends(get_identity),
    tenant_id: str | None = Query(None, alias="tenantId"),
) -> str:
    """Tenant to operate on.

    A superadmin may name another tenant explicitly; everyone else is
    always scoped to their own tenant and the override is ignored.
    """
    if tenant_id and identity.is_superadmin:
        return tenant_id
    return identity.tenant_id


def require_superadmin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_superadmin:
        raise HTTPException(
            status_code=403,
            detail="Access denied. Super admin privileges required.",
        )
    return identity
