"""
Shard key resolution.

A shard is one tenant's ledger for one calendar year. The shard key is both
the registry cache key and the source of the on-disk file name.

Invariants:
    - Tenant ids are used in file names verbatim, so distinct tenants always
      map to distinct files
    - Tenant ids outside [A-Za-z0-9_-] are rejected, never rewritten
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from ..errors import BadRequestError

_TENANT_ID_RE = re.compile(r"[A-Za-z0-9_-]+")


def validate_tenant_id(tenant_id: str) -> str:
    """Return the tenant id if it is safe to embed in a file name.

    Raises:
        BadRequestError: If the id is empty or has characters outside
            [A-Za-z0-9_-]
    """
    tenant_id = str(tenant_id)
    if not _TENANT_ID_RE.fullmatch(tenant_id):
        raise BadRequestError(f"Invalid tenant id: {tenant_id!r}", field_name="tenantId")
    return tenant_id


@dataclass(frozen=True)
class ShardKey:
    """Identifies one (tenant, year) shard.

    Attributes:
        tenant_id: Tenant identifier from the auth collaborator
        year: Calendar year
    """

    tenant_id: str
    year: int

    def __post_init__(self) -> None:
        validate_tenant_id(self.tenant_id)

    @property
    def db_filename(self) -> str:
        return f"tenant_{self.tenant_id}_{self.year:04d}.db"

    def __str__(self) -> str:
        return f"{self.tenant_id}/{self.year:04d}"


def resolve_shard(tenant_id: str, year: int | str) -> ShardKey:
    """Build the shard key for a tenant and year.

    Args:
        tenant_id: Tenant identifier
        year: Calendar year, as int or numeric string

    Returns:
        ShardKey

    Raises:
        BadRequestError: If the tenant id is not file-name safe
    """
    return ShardKey(tenant_id=validate_tenant_id(tenant_id), year=int(year))


def shard_for_date(tenant_id: str, when: date) -> ShardKey:
    """Shard that owns rows dated ``when``."""
    return resolve_shard(tenant_id, when.year)
