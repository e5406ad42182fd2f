"""
Configuration for the HTTP adapter.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HTTP adapter configuration loaded from environment."""

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Pagination defaults
    default_page_size: int = Field(default=50, ge=1, description="Default transactions per page")
    max_page_size: int = Field(default=500, ge=1, description="Maximum transactions per page")

    # Identity headers set by the upstream authenticating gateway
    tenant_header: str = Field(default="X-Tenant-ID", description="Header carrying the tenant id")
    role_header: str = Field(default="X-Role", description="Header carrying the caller role")

    model_config = {"env_prefix": "LEDGER_API_"}
