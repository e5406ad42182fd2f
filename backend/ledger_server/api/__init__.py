"""
API module for the ledger server.

This module provides the HTTP host adapter:
- FastAPI app factory and routes
- AuthProvider capability producing (tenant_id, role)

Invariants:
    - Every route is scoped to one authenticated tenant
    - Only superadmins may name another tenant or take backups
    - Storage failures are reported without internal detail
"""

from .app import create_app
from .auth import AuthProvider, HeaderAuthProvider, Identity

__all__ = [
    "create_app",
    "AuthProvider",
    "HeaderAuthProvider",
    "Identity",
]
