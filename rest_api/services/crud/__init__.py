"""
CRUD Services - Generic data access with tenant isolation.

Provides:
- TenantRepository: queries always filtered by tenant_id
- BranchRepository: adds branch (site) scoping
"""

from .repository import TenantRepository, BranchRepository

__all__ = [
    "TenantRepository",
    "BranchRepository",
]
