"""
Staff permission checks.

ADMIN bypasses every check; WAITER and CASHIER are checked against the
delegation flags an admin set for them.

Usage:
    from rest_api.services.permissions import PermissionContext, require_permission

    @router.post("/")
    def create_product(
        body: ProductCreate,
        perm: PermissionContext = Depends(require_permission(Permissions.CREATE_PRODUCTS)),
    ):
        ...
"""

from .context import PermissionContext, FLAG_ACTIONS
from .decorators import (
    require_permission,
    require_admin,
    require_authenticated,
)

__all__ = [
    "PermissionContext",
    "FLAG_ACTIONS",
    "require_permission",
    "require_admin",
    "require_authenticated",
]
