"""
Permission dependencies for FastAPI routes.
"""

from collections.abc import Callable
from typing import Any

from fastapi import Depends
from sqlalchemy.orm import Session

from shared.config.constants import Roles
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, require_roles
from .context import PermissionContext


def require_permission(flag: str) -> Callable[..., PermissionContext]:
    """
    Dependency factory guarding an endpoint with one delegation flag.

    Usage:
        @router.delete("/{product_id}")
        def delete_product(
            product_id: int,
            perm: PermissionContext = Depends(require_permission(Permissions.DELETE_PRODUCTS)),
        ):
            ...
    """

    def dependency(
        user: dict[str, Any] = Depends(current_user_context),
        db: Session = Depends(get_db),
    ) -> PermissionContext:
        perm = PermissionContext(user, db)
        perm.require(flag)
        return perm

    return dependency


def require_admin(
    user: dict[str, Any] = Depends(current_user_context),
    db: Session = Depends(get_db),
) -> PermissionContext:
    """Dependency for endpoints reserved to restaurant admins."""
    require_roles(user, [Roles.ADMIN])
    return PermissionContext(user, db)


def require_authenticated(
    user: dict[str, Any] = Depends(current_user_context),
    db: Session = Depends(get_db),
) -> PermissionContext:
    """Any logged-in staff member, no flag required."""
    return PermissionContext(user, db)
