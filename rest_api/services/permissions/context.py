"""
Permission Context - Main entry point for permission checks.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import StaffPermission
from shared.config.constants import Permissions
from shared.security.auth import get_branch_id, get_user_email, get_user_id, is_admin
from shared.utils.exceptions import ForbiddenError

# Spanish action names for 403 messages
FLAG_ACTIONS: dict[str, str] = {
    Permissions.VIEW_PRODUCTS: "ver productos",
    Permissions.CREATE_PRODUCTS: "crear productos",
    Permissions.EDIT_PRODUCTS: "editar productos",
    Permissions.DELETE_PRODUCTS: "eliminar productos",
    Permissions.VIEW_ORDERS: "ver pedidos",
    Permissions.CREATE_ORDERS: "crear pedidos",
    Permissions.EDIT_ORDERS: "editar pedidos",
    Permissions.CANCEL_ORDERS: "cancelar pedidos",
    Permissions.VIEW_EXPENSES: "ver gastos",
    Permissions.CREATE_EXPENSES: "crear gastos",
    Permissions.EDIT_EXPENSES: "editar gastos",
    Permissions.DELETE_EXPENSES: "eliminar gastos",
    Permissions.VIEW_REPORTS: "ver reportes",
    Permissions.VIEW_CASH_CLOSINGS: "ver liquidaciones",
}


class PermissionContext:
    """
    Caller identity plus its delegation flags.

    ADMIN passes every check. Other roles are checked against their
    StaffPermission record, loaded on first use; a staff member without a
    record gets the flags granted on approval.

    Usage:
        perm = PermissionContext(user, db)
        if not perm.can(Permissions.CANCEL_ORDERS):
            ...
        perm.require(Permissions.VIEW_CASH_CLOSINGS)
    """

    def __init__(self, user: dict[str, Any], db: Session):
        self._user = user
        self._db = db
        self._record: StaffPermission | None = None
        self._loaded = False

    @property
    def user_id(self) -> int:
        return get_user_id(self._user)

    @property
    def user_email(self) -> str | None:
        return get_user_email(self._user)

    @property
    def tenant_id(self) -> int:
        return self._user["tenant_id"]

    @property
    def branch_id(self) -> int:
        return get_branch_id(self._user)

    @property
    def is_admin(self) -> bool:
        return is_admin(self._user)

    def _permission_record(self) -> StaffPermission | None:
        if not self._loaded:
            self._record = self._db.scalar(
                select(StaffPermission).where(
                    StaffPermission.staff_user_id == self.user_id,
                    StaffPermission.tenant_id == self.tenant_id,
                    StaffPermission.is_active.is_(True),
                )
            )
            self._loaded = True
        return self._record

    def can(self, flag: str) -> bool:
        if self.is_admin:
            return True
        record = self._permission_record()
        if record is None:
            return flag in Permissions.DEFAULT_GRANTED
        return record.allows(flag)

    def require(self, flag: str) -> None:
        """
        Raises:
            ForbiddenError: the caller lacks the flag.
        """
        if not self.can(flag):
            raise ForbiddenError(
                FLAG_ACTIONS.get(flag, flag),
                user_id=self.user_id,
                permission=flag,
            )
