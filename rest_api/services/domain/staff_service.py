"""
Staff Service - admin-to-staff delegation ("admin-meseros").

Usage:
    from rest_api.services.domain import StaffService

    service = StaffService(db)
    staff = service.list_staff(tenant_id)
    staff = service.set_permissions(staff_id, data, tenant_id, admin_id, admin_email)
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import StaffPermission, User
from shared.config.constants import ApprovalStatus, Permissions, Roles
from shared.config.logging import auth_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import StaffOutput, StaffPermissionsInput


def permission_flags(permission: StaffPermission | None) -> dict[str, bool]:
    """Every delegation flag; a missing record grants the approval defaults."""
    if permission is None:
        return {flag: flag in Permissions.DEFAULT_GRANTED for flag in Permissions.ALL}
    return {flag: permission.allows(flag) for flag in Permissions.ALL}


class StaffService:
    """
    Business rules:
    - Only approved, non-admin users of the tenant are managed here
    - Deactivation is soft and also drops the user's site roles
    """

    def __init__(self, db: Session):
        self._db = db

    def _to_output(self, user: User) -> StaffOutput:
        return StaffOutput(
            id=user.id,
            name=user.name,
            email=user.email,
            roles=sorted({r.role for r in user.branch_roles if r.is_active}),
            is_active=user.is_active,
            permissions=permission_flags(user.permissions),
        )

    def _get_staff(self, staff_id: int, tenant_id: int) -> User:
        user = self._db.scalar(
            select(User)
            .options(selectinload(User.branch_roles), selectinload(User.permissions))
            .where(
                User.id == staff_id,
                User.tenant_id == tenant_id,
                User.is_active.is_(True),
                User.approval_status == ApprovalStatus.APPROVED,
            )
        )
        if user is None:
            raise NotFoundError("Empleado", staff_id, tenant_id=tenant_id)
        if any(r.role == Roles.ADMIN for r in user.branch_roles if r.is_active):
            raise ValidationError("Los administradores no tienen permisos delegados", staff_id=staff_id)
        return user

    def list_staff(self, tenant_id: int) -> list[StaffOutput]:
        users = self._db.scalars(
            select(User)
            .options(selectinload(User.branch_roles), selectinload(User.permissions))
            .where(
                User.tenant_id == tenant_id,
                User.is_active.is_(True),
                User.approval_status == ApprovalStatus.APPROVED,
            )
            .order_by(User.name, User.id)
        ).all()
        return [
            self._to_output(u)
            for u in users
            if not any(r.role == Roles.ADMIN for r in u.branch_roles if r.is_active)
        ]

    def set_permissions(
        self,
        staff_id: int,
        data: StaffPermissionsInput,
        tenant_id: int,
        admin_id: int,
        admin_email: str | None,
    ) -> StaffOutput:
        user = self._get_staff(staff_id, tenant_id)

        permission = user.permissions
        if permission is None:
            permission = StaffPermission(
                tenant_id=tenant_id,
                admin_user_id=admin_id,
                staff_user_id=user.id,
                **permission_flags(None),
            )
            permission.set_created_by(admin_id, admin_email)
            user.permissions = permission

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for flag, value in changes.items():
            setattr(permission, flag, value)
        permission.set_updated_by(admin_id, admin_email)
        safe_commit(self._db)

        logger.info("Staff permissions updated", staff_id=staff_id, tenant_id=tenant_id, changes=changes)
        return self._to_output(self._get_staff(staff_id, tenant_id))

    def deactivate(
        self,
        staff_id: int,
        tenant_id: int,
        admin_id: int,
        admin_email: str | None,
    ) -> None:
        user = self._get_staff(staff_id, tenant_id)
        user.soft_delete(admin_id, admin_email)
        for role in user.branch_roles:
            if role.is_active:
                role.soft_delete(admin_id, admin_email)
        safe_commit(self._db)
        logger.info("Staff deactivated", staff_id=staff_id, tenant_id=tenant_id, admin_id=admin_id)

    def get_permission(self, user_id: int, tenant_id: int) -> StaffPermission | None:
        return self._db.scalar(
            select(StaffPermission).where(
                StaffPermission.staff_user_id == user_id,
                StaffPermission.tenant_id == tenant_id,
                StaffPermission.is_active.is_(True),
            )
        )
