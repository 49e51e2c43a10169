"""
User, role and staff delegation models.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import ApprovalStatus
from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .tenant import Tenant


class User(AuditMixin, Base):
    """
    A staff account (admin, waiter or cashier) of one restaurant.
    Staff registering into an existing restaurant stay PENDING until an
    admin approves them.
    """

    __tablename__ = "app_user"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    # Login is by email alone, so it is unique across tenants
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password: Mapped[str] = mapped_column(Text, nullable=False)  # bcrypt hash
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    approval_status: Mapped[str] = mapped_column(
        Text, default=ApprovalStatus.APPROVED, nullable=False
    )
    # Role requested at registration, assigned on approval
    requested_role: Mapped[Optional[str]] = mapped_column(Text)
    requested_branch_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("branch.id")
    )

    tenant: Mapped["Tenant"] = relationship(back_populates="users")
    branch_roles: Mapped[list["UserBranchRole"]] = relationship(back_populates="user")
    permissions: Mapped[Optional["StaffPermission"]] = relationship(
        back_populates="staff_user",
        foreign_keys="StaffPermission.staff_user_id",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', name='{self.name}')>"


class UserBranchRole(AuditMixin, Base):
    """Maps users to branches with a role (ADMIN, WAITER, CASHIER)."""

    __tablename__ = "user_branch_role"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, index=True
    )
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "branch_id", name="uq_user_branch_role"),
    )

    user: Mapped["User"] = relationship(back_populates="branch_roles")


class StaffPermission(AuditMixin, Base):
    """
    Delegation record from an admin to one staff member.
    Each column is a per-action flag; admins never need one.
    """

    __tablename__ = "staff_permission"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    admin_user_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), index=True
    )
    staff_user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, unique=True
    )

    view_products: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    create_products: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edit_products: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    delete_products: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    view_orders: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    create_orders: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    edit_orders: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    cancel_orders: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    view_expenses: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    create_expenses: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edit_expenses: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    delete_expenses: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    view_reports: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    view_cash_closings: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    staff_user: Mapped["User"] = relationship(
        back_populates="permissions", foreign_keys=[staff_user_id]
    )

    def allows(self, flag: str) -> bool:
        return bool(getattr(self, flag, False))
