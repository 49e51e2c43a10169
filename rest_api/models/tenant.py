"""
Multi-Tenancy Models: Tenant (restaurant) and Branch (site).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .user import User


class Tenant(AuditMixin, Base):
    """
    A restaurant. Every catalog, order, expense and cash record belongs to
    exactly one tenant.
    Inherits: is_active, created_at, updated_at, deleted_at, *_by_id/email from AuditMixin.
    """

    __tablename__ = "tenant"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    logo: Mapped[Optional[str]] = mapped_column(Text)

    branches: Mapped[list["Branch"]] = relationship(back_populates="tenant")
    users: Mapped[list["User"]] = relationship(back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name='{self.name}', slug='{self.slug}')>"


class Branch(AuditMixin, Base):
    """
    A site ("sede") of a restaurant. Orders, expenses and cash closings are
    scoped to a branch; catalog and ingredients are shared by the tenant.
    """

    __tablename__ = "branch"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_branch_tenant_slug"),
    )

    tenant: Mapped["Tenant"] = relationship(back_populates="branches")

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name='{self.name}', slug='{self.slug}', tenant_id={self.tenant_id})>"
