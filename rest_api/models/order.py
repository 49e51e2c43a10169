"""
Order Models: Order, OrderItem, OrderItemStatus.

Each line item's quantity is partitioned across preparation statuses by
OrderItemStatus rows (one row per status, quantity > 0). The sum of an
item's status rows always equals the item's quantity.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderSource, OrderStatus
from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .catalog import Product
    from .tenant import Branch, Tenant
    from .cash_closing import CashClosing


class Order(AuditMixin, Base):
    """
    A table order (or an order received from the delivery platform).
    Inherits: is_active, created_at, updated_at, deleted_at, *_by_id/email from AuditMixin.
    """

    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    table_label: Mapped[str] = mapped_column(Text, nullable=False)
    # Accent and case folded table label for public lookups
    table_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    status: Mapped[str] = mapped_column(Text, default=OrderStatus.PENDING, nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Filled when the order is delivered
    payment_method: Mapped[Optional[str]] = mapped_column(Text)
    customer_name: Mapped[Optional[str]] = mapped_column(Text)
    customer_document: Mapped[Optional[str]] = mapped_column(Text)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Cash reconciliation ("reciboDia"): once true the order belongs to a closed batch
    included_in_closing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cash_closing_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("cash_closing.id"), index=True
    )

    source: Mapped[str] = mapped_column(Text, default=OrderSource.LOCAL, nullable=False)
    external_order_id: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("total_cents >= 0", name="chk_order_total_non_negative"),
        UniqueConstraint("tenant_id", "external_order_id", name="uq_order_tenant_external_id"),
        Index("ix_order_pending_closing", "tenant_id", "branch_id", "status", "included_in_closing"),
    )

    tenant: Mapped["Tenant"] = relationship()
    branch: Mapped["Branch"] = relationship()
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    cash_closing: Mapped[Optional["CashClosing"]] = relationship(back_populates="orders")

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, table='{self.table_label}', status='{self.status}')>"


class OrderItem(Base):
    """
    A line of an order.

    product_id is nullable: when the product disappears the captured
    product_name/product_category/unit_price_cents snapshot stands in.
    """

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("product.id", ondelete="SET NULL"), index=True
    )
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_category: Mapped[Optional[str]] = mapped_column(Text)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="chk_order_item_quantity_positive"),
        CheckConstraint("unit_price_cents >= 0", name="chk_order_item_price_non_negative"),
    )

    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped[Optional["Product"]] = relationship()
    status_groups: Mapped[list["OrderItemStatus"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="OrderItemStatus.id",
    )

    @property
    def distribution(self) -> dict[str, int]:
        """Current status -> quantity mapping."""
        return {group.status: group.quantity for group in self.status_groups}


class OrderItemStatus(Base):
    """Units of one order item currently in one status."""

    __tablename__ = "order_item_status"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("order_item.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("order_item_id", "status", name="uq_order_item_status"),
        CheckConstraint("quantity > 0", name="chk_order_item_status_quantity_positive"),
    )

    item: Mapped["OrderItem"] = relationship(back_populates="status_groups")
