"""
Cash reconciliation Models: CashClosing ("liquidación") and CashMovement.

A closing is created once and never reopened. It owns the delivered orders
and expenses it absorbed (their included_in_closing flag is set in the same
transaction).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .expense import Expense
    from .order import Order


class CashClosing(AuditMixin, Base):
    __tablename__ = "cash_closing"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    closed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    opening_cash_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    income_total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expense_total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    movements_net_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    closing_cash_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    order_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expense_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    observations: Mapped[Optional[str]] = mapped_column(Text)
    closed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    orders: Mapped[list["Order"]] = relationship(back_populates="cash_closing")
    expenses: Mapped[list["Expense"]] = relationship(back_populates="cash_closing")
    movements: Mapped[list["CashMovement"]] = relationship(
        back_populates="cash_closing",
        cascade="all, delete-orphan",
        order_by="CashMovement.id",
    )


class CashMovement(Base):
    """Manual deposit ("ingreso") or withdrawal ("retiro") recorded at close-out."""

    __tablename__ = "cash_movement"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    cash_closing_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("cash_closing.id", ondelete="CASCADE"), nullable=False, index=True
    )
    movement_type: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="chk_cash_movement_amount_non_negative"),
    )

    cash_closing: Mapped["CashClosing"] = relationship(back_populates="movements")
