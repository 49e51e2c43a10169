"""
Expense Models: Expense and ExpenseLine.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .cash_closing import CashClosing


class Expense(AuditMixin, Base):
    """
    A dated expense record with one or more lines.
    total_cents is always the sum of its lines.
    """

    __tablename__ = "expense"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    expense_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    included_in_closing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cash_closing_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("cash_closing.id"), index=True
    )

    lines: Mapped[list["ExpenseLine"]] = relationship(
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseLine.position",
    )
    cash_closing: Mapped[Optional["CashClosing"]] = relationship(back_populates="expenses")


class ExpenseLine(Base):
    __tablename__ = "expense_line"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    expense_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("expense.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="chk_expense_line_amount_non_negative"),
    )

    expense: Mapped["Expense"] = relationship(back_populates="lines")
