"""
Push notification Models: PushToken.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class PushToken(Base):
    """
    A customer device following the orders of one table.

    Deactivated when the customer unregisters or when a send reports the
    token as invalid.
    """

    __tablename__ = "push_token"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    token: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    # Null means "any site of the restaurant"
    branch_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("branch.id"))
    table_label: Mapped[str] = mapped_column(Text, nullable=False)
    table_key: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_push_token_lookup", "tenant_id", "table_key", "active"),
    )

    def __repr__(self) -> str:
        return f"<PushToken(id={self.id}, table='{self.table_label}', active={self.active})>"
