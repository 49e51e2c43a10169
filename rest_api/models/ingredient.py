"""
Ingredient Models: Ingredient ("alimento") and RecipeLink.

A recipe link says how many units of an ingredient one unit of a product
consumes. One ingredient may back several products and one product may
consume several ingredients.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .catalog import Product


class Ingredient(AuditMixin, Base):
    """Stock-tracked raw material of a restaurant."""

    __tablename__ = "ingredient"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_cost_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="chk_ingredient_stock_non_negative"),
        CheckConstraint("unit_cost_cents >= 0", name="chk_ingredient_cost_non_negative"),
    )

    recipe_links: Mapped[list["RecipeLink"]] = relationship(
        back_populates="ingredient",
        cascade="all, delete-orphan",
        order_by="RecipeLink.id",
    )

    def __repr__(self) -> str:
        return f"<Ingredient(id={self.id}, name='{self.name}', stock={self.stock})>"


class RecipeLink(Base):
    """Quantity of an ingredient required per unit of a product."""

    __tablename__ = "recipe_link"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    ingredient_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("ingredient.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity_required: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("ingredient_id", "product_id", name="uq_recipe_link_ingredient_product"),
        CheckConstraint("quantity_required >= 1", name="chk_recipe_link_quantity_positive"),
    )

    ingredient: Mapped["Ingredient"] = relationship(back_populates="recipe_links")
    product: Mapped["Product"] = relationship(back_populates="recipe_links")
