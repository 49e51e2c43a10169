"""
Stock Ledger - ingredient deduction for ordered products.

Deductions run inside the caller's transaction and never commit. Each
ingredient is decremented with a single conditional UPDATE so concurrent
orders cannot race past each other's sufficiency check:

    strict:  UPDATE ingredient SET stock = stock - :required
             WHERE id = :id AND stock >= :required
    ignore:  UPDATE ingredient SET stock = CASE WHEN stock > :required
                                                THEN stock - :required ELSE 0 END
             WHERE id = :id

In strict mode a zero row count raises InsufficientStockError; the caller
rolls back so no ingredient of the order is left deducted.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from rest_api.models import Ingredient, Product, RecipeLink
from shared.config.logging import stock_logger as logger
from shared.utils.exceptions import InsufficientStockError


@dataclass(frozen=True)
class StockDeduction:
    """One applied decrement."""

    ingredient_id: int
    ingredient_name: str
    required: int
    deducted: int
    remaining: int


@dataclass(frozen=True)
class StockAvailability:
    available: bool
    limiting_ingredient: str | None = None


class StockService:
    """Ingredient stock deduction and stock-based product availability."""

    def __init__(self, db: Session):
        self._db = db

    def _requirements(
        self,
        quantities: Mapping[int, int],
        tenant_id: int,
    ) -> dict[int, int]:
        """ingredient_id -> units required for the given product quantities."""
        if not quantities:
            return {}

        links = self._db.execute(
            select(RecipeLink.ingredient_id, RecipeLink.product_id, RecipeLink.quantity_required)
            .join(Ingredient, Ingredient.id == RecipeLink.ingredient_id)
            .where(
                RecipeLink.tenant_id == tenant_id,
                RecipeLink.product_id.in_(list(quantities.keys())),
                Ingredient.is_active.is_(True),
            )
        ).all()

        required: dict[int, int] = defaultdict(int)
        for ingredient_id, product_id, quantity_required in links:
            required[ingredient_id] += quantity_required * quantities[product_id]
        return dict(required)

    def deduct(
        self,
        items: Iterable[tuple[int, int]],
        tenant_id: int,
        *,
        ignore_insufficient_stock: bool = False,
    ) -> list[StockDeduction]:
        """
        Deduct the ingredients consumed by `items` ((product_id, quantity) pairs).

        Quantities of the same product are added together and requirements
        of the same ingredient are summed across products before the
        decrement, so each ingredient is touched exactly once.

        Raises:
            InsufficientStockError: strict mode and an ingredient holds less
                than required. Ingredients decremented before the failing one
                are only undone by the caller's rollback.
        """
        quantities: dict[int, int] = defaultdict(int)
        for product_id, quantity in items:
            if product_id is not None and quantity > 0:
                quantities[product_id] += quantity

        requirements = self._requirements(quantities, tenant_id)
        if not requirements:
            return []

        ingredients = {
            ing.id: ing
            for ing in self._db.scalars(
                select(Ingredient)
                .where(Ingredient.id.in_(list(requirements.keys())))
                .execution_options(populate_existing=True)
            )
        }

        applied: list[StockDeduction] = []
        # Fixed lock order across concurrent deductions
        for ingredient_id in sorted(requirements):
            required = requirements[ingredient_id]
            ingredient = ingredients[ingredient_id]
            before = ingredient.stock

            if ignore_insufficient_stock:
                stmt = (
                    update(Ingredient)
                    .where(Ingredient.id == ingredient_id)
                    .values(
                        stock=case(
                            (Ingredient.stock > required, Ingredient.stock - required),
                            else_=0,
                        )
                    )
                )
            else:
                stmt = (
                    update(Ingredient)
                    .where(Ingredient.id == ingredient_id, Ingredient.stock >= required)
                    .values(stock=Ingredient.stock - required)
                )

            result = self._db.execute(stmt.execution_options(synchronize_session=False))

            self._db.refresh(ingredient, attribute_names=["stock"])
            remaining = ingredient.stock

            if result.rowcount == 0:
                logger.warning(
                    "Insufficient stock",
                    ingredient_id=ingredient_id,
                    available=remaining,
                    required=required,
                    tenant_id=tenant_id,
                )
                raise InsufficientStockError(
                    ingredient.name,
                    available=remaining,
                    required=required,
                    tenant_id=tenant_id,
                )

            applied.append(
                StockDeduction(
                    ingredient_id=ingredient_id,
                    ingredient_name=ingredient.name,
                    required=required,
                    deducted=min(required, before),
                    remaining=remaining,
                )
            )

        logger.info(
            "Stock deducted",
            tenant_id=tenant_id,
            ingredients=len(applied),
            ignore_insufficient_stock=ignore_insufficient_stock,
        )
        return applied

    # =========================================================================
    # Availability
    # =========================================================================

    def availability(self, products: Iterable[Product]) -> dict[int, StockAvailability]:
        """
        Stock-based availability per product id.

        A product with recipe links is available only when every linked
        ingredient holds at least the quantity one unit consumes. Products
        without links fall back to their own `available` flag.
        """
        products = list(products)
        if not products:
            return {}

        rows = self._db.execute(
            select(
                RecipeLink.product_id,
                RecipeLink.quantity_required,
                Ingredient.name,
                Ingredient.stock,
            )
            .join(Ingredient, Ingredient.id == RecipeLink.ingredient_id)
            .where(
                RecipeLink.product_id.in_([p.id for p in products]),
                Ingredient.is_active.is_(True),
            )
            .order_by(RecipeLink.id)
        ).all()

        links_by_product: dict[int, list[tuple[int, str, int]]] = defaultdict(list)
        for product_id, quantity_required, name, stock in rows:
            links_by_product[product_id].append((quantity_required, name, stock))

        result: dict[int, StockAvailability] = {}
        for product in products:
            links = links_by_product.get(product.id)
            if not links:
                result[product.id] = StockAvailability(available=product.available)
                continue
            limiting = next(
                (name for quantity_required, name, stock in links if stock < quantity_required),
                None,
            )
            result[product.id] = StockAvailability(
                available=product.available and limiting is None,
                limiting_ingredient=limiting,
            )
        return result
