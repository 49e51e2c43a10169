"""
Ingredient ("alimento") Service.

CRUD for stock-tracked ingredients and their recipe links to products.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import Ingredient, Product, RecipeLink
from rest_api.services.crud.repository import TenantRepository
from shared.config.logging import stock_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import (
    IngredientCreate,
    IngredientOutput,
    IngredientUpdate,
    RecipeLinkInput,
    RecipeLinkOutput,
)

INGREDIENT_LOAD_OPTIONS = [
    selectinload(Ingredient.recipe_links).selectinload(RecipeLink.product),
]


def build_ingredient_output(ingredient: Ingredient) -> IngredientOutput:
    return IngredientOutput(
        id=ingredient.id,
        name=ingredient.name,
        stock=ingredient.stock,
        unit_cost_cents=ingredient.unit_cost_cents,
        products=[
            RecipeLinkOutput(
                product_id=link.product_id,
                product_name=link.product.name if link.product else None,
                quantity_required=link.quantity_required,
            )
            for link in ingredient.recipe_links
        ],
        created_at=ingredient.created_at,
    )


class IngredientService:
    """
    Business rules:
    - Linked products must belong to the same tenant and be active
    - One link per product and ingredient
    - Stock is set directly here; orders only ever decrement it
    """

    def __init__(self, db: Session):
        self._db = db
        self._repo = TenantRepository(Ingredient, db)

    def _get(self, ingredient_id: int, tenant_id: int) -> Ingredient:
        ingredient = self._repo.find_by_id(
            ingredient_id, tenant_id, options=INGREDIENT_LOAD_OPTIONS
        )
        if ingredient is None:
            raise NotFoundError("Alimento", ingredient_id, tenant_id=tenant_id)
        return ingredient

    def _validate_links(self, links: list[RecipeLinkInput], tenant_id: int) -> None:
        product_ids = [link.product_id for link in links]
        if len(set(product_ids)) != len(product_ids):
            raise ValidationError("Un producto no puede vincularse dos veces al mismo alimento")

        found = set(
            self._db.scalars(
                select(Product.id).where(
                    Product.tenant_id == tenant_id,
                    Product.is_active.is_(True),
                    Product.id.in_(product_ids),
                )
            )
        )
        missing = [pid for pid in product_ids if pid not in found]
        if missing:
            raise NotFoundError("Producto", missing[0], tenant_id=tenant_id)

    def _replace_links(self, ingredient: Ingredient, links: list[RecipeLinkInput], tenant_id: int) -> None:
        """Update links in place so (ingredient, product) pairs are never inserted twice."""
        existing = {link.product_id: link for link in ingredient.recipe_links}
        wanted = {link.product_id: link.quantity_required for link in links}

        for product_id, link in existing.items():
            if product_id in wanted:
                link.quantity_required = wanted[product_id]
            else:
                ingredient.recipe_links.remove(link)
        for product_id, quantity in wanted.items():
            if product_id not in existing:
                ingredient.recipe_links.append(
                    RecipeLink(tenant_id=tenant_id, product_id=product_id, quantity_required=quantity)
                )

    # =========================================================================
    # Operations
    # =========================================================================

    def list_ingredients(self, tenant_id: int) -> list[IngredientOutput]:
        ingredients = self._repo.find_all(
            tenant_id, options=INGREDIENT_LOAD_OPTIONS, order_by=Ingredient.name
        )
        return [build_ingredient_output(i) for i in ingredients]

    def get(self, ingredient_id: int, tenant_id: int) -> IngredientOutput:
        return build_ingredient_output(self._get(ingredient_id, tenant_id))

    def create(
        self,
        data: IngredientCreate,
        tenant_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> IngredientOutput:
        self._validate_links(data.products, tenant_id)

        ingredient = Ingredient(
            tenant_id=tenant_id,
            name=data.name.strip(),
            stock=data.stock,
            unit_cost_cents=data.unit_cost_cents,
        )
        ingredient.set_created_by(user_id, user_email)
        self._replace_links(ingredient, data.products, tenant_id)
        self._db.add(ingredient)
        safe_commit(self._db)

        logger.info(
            "Ingredient created",
            ingredient_id=ingredient.id,
            tenant_id=tenant_id,
            stock=data.stock,
            links=len(data.products),
        )
        return self.get(ingredient.id, tenant_id)

    def update(
        self,
        ingredient_id: int,
        data: IngredientUpdate,
        tenant_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> IngredientOutput:
        ingredient = self._get(ingredient_id, tenant_id)

        if data.name is not None:
            ingredient.name = data.name.strip()
        if data.stock is not None:
            ingredient.stock = data.stock
        if data.unit_cost_cents is not None:
            ingredient.unit_cost_cents = data.unit_cost_cents
        if data.products is not None:
            self._validate_links(data.products, tenant_id)
            self._replace_links(ingredient, data.products, tenant_id)

        ingredient.set_updated_by(user_id, user_email)
        safe_commit(self._db)

        logger.info("Ingredient updated", ingredient_id=ingredient_id, tenant_id=tenant_id)
        return self.get(ingredient_id, tenant_id)

    def delete(
        self,
        ingredient_id: int,
        tenant_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> None:
        ingredient = self._get(ingredient_id, tenant_id)
        ingredient.soft_delete(user_id, user_email)
        safe_commit(self._db)
        logger.info("Ingredient deleted", ingredient_id=ingredient_id, tenant_id=tenant_id)
