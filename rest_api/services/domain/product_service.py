"""
Product Service.

Handles the restaurant catalog:
- Product CRUD (tenant scoped)
- Soft delete, so historical order items keep resolving their product
- Public catalog listing for customer ordering

Usage:
    from rest_api.services.domain import ProductService

    service = ProductService(db)
    products = service.list_products(tenant_id, category="Bebidas")
    product = service.create(data, tenant_id, user_id, user_email)
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rest_api.models import Product
from rest_api.services.base_service import TenantCRUDService
from rest_api.services.domain.tenant_service import TenantService
from shared.config.logging import get_logger
from shared.utils.exceptions import DuplicateEntityError
from shared.utils.schemas import ProductOutput

logger = get_logger(__name__)


class ProductService(TenantCRUDService[Product, ProductOutput]):
    """
    Service for product management.

    Business rules:
    - Product names are unique (case-insensitive) among a tenant's active products
    - Prices are integer cents ≥ 0
    - Deletion is soft
    """

    def __init__(self, db: Session):
        super().__init__(
            db=db,
            model=Product,
            output_schema=ProductOutput,
            entity_name="Producto",
        )

    # =========================================================================
    # Query Methods
    # =========================================================================

    def list_products(
        self,
        tenant_id: int,
        *,
        category: str | None = None,
        available: bool | None = None,
    ) -> list[ProductOutput]:
        filters = []
        if category:
            filters.append(Product.category == category)
        if available is not None:
            filters.append(Product.available.is_(available))
        return self.list_all(tenant_id, filters=filters, order_by=(Product.category, Product.name))

    def list_public(self, restaurant: str, branch: str | None = None) -> list[ProductOutput]:
        """
        Available products of a restaurant, for the customer menu.

        The catalog is shared by all sites; an unknown site name is still
        rejected so typos surface to the customer app.
        """
        tenant, _ = TenantService(self._db).resolve(restaurant, branch)
        return self.list_products(tenant.id, available=True)

    # =========================================================================
    # Validation Hooks
    # =========================================================================

    def _name_taken(self, tenant_id: int, name: str, exclude_id: int | None = None) -> bool:
        query = select(Product.id).where(
            Product.tenant_id == tenant_id,
            Product.is_active.is_(True),
            func.lower(Product.name) == name.strip().lower(),
        )
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        return self._db.scalar(query) is not None

    def _check_create(self, data: dict[str, Any], tenant_id: int) -> None:
        data["name"] = data["name"].strip()
        if self._name_taken(tenant_id, data["name"]):
            raise DuplicateEntityError("Producto", data["name"], tenant_id=tenant_id)

    def _check_update(self, entity: Product, data: dict[str, Any], tenant_id: int) -> None:
        if data.get("name"):
            data["name"] = data["name"].strip()
            if self._name_taken(tenant_id, data["name"], exclude_id=entity.id):
                raise DuplicateEntityError("Producto", data["name"], tenant_id=tenant_id)
