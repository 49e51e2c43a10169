"""
Delivery platform (Mandao) inbound orders and catalog availability.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rest_api.models import Order, Product
from rest_api.services.domain.order_service import OrderLine, OrderService, build_order_output
from rest_api.services.domain.stock_service import StockService
from rest_api.services.domain.tenant_service import TenantService
from shared.config.constants import (
    EXTERNAL_TABLE_LABEL,
    OrderSource,
    PaymentMethod,
    ProductCategory,
)
from shared.config.logging import mandao_logger as logger
from shared.utils.exceptions import ConflictError
from shared.utils.schemas import (
    ExternalOrderRequest,
    OrderOutput,
    ProductAvailabilityOutput,
)


class ExternalOrderService:
    """Materializes platform orders as local orders with source "mandao"."""

    def __init__(self, db: Session):
        self._db = db
        self._tenants = TenantService(db)
        self._orders = OrderService(db)

    def _match_products(self, tenant_id: int, names: set[str]) -> dict[str, Product]:
        """Catalog products keyed by their trimmed, lowercased name."""
        if not names:
            return {}
        products = self._db.scalars(
            select(Product)
            .where(
                Product.tenant_id == tenant_id,
                Product.is_active.is_(True),
                func.lower(func.trim(Product.name)).in_(names),
            )
            .order_by(Product.id)
        ).all()
        matched: dict[str, Product] = {}
        for product in products:
            matched.setdefault(product.name.strip().lower(), product)
        return matched

    def create_order(self, request: ExternalOrderRequest) -> OrderOutput:
        """
        Create the local order for a platform order.

        Items are matched to the catalog by case-insensitive trimmed name;
        unmatched items keep the platform's name and price under the
        "Mandao" category. Stock shortfalls never reject a platform order.

        Raises:
            NotFoundError: unknown restaurant.
            ConflictError: the external id was already received.
        """
        tenant, site = self._tenants.resolve(request.restaurant, request.branch)
        if site is None:
            site = self._tenants.get_or_create_branch(tenant.id, None)

        duplicate = self._db.scalar(
            select(Order.id).where(
                Order.tenant_id == tenant.id,
                Order.external_order_id == request.external_order_id,
            )
        )
        if duplicate is not None:
            raise ConflictError(
                f"El pedido externo {request.external_order_id} ya fue registrado",
                order_id=duplicate,
                tenant_id=tenant.id,
            )

        matched = self._match_products(
            tenant.id, {item.name.strip().lower() for item in request.items}
        )

        lines = []
        for item in request.items:
            name = item.name.strip()
            product = matched.get(name.lower())
            lines.append(
                OrderLine(
                    product_id=product.id if product else None,
                    product_name=name,
                    product_category=product.category if product else ProductCategory.EXTERNAL,
                    unit_price_cents=item.price_cents,
                    quantity=item.quantity,
                )
            )

        notes = f"{request.notes} | ID Mandao: {request.external_order_id}" if request.notes \
            else f"ID Mandao: {request.external_order_id}"

        try:
            order = self._orders.create_from_lines(
                tenant.id,
                site.id,
                table=EXTERNAL_TABLE_LABEL,
                lines=lines,
                notes=notes,
                ignore_insufficient_stock=True,
                source=OrderSource.MANDAO,
                external_order_id=request.external_order_id,
                payment_method=request.payment_method or PaymentMethod.CASH,
                customer_name=request.customer_name,
                total_cents=request.total_cents,
            )
        except IntegrityError:
            # Concurrent delivery of the same platform order
            raise ConflictError(
                f"El pedido externo {request.external_order_id} ya fue registrado",
                tenant_id=tenant.id,
            )

        logger.info(
            "Mandao order received",
            order_id=order.id,
            external_order_id=request.external_order_id,
            tenant_id=tenant.id,
            matched=sum(1 for line in lines if line.product_id is not None),
            unmatched=sum(1 for line in lines if line.product_id is None),
        )
        return build_order_output(order)

    def product_availability(self, restaurant: str) -> list[ProductAvailabilityOutput]:
        """Catalog with availability derived from ingredient stock."""
        tenant, _ = self._tenants.resolve(restaurant)
        products = self._db.scalars(
            select(Product)
            .where(Product.tenant_id == tenant.id, Product.is_active.is_(True))
            .order_by(Product.name)
        ).all()

        availability = StockService(self._db).availability(products)
        return [
            ProductAvailabilityOutput(
                id=p.id,
                name=p.name,
                price_cents=p.price_cents,
                category=p.category,
                description=p.description,
                image=p.image,
                available=p.available,
                available_by_stock=availability[p.id].available,
                limiting_ingredient=availability[p.id].limiting_ingredient,
            )
            for p in products
        ]
