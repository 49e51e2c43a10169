"""
Order Domain Service.

Handles the order aggregate: creation with stock deduction, overall and
per-item status transitions, item replacement, listing and statistics.

Every write runs in one transaction. Stock deduction and the outbox rows
for push/platform side effects are part of that transaction, so a failure
leaves neither a half-created order nor a half-deducted stock.

Usage:
    from rest_api.services.domain import OrderService

    service = OrderService(db)
    order = service.create(tenant_id, branch_id, request, user_id, user_email)
    order, all_delivered = service.set_item_status(order.id, 0, tenant_id, branch_id, body)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import Order, OrderItem, OrderItemStatus, Product
from rest_api.services.crud.repository import BranchRepository
from rest_api.services.domain import status_groups
from rest_api.services.domain.stock_service import StockService
from rest_api.services.domain.tenant_service import TenantService
from rest_api.services.events.outbox_service import write_order_status_events
from shared.config.constants import OrderSource, OrderStatus
from shared.config.logging import orders_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    InvalidStateError,
    NotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    CreateOrderRequest,
    OrderItemInput,
    OrderItemOutput,
    OrderOutput,
    OrderStatsOutput,
    StatusGroupOutput,
    UpdateItemStatusRequest,
    UpdateOrderRequest,
    UpdateOrderStatusRequest,
)
from shared.utils.validators import normalize_table_label

ORDER_LOAD_OPTIONS = [
    selectinload(Order.items).selectinload(OrderItem.status_groups),
    selectinload(Order.items).selectinload(OrderItem.product),
]


@dataclass
class OrderLine:
    """A resolved line ready to become an OrderItem."""

    product_id: int | None
    product_name: str
    product_category: str | None
    unit_price_cents: int
    quantity: int


# =============================================================================
# Output building
# =============================================================================


def build_item_output(index: int, item: OrderItem) -> OrderItemOutput:
    product = item.product
    live = product is not None and product.is_active
    return OrderItemOutput(
        index=index,
        product_id=item.product_id,
        product_name=product.name if live else item.product_name,
        product_category=product.category if live else item.product_category,
        unit_price_cents=item.unit_price_cents,
        quantity=item.quantity,
        subtotal_cents=item.unit_price_cents * item.quantity,
        status_groups=[
            StatusGroupOutput(status=status, quantity=quantity)
            for status, quantity in status_groups.as_groups(item.distribution)
        ],
        product_deleted=product is not None and not product.is_active,
    )


def build_order_output(order: Order) -> OrderOutput:
    return OrderOutput(
        id=order.id,
        tenant_id=order.tenant_id,
        branch_id=order.branch_id,
        table=order.table_label,
        status=order.status,
        notes=order.notes,
        items=[build_item_output(i, item) for i, item in enumerate(order.items)],
        total_cents=order.total_cents,
        payment_method=order.payment_method,
        customer_name=order.customer_name,
        customer_document=order.customer_document,
        included_in_closing=order.included_in_closing,
        cash_closing_id=order.cash_closing_id,
        source=order.source,
        external_order_id=order.external_order_id,
        created_at=order.created_at,
        delivered_at=order.delivered_at,
    )


def apply_distribution(item: OrderItem, distribution: dict[str, int]) -> None:
    """
    Reconcile an item's status rows with a distribution.

    Existing rows are updated in place and only vanished statuses are
    deleted, so one flush never inserts a (item, status) pair that is
    still present.
    """
    existing = {group.status: group for group in item.status_groups}
    for status, group in existing.items():
        if distribution.get(status, 0) > 0:
            group.quantity = distribution[status]
        else:
            item.status_groups.remove(group)
    for status, quantity in status_groups.as_groups(distribution):
        if status not in existing:
            item.status_groups.append(OrderItemStatus(status=status, quantity=quantity))


def _order_total(items: Sequence[OrderItem]) -> int:
    return sum(item.unit_price_cents * item.quantity for item in items)


def _period_start(period: str | None) -> datetime | None:
    now = datetime.now(timezone.utc)
    if period == "hoy":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "semana":
        return now - timedelta(days=7)
    if period == "mes":
        return now - timedelta(days=30)
    return None


class OrderService:
    """
    Domain service for the order aggregate.

    Business rules:
    - An order needs at least one item; products must be active and available
    - total_cents always equals Σ unit_price × quantity
    - Each item's status rows always sum to the item quantity
    - Orders absorbed by a cash closing can no longer be edited or deleted
    """

    def __init__(self, db: Session):
        self._db = db
        self._repo = BranchRepository(Order, db)
        self._stock = StockService(db)

    # =========================================================================
    # Loading
    # =========================================================================

    def get_entity(
        self,
        order_id: int,
        tenant_id: int,
        branch_id: int,
        *,
        for_update: bool = False,
    ) -> Order:
        order = self._repo.find_in_branch(
            order_id,
            branch_id,
            tenant_id,
            options=ORDER_LOAD_OPTIONS,
            for_update=for_update,
        )
        if order is None:
            raise OrderNotFoundError(order_id, tenant_id=tenant_id, branch_id=branch_id)
        return order

    def get(self, order_id: int, tenant_id: int, branch_id: int) -> OrderOutput:
        return build_order_output(self.get_entity(order_id, tenant_id, branch_id))

    def list_orders(
        self,
        tenant_id: int,
        branch_id: int,
        *,
        status: str | None = None,
        table: str | None = None,
        period: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[OrderOutput]:
        filters = []
        if status:
            filters.append(Order.status == status_groups.validate_order_status(status))
        if table:
            filters.append(Order.table_key == normalize_table_label(table))
        start = _period_start(period)
        if start is not None:
            filters.append(Order.created_at >= start)

        orders = self._repo.find_by_branch(
            branch_id,
            tenant_id,
            filters=filters,
            options=ORDER_LOAD_OPTIONS,
            order_by=(Order.created_at.desc(), Order.id.desc()),
            limit=limit,
            offset=offset,
        )
        return [build_order_output(o) for o in orders]

    # =========================================================================
    # Create
    # =========================================================================

    def resolve_lines(
        self,
        tenant_id: int,
        items: Sequence[OrderItemInput],
        *,
        carried_product_ids: set[int] | None = None,
    ) -> list[OrderLine]:
        """
        Snapshot the catalog data of the requested products.

        Products listed in `carried_product_ids` (already on the order) are
        accepted even if they were deleted or made unavailable since.

        Raises:
            ValidationError: empty list or an unavailable product.
            NotFoundError: a product outside the tenant.
        """
        if not items:
            raise ValidationError("El pedido debe tener al menos un producto")

        carried = carried_product_ids or set()
        product_ids = {line.product_id for line in items}
        products = {
            p.id: p
            for p in self._db.scalars(
                select(Product).where(
                    Product.tenant_id == tenant_id,
                    Product.id.in_(product_ids),
                )
            )
        }

        lines = []
        for line in items:
            product = products.get(line.product_id)
            if product is None:
                raise NotFoundError("Producto", line.product_id, tenant_id=tenant_id)
            if line.product_id not in carried:
                if not product.is_active:
                    raise NotFoundError("Producto", line.product_id, tenant_id=tenant_id)
                if not product.available:
                    raise ValidationError(
                        f"El producto '{product.name}' no está disponible",
                        product_id=product.id,
                    )
            lines.append(
                OrderLine(
                    product_id=product.id,
                    product_name=product.name,
                    product_category=product.category,
                    unit_price_cents=product.price_cents,
                    quantity=line.quantity,
                )
            )
        return lines

    def create(
        self,
        tenant_id: int,
        branch_id: int,
        request: CreateOrderRequest,
        user_id: int | None,
        user_email: str | None,
    ) -> OrderOutput:
        """
        Create an order and deduct the ingredients it consumes.

        Raises:
            InsufficientStockError: strict mode and an ingredient runs short;
                nothing is persisted.
        """
        lines = self.resolve_lines(tenant_id, request.items)
        order = self.create_from_lines(
            tenant_id,
            branch_id,
            table=request.table,
            lines=lines,
            notes=request.notes,
            ignore_insufficient_stock=request.ignore_insufficient_stock,
            user_id=user_id,
            user_email=user_email,
        )
        return build_order_output(order)

    def create_from_lines(
        self,
        tenant_id: int,
        branch_id: int,
        *,
        table: str,
        lines: Sequence[OrderLine],
        notes: str | None = None,
        ignore_insufficient_stock: bool = False,
        source: str = OrderSource.LOCAL,
        external_order_id: str | None = None,
        payment_method: str | None = None,
        customer_name: str | None = None,
        total_cents: int | None = None,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> Order:
        if not lines:
            raise ValidationError("El pedido debe tener al menos un producto")

        order = Order(
            tenant_id=tenant_id,
            branch_id=branch_id,
            table_label=table.strip(),
            table_key=normalize_table_label(table),
            status=OrderStatus.PENDING,
            notes=notes,
            included_in_closing=False,
            source=source,
            external_order_id=external_order_id,
            payment_method=payment_method,
            customer_name=customer_name,
        )
        order.set_created_by(user_id, user_email)

        for position, line in enumerate(lines):
            item = OrderItem(
                tenant_id=tenant_id,
                position=position,
                product_id=line.product_id,
                product_name=line.product_name,
                product_category=line.product_category,
                unit_price_cents=line.unit_price_cents,
                quantity=line.quantity,
            )
            apply_distribution(item, status_groups.initial(line.quantity))
            order.items.append(item)

        # Platform orders carry their own charged total
        order.total_cents = total_cents if total_cents is not None else _order_total(order.items)
        self._db.add(order)

        try:
            self._db.flush()
            self._stock.deduct(
                [(line.product_id, line.quantity) for line in lines if line.product_id is not None],
                tenant_id,
                ignore_insufficient_stock=ignore_insufficient_stock,
            )
            safe_commit(self._db)
        except Exception:
            self._db.rollback()
            raise

        logger.info(
            "Order created",
            order_id=order.id,
            tenant_id=tenant_id,
            branch_id=branch_id,
            items=len(lines),
            total_cents=order.total_cents,
            source=source,
        )
        return self.get_entity(order.id, tenant_id, branch_id)

    # =========================================================================
    # Status transitions
    # =========================================================================

    def _ensure_open(self, order: Order) -> None:
        if order.included_in_closing:
            raise InvalidStateError(
                "El pedido ya fue incluido en una liquidación y no puede modificarse",
                order_id=order.id,
                cash_closing_id=order.cash_closing_id,
            )

    def _ensure_not_canceled(self, order: Order) -> None:
        if order.status == OrderStatus.CANCELED:
            raise InvalidStateError(
                "El pedido está cancelado y no puede modificarse",
                order_id=order.id,
            )

    def set_overall_status(
        self,
        order_id: int,
        tenant_id: int,
        branch_id: int,
        request: UpdateOrderStatusRequest,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> OrderOutput:
        """
        Set the order-level status.

        apply_to_all_items collapses every item into the new status; it has
        no effect for "cancelado", which is not an item status.
        """
        new_status = status_groups.validate_order_status(request.status)
        order = self.get_entity(order_id, tenant_id, branch_id, for_update=True)
        self._ensure_open(order)
        self._ensure_not_canceled(order)

        previous = order.status
        order.status = new_status

        if request.apply_to_all_items and new_status in OrderStatus.ITEM:
            for item in order.items:
                apply_distribution(item, status_groups.collapse(item.quantity, new_status))

        if new_status == OrderStatus.DELIVERED:
            order.delivered_at = datetime.now(timezone.utc)
            if request.payment_method is not None:
                order.payment_method = request.payment_method
            if request.customer_name is not None:
                order.customer_name = request.customer_name
            if request.customer_document is not None:
                order.customer_document = request.customer_document
        else:
            order.delivered_at = None

        order.set_updated_by(user_id, user_email)
        write_order_status_events(self._db, order)
        safe_commit(self._db)

        logger.info(
            "Order status changed",
            order_id=order_id,
            tenant_id=tenant_id,
            from_status=previous,
            to_status=new_status,
            apply_to_all_items=request.apply_to_all_items,
        )
        return self.get(order_id, tenant_id, branch_id)

    def set_item_status(
        self,
        order_id: int,
        item_index: int,
        tenant_id: int,
        branch_id: int,
        request: UpdateItemStatusRequest,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> tuple[OrderOutput, bool]:
        """
        Move units of one item between statuses.

        Returns (order, all_delivered). The order-level status is never
        changed here.
        """
        order = self.get_entity(order_id, tenant_id, branch_id, for_update=True)
        self._ensure_open(order)
        self._ensure_not_canceled(order)

        if item_index < 0 or item_index >= len(order.items):
            raise ValidationError(
                f"Índice de item inválido: {item_index}",
                order_id=order_id,
                item_count=len(order.items),
            )

        item = order.items[item_index]
        distribution = status_groups.move(
            item.distribution,
            request.quantity,
            request.from_status,
            request.to_status,
        )
        apply_distribution(item, distribution)
        order.set_updated_by(user_id, user_email)
        safe_commit(self._db)

        logger.info(
            "Order item status changed",
            order_id=order_id,
            item_index=item_index,
            quantity=request.quantity,
            from_status=request.from_status,
            to_status=request.to_status,
        )

        order = self.get_entity(order_id, tenant_id, branch_id)
        all_delivered = all(status_groups.is_fully_delivered(i.distribution) for i in order.items)
        return build_order_output(order), all_delivered

    # =========================================================================
    # Update / delete
    # =========================================================================

    def update(
        self,
        order_id: int,
        tenant_id: int,
        branch_id: int,
        request: UpdateOrderRequest,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> OrderOutput:
        """
        Replace table, notes and/or items.

        Only positive per-product quantity deltas are deducted from stock;
        reductions return nothing. An item keeping its product at the same
        position keeps its status distribution (resized).
        """
        order = self.get_entity(order_id, tenant_id, branch_id, for_update=True)
        self._ensure_open(order)
        self._ensure_not_canceled(order)

        if request.table is not None:
            order.table_label = request.table.strip()
            order.table_key = normalize_table_label(request.table)
        if request.notes is not None:
            order.notes = request.notes

        deltas: list[tuple[int, int]] = []
        if request.items is not None:
            old_items = list(order.items)
            carried = {
                old.product_id
                for position, old in enumerate(old_items)
                if old.product_id is not None
                and position < len(request.items)
                and request.items[position].product_id == old.product_id
            }
            lines = self.resolve_lines(tenant_id, request.items, carried_product_ids=carried)

            previous: dict[int, int] = defaultdict(int)
            for old in old_items:
                if old.product_id is not None:
                    previous[old.product_id] += old.quantity
            requested: dict[int, int] = defaultdict(int)
            for line in lines:
                requested[line.product_id] += line.quantity
            deltas = [
                (product_id, quantity - previous.get(product_id, 0))
                for product_id, quantity in requested.items()
                if quantity > previous.get(product_id, 0)
            ]

            kept: list[OrderItem] = []
            for position, line in enumerate(lines):
                old = old_items[position] if position < len(old_items) else None
                if old is not None and old.product_id == line.product_id:
                    old.quantity = line.quantity
                    apply_distribution(old, status_groups.resize(old.distribution, line.quantity))
                    kept.append(old)
                    continue
                item = OrderItem(
                    tenant_id=tenant_id,
                    position=position,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    product_category=line.product_category,
                    unit_price_cents=line.unit_price_cents,
                    quantity=line.quantity,
                )
                apply_distribution(item, status_groups.initial(line.quantity))
                kept.append(item)

            for old in old_items:
                if not any(old is k for k in kept):
                    order.items.remove(old)
            for item in kept:
                if not any(item is existing for existing in order.items):
                    order.items.append(item)

            order.total_cents = _order_total(kept)

        order.set_updated_by(user_id, user_email)

        try:
            self._db.flush()
            if deltas:
                self._stock.deduct(
                    deltas,
                    tenant_id,
                    ignore_insufficient_stock=request.ignore_insufficient_stock,
                )
            safe_commit(self._db)
        except Exception:
            self._db.rollback()
            raise

        logger.info(
            "Order updated",
            order_id=order_id,
            tenant_id=tenant_id,
            stock_deltas=len(deltas),
        )
        return self.get(order_id, tenant_id, branch_id)

    def delete(
        self,
        order_id: int,
        tenant_id: int,
        branch_id: int,
        user_id: int | None = None,
        user_email: str | None = None,
    ) -> None:
        order = self.get_entity(order_id, tenant_id, branch_id, for_update=True)
        self._ensure_open(order)
        order.soft_delete(user_id, user_email)
        safe_commit(self._db)
        logger.info("Order deleted", order_id=order_id, tenant_id=tenant_id, user_id=user_id)

    # =========================================================================
    # Reports and public lookup
    # =========================================================================

    def stats(self, tenant_id: int, branch_id: int) -> OrderStatsOutput:
        """Today's order count, sales (excluding cancelled) and count by status."""
        start = _period_start("hoy")
        rows = self._db.execute(
            select(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total_cents), 0))
            .where(
                Order.tenant_id == tenant_id,
                Order.branch_id == branch_id,
                Order.is_active.is_(True),
                Order.created_at >= start,
            )
            .group_by(Order.status)
        ).all()

        by_status = {status: count for status, count, _ in rows}
        sales = sum(total for status, _, total in rows if status != OrderStatus.CANCELED)
        return OrderStatsOutput(
            orders_today=sum(by_status.values()),
            sales_today_cents=int(sales),
            by_status=by_status,
        )

    def find_for_table(
        self,
        table: str,
        restaurant: str | None,
        branch: str | None = None,
    ) -> OrderOutput:
        """
        Latest active order of a table, else its latest order.

        Raises:
            ValidationError: restaurant missing.
            NotFoundError: unknown restaurant or no order for the table.
        """
        if not restaurant or not restaurant.strip():
            raise ValidationError("El nombre del restaurante es obligatorio")

        tenant, site = TenantService(self._db).resolve(restaurant, branch)
        base = (
            select(Order)
            .options(*ORDER_LOAD_OPTIONS)
            .where(
                Order.tenant_id == tenant.id,
                Order.table_key == normalize_table_label(table),
                Order.is_active.is_(True),
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(1)
        )
        if site is not None:
            base = base.where(Order.branch_id == site.id)

        order = self._db.scalar(base.where(Order.status.in_(OrderStatus.ACTIVE)))
        if order is None:
            order = self._db.scalar(base)
        if order is None:
            raise NotFoundError("Pedido para esta mesa", table=table, tenant_id=tenant.id)
        return build_order_output(order)
