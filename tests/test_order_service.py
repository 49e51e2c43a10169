"""
Tests for OrderService and StockService.

Tests verify:
- Order creation snapshots prices and computes the total
- Strict and lenient ingredient stock deduction
- Overall and per-item status transitions
- Item replacement with stock deltas
- Orders absorbed by a cash closing or cancelled are frozen
"""

import json

import pytest
from sqlalchemy import func, select

from rest_api.models import Ingredient, Order, OutboxEvent
from rest_api.services.domain import OrderService, StockService
from shared.config.constants import EventType
from shared.utils.exceptions import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    CreateOrderRequest,
    OrderItemInput,
    UpdateItemStatusRequest,
    UpdateOrderRequest,
    UpdateOrderStatusRequest,
)


def order_request(table="Mesa 1", items=(), **extra):
    return CreateOrderRequest(
        table=table,
        items=[OrderItemInput(product_id=p.id, quantity=q) for p, q in items],
        **extra,
    )


@pytest.fixture
def service(db_session):
    return OrderService(db_session)


@pytest.fixture
def burger(make_product):
    return make_product("Hamburguesa", price_cents=1000)


@pytest.fixture
def soda(make_product):
    return make_product("Bebida", price_cents=500, category="Bebidas")


def create_order(service, seed_tenant, seed_branch, items, **extra):
    return service.create(
        seed_tenant.id,
        seed_branch.id,
        order_request(items=items, **extra),
        user_id=None,
        user_email=None,
    )


class TestCreateOrder:
    """Tests for OrderService.create."""

    def test_total_is_sum_of_line_subtotals(self, service, seed_tenant, seed_branch, burger, soda):
        """3 x 1000 + 2 x 500 = 4000, every item starts fully pending."""
        order = create_order(service, seed_tenant, seed_branch, [(burger, 3), (soda, 2)])

        assert order.total_cents == 4000
        assert order.status == "pendiente"
        assert order.included_in_closing is False
        assert [item.subtotal_cents for item in order.items] == [3000, 1000]
        assert order.items[0].status_groups[0].model_dump() == {"status": "pendiente", "quantity": 3}
        assert order.items[1].status_groups[0].model_dump() == {"status": "pendiente", "quantity": 2}

    def test_empty_items_rejected(self, service, seed_tenant, seed_branch):
        with pytest.raises(ValidationError):
            create_order(service, seed_tenant, seed_branch, [])

    def test_unavailable_product_rejected(self, service, seed_tenant, seed_branch, make_product):
        product = make_product("Lomo", available=False)

        with pytest.raises(ValidationError) as exc_info:
            create_order(service, seed_tenant, seed_branch, [(product, 1)])

        assert "no está disponible" in exc_info.value.detail

    def test_unknown_product_rejected(self, service, seed_tenant, seed_branch, burger):
        request = CreateOrderRequest(table="1", items=[OrderItemInput(product_id=9999, quantity=1)])

        with pytest.raises(NotFoundError):
            service.create(seed_tenant.id, seed_branch.id, request, None, None)

    def test_price_snapshot_survives_catalog_change(
        self, db_session, service, seed_tenant, seed_branch, burger
    ):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        burger.price_cents = 9999
        db_session.commit()

        reloaded = service.get(order.id, seed_tenant.id, seed_branch.id)
        assert reloaded.items[0].unit_price_cents == 1000
        assert reloaded.total_cents == 1000

    def test_deleted_product_shows_snapshot_name(
        self, db_session, service, seed_tenant, seed_branch, burger
    ):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        burger.name = "Hamburguesa XL"
        burger.soft_delete(None, None)
        db_session.commit()

        item = service.get(order.id, seed_tenant.id, seed_branch.id).items[0]
        assert item.product_name == "Hamburguesa"
        assert item.product_deleted is True


class TestStockDeduction:
    """Ingredient stock is deducted in the order's transaction."""

    def test_strict_mode_rejects_and_persists_nothing(
        self, db_session, service, seed_tenant, seed_branch, make_product, make_ingredient
    ):
        """Queso stock 5, 2 per unit, 3 units ordered: rejected, stock untouched."""
        sandwich = make_product("Barros Luco")
        cheese = make_ingredient("Queso", stock=5, links={sandwich: 2})

        with pytest.raises(InsufficientStockError) as exc_info:
            create_order(service, seed_tenant, seed_branch, [(sandwich, 3)])

        assert exc_info.value.error == {"ingredient": "Queso", "available": 5, "required": 6}
        assert db_session.scalar(select(func.count(Order.id))) == 0
        db_session.refresh(cheese)
        assert cheese.stock == 5

    def test_ignore_mode_clamps_stock_at_zero(
        self, db_session, service, seed_tenant, seed_branch, make_product, make_ingredient
    ):
        sandwich = make_product("Barros Luco")
        cheese = make_ingredient("Queso", stock=5, links={sandwich: 2})

        order = create_order(
            service, seed_tenant, seed_branch, [(sandwich, 3)], ignore_insufficient_stock=True
        )

        assert order.id is not None
        db_session.refresh(cheese)
        assert cheese.stock == 0

    def test_requirements_summed_across_products(
        self, db_session, service, seed_tenant, seed_branch, make_product, make_ingredient
    ):
        """Two products sharing an ingredient are deducted together."""
        completo = make_product("Completo")
        italiano = make_product("Italiano")
        bread = make_ingredient("Pan", stock=10, links={completo: 1, italiano: 1})

        create_order(service, seed_tenant, seed_branch, [(completo, 2), (italiano, 3)])

        db_session.refresh(bread)
        assert bread.stock == 5

    def test_failure_on_second_ingredient_restores_first(
        self, db_session, service, seed_tenant, seed_branch, make_product, make_ingredient
    ):
        """Ingredients deducted before the failing one are rolled back."""
        pizza = make_product("Pizza")
        flour = make_ingredient("Harina", stock=10, links={pizza: 1})
        cheese = make_ingredient("Mozzarella", stock=1, links={pizza: 2})

        with pytest.raises(InsufficientStockError):
            create_order(service, seed_tenant, seed_branch, [(pizza, 1)])

        db_session.refresh(flour)
        db_session.refresh(cheese)
        assert flour.stock == 10
        assert cheese.stock == 1

    def test_products_without_links_deduct_nothing(self, db_session, seed_tenant, burger):
        assert StockService(db_session).deduct([(burger.id, 4)], seed_tenant.id) == []

    def test_availability_reports_limiting_ingredient(
        self, db_session, seed_tenant, make_product, make_ingredient, burger
    ):
        sandwich = make_product("Chacarero")
        make_ingredient("Poroto verde", stock=1, links={sandwich: 2})

        availability = StockService(db_session).availability([sandwich, burger])

        assert availability[sandwich.id].available is False
        assert availability[sandwich.id].limiting_ingredient == "Poroto verde"
        assert availability[burger.id].available is True


class TestStatusTransitions:
    """Overall and per-item status changes."""

    def test_move_units_of_one_item(self, service, seed_tenant, seed_branch, burger):
        """Moving 2 of 5 pending units leaves {pendiente: 3, preparando: 2}."""
        order = create_order(service, seed_tenant, seed_branch, [(burger, 5)])

        updated, all_delivered = service.set_item_status(
            order.id,
            0,
            seed_tenant.id,
            seed_branch.id,
            UpdateItemStatusRequest(quantity=2, from_status="pendiente", to_status="preparando"),
        )

        groups = {g.status: g.quantity for g in updated.items[0].status_groups}
        assert groups == {"pendiente": 3, "preparando": 2}
        assert all_delivered is False
        assert updated.status == "pendiente"

    def test_all_delivered_flag(self, service, seed_tenant, seed_branch, burger, soda):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1), (soda, 1)])
        move = UpdateItemStatusRequest(quantity=1, from_status="pendiente", to_status="entregado")

        _, first = service.set_item_status(order.id, 0, seed_tenant.id, seed_branch.id, move)
        _, second = service.set_item_status(order.id, 1, seed_tenant.id, seed_branch.id, move)

        assert first is False
        assert second is True

    def test_item_index_out_of_range(self, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        with pytest.raises(ValidationError):
            service.set_item_status(
                order.id,
                3,
                seed_tenant.id,
                seed_branch.id,
                UpdateItemStatusRequest(quantity=1, from_status="pendiente", to_status="listo"),
            )

    def test_apply_to_all_items_collapses_distributions(
        self, service, seed_tenant, seed_branch, burger, soda
    ):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 3), (soda, 2)])

        updated = service.set_overall_status(
            order.id,
            seed_tenant.id,
            seed_branch.id,
            UpdateOrderStatusRequest(status="listo", apply_to_all_items=True),
        )

        assert updated.status == "listo"
        for item in updated.items:
            assert [(g.status, g.quantity) for g in item.status_groups] == [("listo", item.quantity)]

    def test_overall_status_without_apply_leaves_items(self, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 2)])

        updated = service.set_overall_status(
            order.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="preparando")
        )

        assert updated.status == "preparando"
        assert updated.items[0].status_groups[0].status == "pendiente"

    def test_cancel_with_apply_to_all_keeps_item_statuses(
        self, service, seed_tenant, seed_branch, burger
    ):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 2)])

        updated = service.set_overall_status(
            order.id,
            seed_tenant.id,
            seed_branch.id,
            UpdateOrderStatusRequest(status="cancelado", apply_to_all_items=True),
        )

        assert updated.status == "cancelado"
        assert updated.items[0].status_groups[0].status == "pendiente"

    def test_delivery_records_payment(self, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        updated = service.set_overall_status(
            order.id,
            seed_tenant.id,
            seed_branch.id,
            UpdateOrderStatusRequest(
                status="entregado",
                payment_method="tarjeta",
                customer_name="Juan Pérez",
                customer_document="12.345.678-9",
            ),
        )

        assert updated.payment_method == "tarjeta"
        assert updated.customer_name == "Juan Pérez"
        assert updated.delivered_at is not None

    def test_invalid_status_rejected(self, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        with pytest.raises(ValidationError):
            service.set_overall_status(
                order.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="perdido")
            )

    def test_status_change_queues_push_event(
        self, db_session, service, seed_tenant, seed_branch, burger
    ):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        service.set_overall_status(
            order.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="listo")
        )

        events = db_session.scalars(select(OutboxEvent)).all()
        assert [e.event_type for e in events] == [EventType.ORDER_STATUS_CHANGED]
        payload = json.loads(events[0].payload)
        assert payload == {"branch_id": seed_branch.id, "table": "Mesa 1", "status": "listo"}

    def test_cancel_does_not_restore_stock(
        self, db_session, service, seed_tenant, seed_branch, make_product, make_ingredient
    ):
        sandwich = make_product("Barros Jarpa")
        ham = make_ingredient("Jamón", stock=4, links={sandwich: 1})
        order = create_order(service, seed_tenant, seed_branch, [(sandwich, 3)])

        service.set_overall_status(
            order.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="cancelado")
        )

        db_session.refresh(ham)
        assert ham.stock == 1

    def test_leaving_delivered_clears_delivery_time(self, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])
        service.set_overall_status(
            order.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="entregado")
        )

        updated = service.set_overall_status(
            order.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="listo")
        )

        assert updated.status == "listo"
        assert updated.delivered_at is None


class TestCanceledOrders:
    """A cancelled order cannot be changed again."""

    @pytest.fixture
    def cheese(self, make_ingredient, burger):
        return make_ingredient("Queso", stock=10, links={burger: 1})

    @pytest.fixture
    def canceled_order(self, service, seed_tenant, seed_branch, burger, cheese):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])
        service.set_overall_status(
            order.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="cancelado")
        )
        return order

    def test_update_rejected_without_touching_stock(
        self, db_session, service, seed_tenant, seed_branch, burger, cheese, canceled_order
    ):
        with pytest.raises(InvalidStateError):
            service.update(
                canceled_order.id,
                seed_tenant.id,
                seed_branch.id,
                UpdateOrderRequest(items=[OrderItemInput(product_id=burger.id, quantity=5)]),
            )

        db_session.refresh(cheese)
        assert cheese.stock == 9

    def test_item_move_rejected(self, service, seed_tenant, seed_branch, canceled_order):
        with pytest.raises(InvalidStateError):
            service.set_item_status(
                canceled_order.id,
                0,
                seed_tenant.id,
                seed_branch.id,
                UpdateItemStatusRequest(quantity=1, from_status="pendiente", to_status="entregado"),
            )

    def test_cannot_be_revived(self, service, seed_tenant, seed_branch, canceled_order):
        with pytest.raises(InvalidStateError):
            service.set_overall_status(
                canceled_order.id,
                seed_tenant.id,
                seed_branch.id,
                UpdateOrderStatusRequest(status="entregado"),
            )

        order = service.get(canceled_order.id, seed_tenant.id, seed_branch.id)
        assert order.status == "cancelado"
        assert order.delivered_at is None

    def test_delete_still_allowed(self, service, seed_tenant, seed_branch, canceled_order):
        service.delete(canceled_order.id, seed_tenant.id, seed_branch.id)

        with pytest.raises(OrderNotFoundError):
            service.get(canceled_order.id, seed_tenant.id, seed_branch.id)


class TestUpdateOrder:
    """Tests for OrderService.update."""

    def test_update_deducts_only_positive_deltas(
        self, db_session, service, seed_tenant, seed_branch, make_product, make_ingredient
    ):
        completo = make_product("Completo", price_cents=1000)
        papas = make_product("Papas fritas", price_cents=800)
        bread = make_ingredient("Pan", stock=10, links={completo: 1})
        potato = make_ingredient("Papa", stock=10, links={papas: 2})
        order = create_order(service, seed_tenant, seed_branch, [(completo, 2)])

        updated = service.update(
            order.id,
            seed_tenant.id,
            seed_branch.id,
            UpdateOrderRequest(
                items=[
                    OrderItemInput(product_id=completo.id, quantity=3),
                    OrderItemInput(product_id=papas.id, quantity=1),
                ]
            ),
        )

        assert updated.total_cents == 3800
        db_session.refresh(bread)
        db_session.refresh(potato)
        assert bread.stock == 7
        assert potato.stock == 8

    def test_reducing_quantity_returns_no_stock(
        self, db_session, service, seed_tenant, seed_branch, make_product, make_ingredient
    ):
        completo = make_product("Completo")
        bread = make_ingredient("Pan", stock=10, links={completo: 1})
        order = create_order(service, seed_tenant, seed_branch, [(completo, 4)])

        service.update(
            order.id,
            seed_tenant.id,
            seed_branch.id,
            UpdateOrderRequest(items=[OrderItemInput(product_id=completo.id, quantity=1)]),
        )

        db_session.refresh(bread)
        assert bread.stock == 6

    def test_kept_item_keeps_its_distribution(self, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 2)])
        service.set_item_status(
            order.id,
            0,
            seed_tenant.id,
            seed_branch.id,
            UpdateItemStatusRequest(quantity=1, from_status="pendiente", to_status="listo"),
        )

        updated = service.update(
            order.id,
            seed_tenant.id,
            seed_branch.id,
            UpdateOrderRequest(items=[OrderItemInput(product_id=burger.id, quantity=3)]),
        )

        groups = {g.status: g.quantity for g in updated.items[0].status_groups}
        assert groups == {"pendiente": 2, "listo": 1}

    def test_update_table_and_notes(self, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        updated = service.update(
            order.id,
            seed_tenant.id,
            seed_branch.id,
            UpdateOrderRequest(table="Terraza 2", notes="sin mayo"),
        )

        assert updated.table == "Terraza 2"
        assert updated.notes == "sin mayo"
        assert updated.total_cents == 1000

    def test_other_branch_cannot_see_order(self, db_session, service, seed_tenant, seed_branch, burger):
        from rest_api.models import Branch

        other = Branch(tenant_id=seed_tenant.id, name="Sucursal Norte", slug="sucursal-norte")
        db_session.add(other)
        db_session.commit()
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        with pytest.raises(OrderNotFoundError):
            service.get(order.id, seed_tenant.id, other.id)


class TestClosedOrders:
    """Orders absorbed by a cash closing are frozen."""

    @pytest.fixture
    def closed_order(self, db_session, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])
        entity = db_session.get(Order, order.id)
        entity.status = "entregado"
        entity.included_in_closing = True
        db_session.commit()
        return order

    def test_update_rejected(self, service, seed_tenant, seed_branch, closed_order):
        with pytest.raises(ValidationError):
            service.update(
                closed_order.id, seed_tenant.id, seed_branch.id, UpdateOrderRequest(notes="x")
            )

    def test_status_change_rejected(self, service, seed_tenant, seed_branch, closed_order):
        with pytest.raises(ValidationError):
            service.set_overall_status(
                closed_order.id,
                seed_tenant.id,
                seed_branch.id,
                UpdateOrderStatusRequest(status="cancelado"),
            )

    def test_delete_rejected(self, service, seed_tenant, seed_branch, closed_order):
        with pytest.raises(ValidationError):
            service.delete(closed_order.id, seed_tenant.id, seed_branch.id)


class TestListingAndLookup:
    def test_list_filters_by_status_and_table(self, service, seed_tenant, seed_branch, burger):
        first = create_order(service, seed_tenant, seed_branch, [(burger, 1)], table="Mesa Jardín")
        create_order(service, seed_tenant, seed_branch, [(burger, 1)], table="Mesa 2")
        service.set_overall_status(
            first.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="listo")
        )

        by_status = service.list_orders(seed_tenant.id, seed_branch.id, status="listo")
        by_table = service.list_orders(seed_tenant.id, seed_branch.id, table="mesa jardin")

        assert [o.id for o in by_status] == [first.id]
        assert [o.id for o in by_table] == [first.id]

    def test_deleted_orders_are_hidden(self, service, seed_tenant, seed_branch, burger):
        order = create_order(service, seed_tenant, seed_branch, [(burger, 1)])

        service.delete(order.id, seed_tenant.id, seed_branch.id)

        assert service.list_orders(seed_tenant.id, seed_branch.id) == []
        with pytest.raises(OrderNotFoundError):
            service.get(order.id, seed_tenant.id, seed_branch.id)

    def test_stats_exclude_cancelled_sales(self, service, seed_tenant, seed_branch, burger, soda):
        create_order(service, seed_tenant, seed_branch, [(burger, 2)])
        cancelled = create_order(service, seed_tenant, seed_branch, [(soda, 1)])
        service.set_overall_status(
            cancelled.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="cancelado")
        )

        stats = service.stats(seed_tenant.id, seed_branch.id)

        assert stats.orders_today == 2
        assert stats.sales_today_cents == 2000
        assert stats.by_status == {"pendiente": 1, "cancelado": 1}

    def test_find_for_table_prefers_active_order(self, service, seed_tenant, seed_branch, burger):
        older = create_order(service, seed_tenant, seed_branch, [(burger, 1)], table="5")
        delivered = create_order(service, seed_tenant, seed_branch, [(burger, 2)], table="5")
        service.set_overall_status(
            delivered.id, seed_tenant.id, seed_branch.id, UpdateOrderStatusRequest(status="entregado")
        )

        found = service.find_for_table("5", seed_tenant.name)

        assert found.id == older.id

    def test_find_for_table_requires_restaurant(self, service):
        with pytest.raises(ValidationError):
            service.find_for_table("5", "  ")

    def test_find_for_table_unknown_restaurant(self, service, seed_tenant):
        with pytest.raises(NotFoundError):
            service.find_for_table("5", "No Existe")
