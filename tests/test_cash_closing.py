"""
Tests for the cash closing ("liquidación") service and endpoints.
"""

import pytest
from sqlalchemy import select

from rest_api.models import Expense, Order
from rest_api.services.domain import CashClosingService, ExpenseService, OrderService
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import (
    CashMovementInput,
    CloseCashRequest,
    CreateOrderRequest,
    ExpenseUpdate,
    OrderItemInput,
    UpdateOrderStatusRequest,
)


@pytest.fixture
def service(db_session):
    return CashClosingService(db_session)


@pytest.fixture
def delivered_order(db_session, seed_tenant, seed_branch, make_product):
    """Factory for delivered orders worth `total` cents."""
    orders = OrderService(db_session)

    def _make(total=10000, table="Mesa 1"):
        product = make_product(f"Menú {total} {table}", price_cents=total)
        order = orders.create(
            seed_tenant.id,
            seed_branch.id,
            CreateOrderRequest(table=table, items=[OrderItemInput(product_id=product.id, quantity=1)]),
            None,
            None,
        )
        return orders.set_overall_status(
            order.id,
            seed_tenant.id,
            seed_branch.id,
            UpdateOrderStatusRequest(status="entregado", payment_method="efectivo"),
        )

    return _make


class TestPendingSet:
    def test_only_delivered_orders_are_pending(
        self, db_session, service, seed_tenant, seed_branch, make_product, delivered_order
    ):
        delivered = delivered_order(total=3000)
        product = make_product("Sopaipilla", price_cents=200)
        OrderService(db_session).create(
            seed_tenant.id,
            seed_branch.id,
            CreateOrderRequest(table="2", items=[OrderItemInput(product_id=product.id, quantity=1)]),
            None,
            None,
        )

        pending = service.pending(seed_tenant.id, seed_branch.id)

        assert [o.id for o in pending.orders] == [delivered.id]
        assert pending.income_total_cents == 3000
        assert pending.last_closing_at is None

    def test_pending_is_read_only(
        self, db_session, service, seed_tenant, seed_branch, delivered_order, make_expense
    ):
        order = delivered_order(total=4500)
        expense = make_expense([("Hielo", 1200)])

        first = service.pending(seed_tenant.id, seed_branch.id)
        second = service.pending(seed_tenant.id, seed_branch.id)

        assert first == second
        assert (second.income_total_cents, second.expense_total_cents) == (4500, 1200)
        assert (second.order_count, second.expense_count) == (1, 1)
        assert [o.id for o in second.orders] == [order.id]
        assert [e.id for e in second.expenses] == [expense.id]
        assert db_session.scalar(select(Order.included_in_closing)) is False
        assert db_session.scalar(select(Expense.included_in_closing)) is False


class TestClose:
    def test_close_computes_closing_cash(
        self, db_session, service, seed_tenant, seed_branch, delivered_order, make_expense
    ):
        """One 10000 order, one 2000 expense, opening 5000: closing 13000 + movements."""
        order = delivered_order(total=10000)
        expense = make_expense([("Gas", 2000)])

        closing = service.close(
            seed_tenant.id,
            seed_branch.id,
            CloseCashRequest(
                opening_cash_cents=5000,
                movements=[
                    CashMovementInput(movement_type="ingreso", amount_cents=1500, reason="Vuelto"),
                    CashMovementInput(movement_type="retiro", amount_cents=500, reason="Depósito banco"),
                ],
                observations="Turno noche",
            ),
            user_id=None,
            user_email=None,
        )

        assert closing.income_total_cents == 10000
        assert closing.expense_total_cents == 2000
        assert closing.movements_net_cents == 1000
        assert closing.closing_cash_cents == 14000
        assert closing.order_count == 1
        assert closing.expense_count == 1
        assert closing.closed is True
        assert [o.id for o in closing.orders] == [order.id]
        assert [e.id for e in closing.expenses] == [expense.id]
        assert len(closing.movements) == 2

        db_session.expire_all()
        assert db_session.get(Order, order.id).included_in_closing is True
        assert db_session.get(Expense, expense.id).cash_closing_id == closing.id

    def test_closed_rows_leave_the_pending_set(
        self, service, seed_tenant, seed_branch, delivered_order, make_expense
    ):
        delivered_order(total=10000)
        make_expense([("Gas", 2000)])
        first = service.close(seed_tenant.id, seed_branch.id, CloseCashRequest(opening_cash_cents=5000), None, None)

        later = delivered_order(total=700, table="Mesa 9")
        pending = service.pending(seed_tenant.id, seed_branch.id)

        assert [o.id for o in pending.orders] == [later.id]
        assert pending.expenses == []
        assert pending.last_closing_at == first.closed_at

    def test_empty_close_is_allowed(self, service, seed_tenant, seed_branch):
        closing = service.close(
            seed_tenant.id, seed_branch.id, CloseCashRequest(opening_cash_cents=3000), None, None
        )

        assert closing.order_count == 0
        assert closing.closing_cash_cents == 3000

    def test_rows_are_never_closed_twice(self, service, seed_tenant, seed_branch, delivered_order):
        delivered_order(total=1000)

        first = service.close(seed_tenant.id, seed_branch.id, CloseCashRequest(), None, None)
        second = service.close(seed_tenant.id, seed_branch.id, CloseCashRequest(), None, None)

        assert first.order_count == 1
        assert second.order_count == 0
        assert second.income_total_cents == 0

    def test_closed_expense_is_frozen(self, db_session, service, seed_tenant, seed_branch, make_expense):
        expense = make_expense([("Luz", 4000)])
        service.close(seed_tenant.id, seed_branch.id, CloseCashRequest(), None, None)

        with pytest.raises(ValidationError):
            ExpenseService(db_session).update(
                expense.id,
                ExpenseUpdate(lines=[{"description": "Luz", "amount_cents": 1}]),
                seed_tenant.id,
                seed_branch.id,
                None,
                None,
            )


class TestHistory:
    def test_latest_and_list(self, service, seed_tenant, seed_branch, delivered_order):
        assert service.latest(seed_tenant.id, seed_branch.id) is None

        delivered_order(total=1000)
        first = service.close(seed_tenant.id, seed_branch.id, CloseCashRequest(), None, None)
        delivered_order(total=3000, table="Mesa 4")
        second = service.close(seed_tenant.id, seed_branch.id, CloseCashRequest(), None, None)

        assert service.latest(seed_tenant.id, seed_branch.id).id == second.id
        assert [c.id for c in service.list_closings(seed_tenant.id, seed_branch.id)] == [second.id, first.id]

    def test_stats_average(self, service, seed_tenant, seed_branch, delivered_order):
        delivered_order(total=1000)
        service.close(seed_tenant.id, seed_branch.id, CloseCashRequest(), None, None)
        delivered_order(total=2001, table="Mesa 4")
        service.close(seed_tenant.id, seed_branch.id, CloseCashRequest(), None, None)

        stats = service.stats(seed_tenant.id, seed_branch.id)

        assert stats.closing_count == 2
        assert stats.income_total_cents == 3001
        assert stats.average_income_cents == 1500

    def test_get_unknown_closing(self, service, seed_tenant, seed_branch):
        with pytest.raises(NotFoundError):
            service.get(12345, seed_tenant.id, seed_branch.id)


class TestCashClosingEndpoints:
    def test_ultima_without_closings(self, client, auth_headers):
        response = client.get("/api/liquidaciones/ultima", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["data"] is None
        assert body["message"] == "No hay liquidaciones registradas"

    def test_close_via_api(self, client, auth_headers, delivered_order, make_expense):
        delivered_order(total=10000)
        make_expense([("Gas", 2000)])

        response = client.post(
            "/api/liquidaciones",
            json={"opening_cash_cents": 5000},
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["closing_cash_cents"] == 13000
        assert data["order_count"] == 1

        pending = client.get("/api/liquidaciones/pendientes", headers=auth_headers).json()["data"]
        assert pending["order_count"] == 0
        assert pending["expense_count"] == 0

    def test_waiter_without_flag_is_forbidden(self, client, waiter_auth_headers):
        response = client.get("/api/liquidaciones/pendientes", headers=waiter_auth_headers)

        assert response.status_code == 403
        assert response.json()["success"] is False
        assert response.json()["message"] == "No autorizado para ver liquidaciones"
