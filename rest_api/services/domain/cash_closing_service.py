"""
Cash Closing ("liquidación") Service.

A closing absorbs every delivered order and every expense of a site that
no earlier closing absorbed. The batch row, its cash movements and the
included_in_closing flags are written in a single transaction:

    1. lock and read the pending orders and expenses
    2. create the closing with its totals and movements
    3. flag exactly the rows read in step 1

If step 3 touches a different number of rows than step 1 read, another
close got there first and the whole transaction is rolled back.

closing_cash = opening_cash + income_total - expense_total + movements_net
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from rest_api.models import CashClosing, CashMovement, Expense, Order
from rest_api.services.crud.repository import BranchRepository
from rest_api.services.domain.expense_service import EXPENSE_LOAD_OPTIONS
from rest_api.services.domain.order_service import ORDER_LOAD_OPTIONS, build_order_output
from shared.config.constants import CashMovementType, OrderStatus
from shared.config.logging import cash_logger as logger
from shared.utils.exceptions import ConflictError, NotFoundError
from shared.utils.schemas import (
    CashClosingDetailOutput,
    CashClosingOutput,
    CashClosingStatsOutput,
    CashMovementInput,
    CashMovementOutput,
    CloseCashRequest,
    ExpenseOutput,
    PendingClosingOutput,
)


def movements_net(movements: list[CashMovementInput]) -> int:
    """Σ deposits − Σ withdrawals."""
    net = 0
    for movement in movements:
        if movement.movement_type == CashMovementType.DEPOSIT:
            net += movement.amount_cents
        else:
            net -= movement.amount_cents
    return net


def build_closing_output(closing: CashClosing) -> CashClosingOutput:
    return CashClosingOutput(
        id=closing.id,
        branch_id=closing.branch_id,
        closed_at=closing.closed_at,
        opening_cash_cents=closing.opening_cash_cents,
        income_total_cents=closing.income_total_cents,
        expense_total_cents=closing.expense_total_cents,
        movements_net_cents=closing.movements_net_cents,
        closing_cash_cents=closing.closing_cash_cents,
        order_count=closing.order_count,
        expense_count=closing.expense_count,
        observations=closing.observations,
        closed=closing.closed,
        movements=[CashMovementOutput.model_validate(m) for m in closing.movements],
    )


class CashClosingService:
    def __init__(self, db: Session):
        self._db = db
        self._repo = BranchRepository(CashClosing, db)

    # =========================================================================
    # Pending set
    # =========================================================================

    def _pending_orders_query(self, tenant_id: int, branch_id: int):
        return (
            select(Order)
            .where(
                Order.tenant_id == tenant_id,
                Order.branch_id == branch_id,
                Order.is_active.is_(True),
                Order.status == OrderStatus.DELIVERED,
                Order.included_in_closing.is_(False),
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
        )

    def _pending_expenses_query(self, tenant_id: int, branch_id: int):
        return (
            select(Expense)
            .where(
                Expense.tenant_id == tenant_id,
                Expense.branch_id == branch_id,
                Expense.is_active.is_(True),
                Expense.included_in_closing.is_(False),
            )
            .order_by(Expense.expense_date.desc(), Expense.id.desc())
        )

    def _last_closing(self, tenant_id: int, branch_id: int) -> CashClosing | None:
        return self._db.scalar(
            select(CashClosing)
            .options(selectinload(CashClosing.movements))
            .where(
                CashClosing.tenant_id == tenant_id,
                CashClosing.branch_id == branch_id,
                CashClosing.closed.is_(True),
            )
            .order_by(CashClosing.closed_at.desc(), CashClosing.id.desc())
            .limit(1)
        )

    def pending(self, tenant_id: int, branch_id: int) -> PendingClosingOutput:
        """What a close would absorb right now. Read only."""
        orders = self._db.scalars(
            self._pending_orders_query(tenant_id, branch_id).options(*ORDER_LOAD_OPTIONS)
        ).all()
        expenses = self._db.scalars(
            self._pending_expenses_query(tenant_id, branch_id).options(*EXPENSE_LOAD_OPTIONS)
        ).all()
        last = self._last_closing(tenant_id, branch_id)

        return PendingClosingOutput(
            orders=[build_order_output(o) for o in orders],
            expenses=[ExpenseOutput.model_validate(e) for e in expenses],
            order_count=len(orders),
            expense_count=len(expenses),
            income_total_cents=sum(o.total_cents for o in orders),
            expense_total_cents=sum(e.total_cents for e in expenses),
            last_closing_at=last.closed_at if last else None,
        )

    # =========================================================================
    # Close
    # =========================================================================

    def close(
        self,
        tenant_id: int,
        branch_id: int,
        request: CloseCashRequest,
        user_id: int | None,
        user_email: str | None,
    ) -> CashClosingDetailOutput:
        """
        Close the current batch.

        Raises:
            ConflictError: a concurrent close absorbed some of the rows.
        """
        try:
            orders = self._db.scalars(
                self._pending_orders_query(tenant_id, branch_id).with_for_update()
            ).all()
            expenses = self._db.scalars(
                self._pending_expenses_query(tenant_id, branch_id).with_for_update()
            ).all()
            order_ids = [o.id for o in orders]
            expense_ids = [e.id for e in expenses]

            income = sum(o.total_cents for o in orders)
            expense_total = sum(e.total_cents for e in expenses)
            net = movements_net(request.movements)

            closing = CashClosing(
                tenant_id=tenant_id,
                branch_id=branch_id,
                opening_cash_cents=request.opening_cash_cents,
                income_total_cents=income,
                expense_total_cents=expense_total,
                movements_net_cents=net,
                closing_cash_cents=request.opening_cash_cents + income - expense_total + net,
                order_count=len(order_ids),
                expense_count=len(expense_ids),
                observations=request.observations,
                closed=True,
            )
            closing.set_created_by(user_id, user_email)
            for movement in request.movements:
                closing.movements.append(
                    CashMovement(
                        movement_type=movement.movement_type,
                        amount_cents=movement.amount_cents,
                        reason=movement.reason,
                    )
                )
            self._db.add(closing)
            self._db.flush()

            if order_ids:
                flagged = self._db.execute(
                    update(Order)
                    .where(Order.id.in_(order_ids), Order.included_in_closing.is_(False))
                    .values(included_in_closing=True, cash_closing_id=closing.id)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if flagged != len(order_ids):
                    raise ConflictError(
                        "Otra liquidación incluyó algunos de estos pedidos. Intente de nuevo.",
                        expected=len(order_ids),
                        flagged=flagged,
                    )

            if expense_ids:
                flagged = self._db.execute(
                    update(Expense)
                    .where(Expense.id.in_(expense_ids), Expense.included_in_closing.is_(False))
                    .values(included_in_closing=True, cash_closing_id=closing.id)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if flagged != len(expense_ids):
                    raise ConflictError(
                        "Otra liquidación incluyó algunos de estos gastos. Intente de nuevo.",
                        expected=len(expense_ids),
                        flagged=flagged,
                    )

            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

        logger.info(
            "Cash closed",
            closing_id=closing.id,
            tenant_id=tenant_id,
            branch_id=branch_id,
            orders=len(order_ids),
            expenses=len(expense_ids),
            closing_cash_cents=closing.closing_cash_cents,
            user_id=user_id,
        )
        return self.get(closing.id, tenant_id, branch_id)

    # =========================================================================
    # History
    # =========================================================================

    def latest(self, tenant_id: int, branch_id: int) -> CashClosingOutput | None:
        last = self._last_closing(tenant_id, branch_id)
        return build_closing_output(last) if last else None

    def list_closings(
        self,
        tenant_id: int,
        branch_id: int,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[CashClosingOutput]:
        filters = []
        if start_date is not None:
            filters.append(CashClosing.closed_at >= start_date)
        if end_date is not None:
            filters.append(CashClosing.closed_at <= end_date)
        closings = self._repo.find_by_branch(
            branch_id,
            tenant_id,
            filters=filters,
            options=[selectinload(CashClosing.movements)],
            order_by=(CashClosing.closed_at.desc(), CashClosing.id.desc()),
        )
        return [build_closing_output(c) for c in closings]

    def get(self, closing_id: int, tenant_id: int, branch_id: int) -> CashClosingDetailOutput:
        closing = self._repo.find_in_branch(
            closing_id,
            branch_id,
            tenant_id,
            options=[selectinload(CashClosing.movements)],
        )
        if closing is None:
            raise NotFoundError("Liquidación", closing_id, tenant_id=tenant_id)

        orders = self._db.scalars(
            select(Order)
            .options(*ORDER_LOAD_OPTIONS)
            .where(Order.cash_closing_id == closing.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        ).all()
        expenses = self._db.scalars(
            select(Expense)
            .options(*EXPENSE_LOAD_OPTIONS)
            .where(Expense.cash_closing_id == closing.id)
            .order_by(Expense.expense_date.desc(), Expense.id.desc())
        ).all()

        summary = build_closing_output(closing)
        return CashClosingDetailOutput(
            **summary.model_dump(),
            orders=[build_order_output(o) for o in orders],
            expenses=[ExpenseOutput.model_validate(e) for e in expenses],
        )

    def stats(
        self,
        tenant_id: int,
        branch_id: int,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> CashClosingStatsOutput:
        closings = self.list_closings(
            tenant_id, branch_id, start_date=start_date, end_date=end_date
        )
        count = len(closings)
        income = sum(c.income_total_cents for c in closings)
        expense = sum(c.expense_total_cents for c in closings)
        return CashClosingStatsOutput(
            closing_count=count,
            income_total_cents=income,
            expense_total_cents=expense,
            closing_cash_total_cents=sum(c.closing_cash_cents for c in closings),
            average_income_cents=income // count if count else 0,
            average_expense_cents=expense // count if count else 0,
        )
