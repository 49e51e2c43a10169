"""
Expense Service.

Dated expense records made of lines; total is always the sum of the lines.
Expenses absorbed by a cash closing are frozen.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session, selectinload

from rest_api.models import Expense, ExpenseLine
from rest_api.services.crud.repository import BranchRepository
from shared.config.logging import cash_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import InvalidStateError, NotFoundError, ValidationError
from shared.utils.schemas import (
    ExpenseCreate,
    ExpenseLineInput,
    ExpenseOutput,
    ExpenseSummaryOutput,
    ExpenseUpdate,
)
from shared.utils.validators import parse_month

EXPENSE_LOAD_OPTIONS = [selectinload(Expense.lines)]


def _set_lines(expense: Expense, lines: list[ExpenseLineInput]) -> None:
    expense.lines.clear()
    for position, line in enumerate(lines):
        expense.lines.append(
            ExpenseLine(
                position=position,
                description=line.description.strip(),
                amount_cents=line.amount_cents,
            )
        )
    expense.total_cents = sum(line.amount_cents for line in lines)


class ExpenseService:
    def __init__(self, db: Session):
        self._db = db
        self._repo = BranchRepository(Expense, db)

    def _get(self, expense_id: int, tenant_id: int, branch_id: int) -> Expense:
        expense = self._repo.find_in_branch(
            expense_id, branch_id, tenant_id, options=EXPENSE_LOAD_OPTIONS
        )
        if expense is None:
            raise NotFoundError("Gasto", expense_id, tenant_id=tenant_id)
        return expense

    def _ensure_open(self, expense: Expense) -> None:
        if expense.included_in_closing:
            raise InvalidStateError(
                "El gasto ya fue incluido en una liquidación y no puede modificarse",
                expense_id=expense.id,
                cash_closing_id=expense.cash_closing_id,
            )

    def list_expenses(
        self,
        tenant_id: int,
        branch_id: int,
        *,
        month: str | None = None,
    ) -> list[ExpenseOutput]:
        """
        Expenses of a site, newest first, optionally limited to a "YYYY-MM" month.

        Raises:
            ValidationError: malformed month.
        """
        filters = []
        if month:
            try:
                start, end = parse_month(month)
            except ValueError as e:
                raise ValidationError(str(e), month=month)
            filters.extend([Expense.expense_date >= start, Expense.expense_date < end])

        expenses = self._repo.find_by_branch(
            branch_id,
            tenant_id,
            filters=filters,
            options=EXPENSE_LOAD_OPTIONS,
            order_by=(Expense.expense_date.desc(), Expense.id.desc()),
        )
        return [ExpenseOutput.model_validate(e) for e in expenses]

    def get(self, expense_id: int, tenant_id: int, branch_id: int) -> ExpenseOutput:
        return ExpenseOutput.model_validate(self._get(expense_id, tenant_id, branch_id))

    def create(
        self,
        data: ExpenseCreate,
        tenant_id: int,
        branch_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> ExpenseOutput:
        expense = Expense(
            tenant_id=tenant_id,
            branch_id=branch_id,
            expense_date=data.expense_date or datetime.now(timezone.utc),
            included_in_closing=False,
        )
        _set_lines(expense, data.lines)
        expense.set_created_by(user_id, user_email)
        self._db.add(expense)
        safe_commit(self._db)

        logger.info(
            "Expense created",
            expense_id=expense.id,
            tenant_id=tenant_id,
            branch_id=branch_id,
            total_cents=expense.total_cents,
        )
        return self.get(expense.id, tenant_id, branch_id)

    def update(
        self,
        expense_id: int,
        data: ExpenseUpdate,
        tenant_id: int,
        branch_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> ExpenseOutput:
        expense = self._get(expense_id, tenant_id, branch_id)
        self._ensure_open(expense)

        if data.expense_date is not None:
            expense.expense_date = data.expense_date
        if data.lines is not None:
            _set_lines(expense, data.lines)

        expense.set_updated_by(user_id, user_email)
        safe_commit(self._db)
        logger.info("Expense updated", expense_id=expense_id, tenant_id=tenant_id)
        return self.get(expense_id, tenant_id, branch_id)

    def delete(
        self,
        expense_id: int,
        tenant_id: int,
        branch_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> None:
        expense = self._get(expense_id, tenant_id, branch_id)
        self._ensure_open(expense)
        expense.soft_delete(user_id, user_email)
        safe_commit(self._db)
        logger.info("Expense deleted", expense_id=expense_id, tenant_id=tenant_id)

    def summary(
        self,
        tenant_id: int,
        branch_id: int,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> ExpenseSummaryOutput:
        filters = []
        if start_date is not None:
            filters.append(Expense.expense_date >= start_date)
        if end_date is not None:
            filters.append(Expense.expense_date <= end_date)

        expenses = self._repo.find_by_branch(
            branch_id, tenant_id, filters=filters, options=EXPENSE_LOAD_OPTIONS
        )
        total = sum(e.total_cents for e in expenses)
        count = len(expenses)
        return ExpenseSummaryOutput(
            total_cents=total,
            record_count=count,
            line_count=sum(len(e.lines) for e in expenses),
            average_per_record_cents=total // count if count else 0,
        )
