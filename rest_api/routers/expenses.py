"""
Expense endpoints - /api/expenses.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from shared.config.constants import Permissions
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    ApiResponse,
    ExpenseCreate,
    ExpenseOutput,
    ExpenseSummaryOutput,
    ExpenseUpdate,
)
from rest_api.services.domain import ExpenseService
from rest_api.services.permissions import PermissionContext, require_permission


router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@router.get("", response_model=ApiResponse[list[ExpenseOutput]])
def list_expenses(
    month: str | None = Query(default=None, description="YYYY-MM"),
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_EXPENSES)),
) -> ApiResponse[list[ExpenseOutput]]:
    expenses = ExpenseService(db).list_expenses(perm.tenant_id, perm.branch_id, month=month)
    return ApiResponse(data=expenses)


@router.get("/stats/summary", response_model=ApiResponse[ExpenseSummaryOutput])
def expense_summary(
    startDate: datetime | None = None,
    endDate: datetime | None = None,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_EXPENSES)),
) -> ApiResponse[ExpenseSummaryOutput]:
    summary = ExpenseService(db).summary(
        perm.tenant_id, perm.branch_id, start_date=startDate, end_date=endDate
    )
    return ApiResponse(data=summary)


@router.get("/{expense_id}", response_model=ApiResponse[ExpenseOutput])
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_EXPENSES)),
) -> ApiResponse[ExpenseOutput]:
    return ApiResponse(data=ExpenseService(db).get(expense_id, perm.tenant_id, perm.branch_id))


@router.post("", response_model=ApiResponse[ExpenseOutput], status_code=status.HTTP_201_CREATED)
def create_expense(
    body: ExpenseCreate,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.CREATE_EXPENSES)),
) -> ApiResponse[ExpenseOutput]:
    expense = ExpenseService(db).create(
        body, perm.tenant_id, perm.branch_id, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Gasto registrado", data=expense)


@router.put("/{expense_id}", response_model=ApiResponse[ExpenseOutput])
def update_expense(
    expense_id: int,
    body: ExpenseUpdate,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.EDIT_EXPENSES)),
) -> ApiResponse[ExpenseOutput]:
    expense = ExpenseService(db).update(
        expense_id, body, perm.tenant_id, perm.branch_id, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Gasto actualizado", data=expense)


@router.delete("/{expense_id}", response_model=ApiResponse[None])
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.DELETE_EXPENSES)),
) -> ApiResponse[None]:
    ExpenseService(db).delete(expense_id, perm.tenant_id, perm.branch_id, perm.user_id, perm.user_email)
    return ApiResponse(message="Gasto eliminado")
