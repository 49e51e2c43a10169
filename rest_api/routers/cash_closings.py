"""
Cash reconciliation ("liquidación") endpoints - /api/liquidaciones.

Closed batches are immutable: there is no update or delete.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.config.constants import Permissions
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    ApiResponse,
    CashClosingDetailOutput,
    CashClosingOutput,
    CashClosingStatsOutput,
    CloseCashRequest,
    PendingClosingOutput,
)
from rest_api.services.domain import CashClosingService
from rest_api.services.permissions import PermissionContext, require_permission


router = APIRouter(prefix="/api/liquidaciones", tags=["liquidaciones"])

view_closings = require_permission(Permissions.VIEW_CASH_CLOSINGS)


@router.get("/pendientes", response_model=ApiResponse[PendingClosingOutput])
def pending_closing(
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(view_closings),
) -> ApiResponse[PendingClosingOutput]:
    """Preview of what a close would absorb. Changes nothing."""
    return ApiResponse(data=CashClosingService(db).pending(perm.tenant_id, perm.branch_id))


@router.get("/ultima", response_model=ApiResponse[CashClosingOutput])
def latest_closing(
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(view_closings),
) -> ApiResponse[CashClosingOutput]:
    latest = CashClosingService(db).latest(perm.tenant_id, perm.branch_id)
    if latest is None:
        return ApiResponse(message="No hay liquidaciones registradas", data=None)
    return ApiResponse(data=latest)


@router.get("/stats/resumen", response_model=ApiResponse[CashClosingStatsOutput])
def closing_stats(
    startDate: datetime | None = None,
    endDate: datetime | None = None,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(view_closings),
) -> ApiResponse[CashClosingStatsOutput]:
    stats = CashClosingService(db).stats(
        perm.tenant_id, perm.branch_id, start_date=startDate, end_date=endDate
    )
    return ApiResponse(data=stats)


@router.get("", response_model=ApiResponse[list[CashClosingOutput]])
def list_closings(
    startDate: datetime | None = None,
    endDate: datetime | None = None,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(view_closings),
) -> ApiResponse[list[CashClosingOutput]]:
    closings = CashClosingService(db).list_closings(
        perm.tenant_id, perm.branch_id, start_date=startDate, end_date=endDate
    )
    return ApiResponse(data=closings)


@router.get("/{closing_id}", response_model=ApiResponse[CashClosingDetailOutput])
def get_closing(
    closing_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(view_closings),
) -> ApiResponse[CashClosingDetailOutput]:
    return ApiResponse(data=CashClosingService(db).get(closing_id, perm.tenant_id, perm.branch_id))


@router.post("", response_model=ApiResponse[CashClosingDetailOutput], status_code=status.HTTP_201_CREATED)
def close_cash(
    body: CloseCashRequest,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(view_closings),
) -> ApiResponse[CashClosingDetailOutput]:
    """
    Close the current batch: every delivered order and every expense not yet
    absorbed by an earlier closing.
    """
    closing = CashClosingService(db).close(
        perm.tenant_id, perm.branch_id, body, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Liquidación registrada", data=closing)
