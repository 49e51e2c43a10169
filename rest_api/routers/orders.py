"""
Order endpoints - /api/orders.

Static paths (/stats/resumen, /mesa/...) are declared before /{order_id}.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from shared.config.constants import OrderStatus, Permissions
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    ApiResponse,
    CreateOrderRequest,
    ItemStatusResponse,
    OrderOutput,
    OrderPeriod,
    OrderStatsOutput,
    UpdateItemStatusRequest,
    UpdateOrderRequest,
    UpdateOrderStatusRequest,
)
from rest_api.routers._common import Pagination, get_pagination
from rest_api.services.domain import OrderService
from rest_api.services.permissions import PermissionContext, require_permission


router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("", response_model=ApiResponse[list[OrderOutput]])
def list_orders(
    estado: str | None = None,
    mesa: str | None = None,
    periodo: OrderPeriod | None = None,
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_ORDERS)),
) -> ApiResponse[list[OrderOutput]]:
    """Orders of the caller's site, newest first."""
    orders = OrderService(db).list_orders(
        perm.tenant_id,
        perm.branch_id,
        status=estado,
        table=mesa,
        period=periodo,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return ApiResponse(data=orders)


@router.get("/stats/resumen", response_model=ApiResponse[OrderStatsOutput])
def order_stats(
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_ORDERS)),
) -> ApiResponse[OrderStatsOutput]:
    return ApiResponse(data=OrderService(db).stats(perm.tenant_id, perm.branch_id))


@router.get("/mesa/{numero_mesa}", response_model=ApiResponse[OrderOutput])
def order_for_table(
    numero_mesa: str,
    restaurante: str | None = Query(default=None),
    sede: str | None = None,
    db: Session = Depends(get_db),
) -> ApiResponse[OrderOutput]:
    """
    Customer order tracking, no auth.

    Returns the table's latest active order, else its latest order.
    """
    return ApiResponse(data=OrderService(db).find_for_table(numero_mesa, restaurante, sede))


@router.get("/{order_id}", response_model=ApiResponse[OrderOutput])
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_ORDERS)),
) -> ApiResponse[OrderOutput]:
    return ApiResponse(data=OrderService(db).get(order_id, perm.tenant_id, perm.branch_id))


@router.post("", response_model=ApiResponse[OrderOutput], status_code=status.HTTP_201_CREATED)
def create_order(
    body: CreateOrderRequest,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.CREATE_ORDERS)),
) -> ApiResponse[OrderOutput]:
    """
    Create an order and deduct its ingredients.

    With ignore_insufficient_stock the order is created even when an
    ingredient runs short, and that ingredient drops to zero.
    """
    order = OrderService(db).create(
        perm.tenant_id, perm.branch_id, body, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Pedido creado", data=order)


@router.put("/{order_id}", response_model=ApiResponse[OrderOutput])
def update_order(
    order_id: int,
    body: UpdateOrderRequest,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.EDIT_ORDERS)),
) -> ApiResponse[OrderOutput]:
    order = OrderService(db).update(
        order_id, perm.tenant_id, perm.branch_id, body, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Pedido actualizado", data=order)


@router.patch("/{order_id}/estado", response_model=ApiResponse[OrderOutput])
def update_order_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.EDIT_ORDERS)),
) -> ApiResponse[OrderOutput]:
    if body.status == OrderStatus.CANCELED:
        perm.require(Permissions.CANCEL_ORDERS)
    order = OrderService(db).set_overall_status(
        order_id, perm.tenant_id, perm.branch_id, body, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Estado actualizado", data=order)


@router.patch("/{order_id}/item/{item_index}/estado", response_model=ApiResponse[ItemStatusResponse])
def update_item_status(
    order_id: int,
    item_index: int,
    body: UpdateItemStatusRequest,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.EDIT_ORDERS)),
) -> ApiResponse[ItemStatusResponse]:
    """
    Move units of one item between statuses.

    all_delivered tells the client every unit is delivered; the order's own
    status is left for the client to set.
    """
    order, all_delivered = OrderService(db).set_item_status(
        order_id,
        item_index,
        perm.tenant_id,
        perm.branch_id,
        body,
        perm.user_id,
        perm.user_email,
    )
    return ApiResponse(
        message="Estado del item actualizado",
        data=ItemStatusResponse(order=order, all_delivered=all_delivered),
    )


@router.delete("/{order_id}", response_model=ApiResponse[None])
def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.CANCEL_ORDERS)),
) -> ApiResponse[None]:
    OrderService(db).delete(order_id, perm.tenant_id, perm.branch_id, perm.user_id, perm.user_email)
    return ApiResponse(message="Pedido eliminado")
