"""
Delivery platform (Mandao) webhook endpoints - /api/mandao.

Both endpoints are authenticated with the shared secret sent in the
X-Mandao-Secret header.
"""

import hmac

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from shared.config.logging import mandao_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.utils.exceptions import ExternalServiceError, ForbiddenError
from shared.utils.schemas import (
    ApiResponse,
    ExternalOrderRequest,
    OrderOutput,
    ProductAvailabilityOutput,
)
from rest_api.services.domain import ExternalOrderService


router = APIRouter(prefix="/api/mandao", tags=["mandao"])


def verify_mandao_secret(
    x_mandao_secret: str | None = Header(default=None, alias="X-Mandao-Secret"),
) -> None:
    """
    Raises:
        ExternalServiceError: 503 while no secret is configured.
        ForbiddenError: missing or wrong secret.
    """
    if not settings.mandao_secret:
        logger.error("Mandao webhook called but MANDAO_SECRET is not configured")
        raise ExternalServiceError("Mandao", is_unavailable=True)
    if not x_mandao_secret or not hmac.compare_digest(
        x_mandao_secret.encode("utf-8"), settings.mandao_secret.encode("utf-8")
    ):
        raise ForbiddenError("usar la integración de Mandao")


@router.post(
    "/order",
    response_model=ApiResponse[OrderOutput],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_mandao_secret)],
)
def receive_order(
    body: ExternalOrderRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[OrderOutput]:
    """Materialize a platform order as a local order at table MANDAO."""
    order = ExternalOrderService(db).create_order(body)
    return ApiResponse(message="Pedido de Mandao sincronizado", data=order)


@router.get(
    "/products",
    response_model=ApiResponse[list[ProductAvailabilityOutput]],
    dependencies=[Depends(verify_mandao_secret)],
)
def product_availability(
    restaurante: str = Query(min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ProductAvailabilityOutput]]:
    """Catalog with availability derived from ingredient stock."""
    return ApiResponse(data=ExternalOrderService(db).product_availability(restaurante))
