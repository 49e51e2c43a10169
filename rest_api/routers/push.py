"""
Push token endpoints - /api/push.

Customer devices register without auth, identifying the restaurant by name.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.rate_limit import PUBLIC_WRITE_RATE, limiter
from shared.utils.schemas import (
    ApiResponse,
    PushTokenOutput,
    RegisterPushTokenRequest,
    TestPushRequest,
    UnregisterPushTokenRequest,
)
from rest_api.services.domain import PushTokenService
from rest_api.services.permissions import PermissionContext, require_authenticated


router = APIRouter(prefix="/api/push", tags=["push"])


@router.post("/register", response_model=ApiResponse[PushTokenOutput])
@limiter.limit(PUBLIC_WRITE_RATE)
def register_token(
    request: Request,
    body: RegisterPushTokenRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[PushTokenOutput]:
    token = PushTokenService(db).register(body)
    return ApiResponse(message="Token registrado", data=token)


@router.post("/unregister", response_model=ApiResponse[PushTokenOutput])
@limiter.limit(PUBLIC_WRITE_RATE)
def unregister_token(
    request: Request,
    body: UnregisterPushTokenRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[PushTokenOutput]:
    token = PushTokenService(db).unregister(body)
    return ApiResponse(message="Token desactivado", data=token)


@router.post("/test", response_model=ApiResponse[dict[str, Any]])
async def send_test_push(
    body: TestPushRequest,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_authenticated),
) -> ApiResponse[dict[str, Any]]:
    """Send one test message; delivery failures are reported in data."""
    result = await PushTokenService(db).send_test(body)
    message = "Notificación enviada" if result.success else "No se pudo enviar la notificación"
    return ApiResponse(success=result.success, message=message, data=result.as_dict())
