"""
Authentication router.
Handles registration, login, profile and staff registration requests.
"""

from fastapi import APIRouter, Depends, Request, status
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context
from shared.security.rate_limit import LOGIN_RATE, REGISTER_RATE, limiter
from shared.utils.schemas import (
    ApiResponse,
    ApprovalRequest,
    LoginRequest,
    LoginResponse,
    PendingUserOutput,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from rest_api.services.domain import AuthService
from rest_api.services.permissions import PermissionContext, require_admin


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=ApiResponse[RegisterResponse],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(REGISTER_RATE)
def register(
    request: Request,
    body: RegisterRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[RegisterResponse]:
    """
    Register a user.

    A new restaurant name creates the restaurant and returns an ADMIN token.
    An existing restaurant name files a staff request awaiting approval.
    """
    result = AuthService(db).register(body, ip_address=get_remote_address(request))
    message = (
        "Restaurante creado correctamente"
        if result.access_token
        else "Solicitud enviada. Un administrador debe aprobarla."
    )
    return ApiResponse(message=message, data=result)


@router.post("/login", response_model=ApiResponse[LoginResponse])
@limiter.limit(LOGIN_RATE)
def login(
    request: Request,
    body: LoginRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[LoginResponse]:
    """
    Authenticate a staff member and return a bearer token.

    The access token contains sub, tenant_id, branch_id, branch_ids, roles
    and email.
    """
    result = AuthService(db).login(body, ip_address=get_remote_address(request))
    return ApiResponse(message="Inicio de sesión exitoso", data=result)


@router.get("/me", response_model=ApiResponse[UserInfo])
def get_current_user(
    db: Session = Depends(get_db),
    ctx: dict = Depends(current_user_context),
) -> ApiResponse[UserInfo]:
    """Get current authenticated user info."""
    return ApiResponse(data=AuthService(db).me(ctx))


@router.get("/requests", response_model=ApiResponse[list[PendingUserOutput]])
def list_pending_requests(
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_admin),
) -> ApiResponse[list[PendingUserOutput]]:
    """Staff registrations waiting for this restaurant's approval."""
    return ApiResponse(data=AuthService(db).pending_requests(perm.tenant_id))


@router.post("/requests/{user_id}", response_model=ApiResponse[PendingUserOutput])
def decide_request(
    user_id: int,
    body: ApprovalRequest,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_admin),
) -> ApiResponse[PendingUserOutput]:
    result = AuthService(db).decide_request(
        user_id,
        body.approve,
        perm.tenant_id,
        perm.user_id,
        perm.user_email,
    )
    message = "Solicitud aprobada" if body.approve else "Solicitud rechazada"
    return ApiResponse(message=message, data=result)
