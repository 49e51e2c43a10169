"""
Auth Service - registration, login and staff approval.

Registration either founds a restaurant (the caller becomes its ADMIN and
gets a token right away) or files a staff request against an existing
restaurant, which stays PENDING until an admin of that restaurant decides.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from rest_api.models import Branch, StaffPermission, User, UserBranchRole
from rest_api.services.domain.tenant_service import TenantService
from shared.config.constants import ApprovalStatus, Permissions, Roles
from shared.config.logging import audit_auth_event, auth_logger as logger, mask_email
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.security.auth import sign_jwt
from shared.security.password import hash_password, verify_password
from shared.utils.exceptions import (
    DuplicateEntityError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    LoginRequest,
    LoginResponse,
    PendingUserOutput,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(self, db: Session):
        self._db = db
        self._tenants = TenantService(db)

    # =========================================================================
    # Token helpers
    # =========================================================================

    def _branch_roles(self, user_id: int) -> list[UserBranchRole]:
        return list(
            self._db.scalars(
                select(UserBranchRole)
                .where(UserBranchRole.user_id == user_id, UserBranchRole.is_active.is_(True))
                .order_by(UserBranchRole.branch_id)
            )
        )

    def build_user_info(self, user: User) -> UserInfo:
        branch_roles = self._branch_roles(user.id)
        branch_ids = sorted({r.branch_id for r in branch_roles})
        roles = sorted({r.role for r in branch_roles})

        branch = self._db.get(Branch, branch_ids[0]) if branch_ids else None
        return UserInfo(
            id=user.id,
            name=user.name,
            email=user.email,
            tenant_id=user.tenant_id,
            restaurant=user.tenant.name,
            branch_id=branch.id if branch else None,
            branch=branch.name if branch else None,
            branch_ids=branch_ids,
            roles=roles,
        )

    def issue_token(self, user: User) -> LoginResponse:
        info = self.build_user_info(user)
        if not info.branch_ids:
            logger.warning("LOGIN_FAILED: No branch assignments", user_id=user.id)
            raise ForbiddenError("ingresar (el usuario no tiene sede asignada)", user_id=user.id)

        access_token = sign_jwt({
            "sub": str(user.id),
            "tenant_id": user.tenant_id,
            "branch_id": info.branch_id,
            "branch_ids": info.branch_ids,
            "roles": info.roles,
            "email": user.email,
        })
        return LoginResponse(
            access_token=access_token,
            token_type="Bearer",
            expires_in=settings.jwt_access_token_expire_minutes * 60,
            user=info,
        )

    # =========================================================================
    # Register / login
    # =========================================================================

    def register(self, body: RegisterRequest, ip_address: str | None = None) -> RegisterResponse:
        """
        Raises:
            ValidationError: restaurant name too short.
            DuplicateEntityError: email already registered.
            NotFoundError: named site does not exist in an existing restaurant.
        """
        email = _normalize_email(body.email)
        restaurant = body.restaurant.strip()
        if len(restaurant) < 3:
            raise ValidationError("El nombre del restaurante debe tener al menos 3 caracteres")

        if self._db.scalar(select(User.id).where(func.lower(User.email) == email)) is not None:
            audit_auth_event("REGISTER", email=email, success=False, reason="email_taken", ip_address=ip_address)
            raise DuplicateEntityError("Usuario", email)

        tenant = self._tenants.find_tenant(restaurant)
        try:
            if tenant is None:
                response = self._register_founder(body, email, restaurant)
            else:
                response = self._register_staff(body, email, tenant.id)
            safe_commit(self._db)
        except IntegrityError:
            # Two registrations racing for the same email
            raise DuplicateEntityError("Usuario", email)

        audit_auth_event(
            "REGISTER",
            user_id=response.user_id,
            email=email,
            ip_address=ip_address,
            approval_status=response.approval_status,
        )
        if response.approval_status == ApprovalStatus.APPROVED:
            user = self._db.get(User, response.user_id)
            token = self.issue_token(user)
            response.access_token = token.access_token
            response.expires_in = token.expires_in
            response.user = token.user
        return response

    def _register_founder(self, body: RegisterRequest, email: str, restaurant: str) -> RegisterResponse:
        tenant, branch = self._tenants.create_tenant(restaurant, body.branch)
        user = User(
            tenant_id=tenant.id,
            email=email,
            password=hash_password(body.password),
            name=body.name.strip(),
            phone=body.phone,
            approval_status=ApprovalStatus.APPROVED,
            requested_role=Roles.ADMIN,
        )
        self._db.add(user)
        self._db.flush()
        self._db.add(
            UserBranchRole(user_id=user.id, tenant_id=tenant.id, branch_id=branch.id, role=Roles.ADMIN)
        )
        logger.info("Restaurant created", tenant_id=tenant.id, branch_id=branch.id, email=mask_email(email))
        return RegisterResponse(user_id=user.id, approval_status=ApprovalStatus.APPROVED)

    def _register_staff(self, body: RegisterRequest, email: str, tenant_id: int) -> RegisterResponse:
        if body.branch and body.branch.strip():
            branch = self._tenants.find_branch(tenant_id, body.branch)
            if branch is None:
                raise NotFoundError("Sede", tenant_id=tenant_id, branch=body.branch)
        else:
            branch = self._tenants.get_or_create_branch(tenant_id, None)

        user = User(
            tenant_id=tenant_id,
            email=email,
            password=hash_password(body.password),
            name=body.name.strip(),
            phone=body.phone,
            approval_status=ApprovalStatus.PENDING,
            requested_role=body.role,
            requested_branch_id=branch.id,
        )
        self._db.add(user)
        self._db.flush()
        logger.info("Staff request filed", tenant_id=tenant_id, user_id=user.id, role=body.role)
        return RegisterResponse(user_id=user.id, approval_status=ApprovalStatus.PENDING)

    def login(self, body: LoginRequest, ip_address: str | None = None) -> LoginResponse:
        email = _normalize_email(body.email)
        user = self._db.scalar(
            select(User)
            .options(selectinload(User.tenant))
            .where(func.lower(User.email) == email, User.is_active.is_(True))
        )

        if user is None or not verify_password(body.password, user.password):
            audit_auth_event("LOGIN", email=email, success=False, reason="invalid_credentials", ip_address=ip_address)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Email o contraseña incorrectos",
            )

        if user.approval_status == ApprovalStatus.PENDING:
            audit_auth_event("LOGIN", user_id=user.id, email=email, success=False, reason="pending", ip_address=ip_address)
            raise ForbiddenError("ingresar: la solicitud aún no fue aprobada", user_id=user.id)
        if user.approval_status == ApprovalStatus.REJECTED:
            audit_auth_event("LOGIN", user_id=user.id, email=email, success=False, reason="rejected", ip_address=ip_address)
            raise ForbiddenError("ingresar: la solicitud fue rechazada", user_id=user.id)

        response = self.issue_token(user)
        audit_auth_event("LOGIN", user_id=user.id, email=email, ip_address=ip_address, roles=response.user.roles)
        return response

    def me(self, ctx: dict[str, Any]) -> UserInfo:
        user = self._db.scalar(
            select(User).where(
                User.id == int(ctx["sub"]),
                User.tenant_id == ctx["tenant_id"],
                User.is_active.is_(True),
            )
        )
        if user is None:
            raise NotFoundError("Usuario", ctx["sub"])
        return self.build_user_info(user)

    # =========================================================================
    # Staff requests
    # =========================================================================

    def pending_requests(self, tenant_id: int) -> list[PendingUserOutput]:
        users = self._db.scalars(
            select(User)
            .where(
                User.tenant_id == tenant_id,
                User.is_active.is_(True),
                User.approval_status == ApprovalStatus.PENDING,
            )
            .order_by(User.created_at, User.id)
        ).all()
        return [PendingUserOutput.model_validate(u) for u in users]

    def decide_request(
        self,
        user_id: int,
        approve: bool,
        tenant_id: int,
        admin_id: int,
        admin_email: str | None,
    ) -> PendingUserOutput:
        """
        Approve or reject a pending registration.

        Approval assigns the requested role at the requested site and
        creates the staff member's default delegation record.
        """
        user = self._db.scalar(
            select(User).where(
                User.id == user_id,
                User.tenant_id == tenant_id,
                User.is_active.is_(True),
            )
        )
        if user is None:
            raise NotFoundError("Usuario", user_id, tenant_id=tenant_id)
        if user.approval_status != ApprovalStatus.PENDING:
            raise ValidationError("La solicitud ya fue procesada", user_id=user_id)

        if approve:
            branch_id = user.requested_branch_id
            if branch_id is None:
                branch_id = self._tenants.get_or_create_branch(tenant_id, None).id
            role = user.requested_role if user.requested_role in Roles.STAFF else Roles.WAITER

            user.approval_status = ApprovalStatus.APPROVED
            self._db.add(
                UserBranchRole(user_id=user.id, tenant_id=tenant_id, branch_id=branch_id, role=role)
            )
            permission = StaffPermission(
                tenant_id=tenant_id,
                admin_user_id=admin_id,
                staff_user_id=user.id,
                **{flag: flag in Permissions.DEFAULT_GRANTED for flag in Permissions.ALL},
            )
            permission.set_created_by(admin_id, admin_email)
            self._db.add(permission)
        else:
            user.approval_status = ApprovalStatus.REJECTED

        user.set_updated_by(admin_id, admin_email)
        safe_commit(self._db)

        audit_auth_event(
            "APPROVAL",
            user_id=user.id,
            email=user.email,
            approved=approve,
            admin_id=admin_id,
        )
        return PendingUserOutput.model_validate(user)
