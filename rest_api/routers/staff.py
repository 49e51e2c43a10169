"""
Staff delegation endpoints - /api/admin-meseros.

Admin only: list staff, set per-action permission flags, deactivate.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import ApiResponse, StaffOutput, StaffPermissionsInput
from rest_api.services.domain import StaffService
from rest_api.services.permissions import PermissionContext, require_admin


router = APIRouter(prefix="/api/admin-meseros", tags=["admin-meseros"])


@router.get("", response_model=ApiResponse[list[StaffOutput]])
def list_staff(
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_admin),
) -> ApiResponse[list[StaffOutput]]:
    return ApiResponse(data=StaffService(db).list_staff(perm.tenant_id))


@router.put("/{staff_id}/permisos", response_model=ApiResponse[StaffOutput])
def set_permissions(
    staff_id: int,
    body: StaffPermissionsInput,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_admin),
) -> ApiResponse[StaffOutput]:
    """Partial update: flags left out keep their current value."""
    staff = StaffService(db).set_permissions(
        staff_id, body, perm.tenant_id, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Permisos actualizados", data=staff)


@router.delete("/{staff_id}", response_model=ApiResponse[None])
def deactivate_staff(
    staff_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_admin),
) -> ApiResponse[None]:
    StaffService(db).deactivate(staff_id, perm.tenant_id, perm.user_id, perm.user_email)
    return ApiResponse(message="Empleado desactivado")
