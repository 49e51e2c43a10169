"""
Ingredient ("alimento") endpoints - /api/alimentos.

Ingredients are part of the catalog, so they share the product flags.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.config.constants import Permissions
from shared.infrastructure.db import get_db
from shared.utils.schemas import ApiResponse, IngredientCreate, IngredientOutput, IngredientUpdate
from rest_api.services.domain import IngredientService
from rest_api.services.permissions import PermissionContext, require_permission


router = APIRouter(prefix="/api/alimentos", tags=["alimentos"])


@router.get("", response_model=ApiResponse[list[IngredientOutput]])
def list_ingredients(
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_PRODUCTS)),
) -> ApiResponse[list[IngredientOutput]]:
    return ApiResponse(data=IngredientService(db).list_ingredients(perm.tenant_id))


@router.get("/{ingredient_id}", response_model=ApiResponse[IngredientOutput])
def get_ingredient(
    ingredient_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_PRODUCTS)),
) -> ApiResponse[IngredientOutput]:
    return ApiResponse(data=IngredientService(db).get(ingredient_id, perm.tenant_id))


@router.post("", response_model=ApiResponse[IngredientOutput], status_code=status.HTTP_201_CREATED)
def create_ingredient(
    body: IngredientCreate,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.CREATE_PRODUCTS)),
) -> ApiResponse[IngredientOutput]:
    ingredient = IngredientService(db).create(body, perm.tenant_id, perm.user_id, perm.user_email)
    return ApiResponse(message="Alimento creado", data=ingredient)


@router.put("/{ingredient_id}", response_model=ApiResponse[IngredientOutput])
def update_ingredient(
    ingredient_id: int,
    body: IngredientUpdate,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.EDIT_PRODUCTS)),
) -> ApiResponse[IngredientOutput]:
    ingredient = IngredientService(db).update(
        ingredient_id, body, perm.tenant_id, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Alimento actualizado", data=ingredient)


@router.delete("/{ingredient_id}", response_model=ApiResponse[None])
def delete_ingredient(
    ingredient_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.DELETE_PRODUCTS)),
) -> ApiResponse[None]:
    IngredientService(db).delete(ingredient_id, perm.tenant_id, perm.user_id, perm.user_email)
    return ApiResponse(message="Alimento eliminado")
