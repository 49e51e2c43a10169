"""
Product catalog endpoints.

Thin router that delegates to ProductService.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from shared.config.constants import Permissions
from shared.infrastructure.db import get_db
from shared.utils.schemas import ApiResponse, ProductCategory, ProductCreate, ProductOutput, ProductUpdate
from rest_api.services.domain import ProductService
from rest_api.services.permissions import PermissionContext, require_permission


router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("/public/restaurante", response_model=ApiResponse[list[ProductOutput]])
def list_public_products(
    restaurante: str = Query(min_length=1),
    sede: str | None = None,
    db: Session = Depends(get_db),
) -> ApiResponse[list[ProductOutput]]:
    """Available products of a restaurant, for the customer menu. No auth."""
    return ApiResponse(data=ProductService(db).list_public(restaurante, sede))


@router.get("", response_model=ApiResponse[list[ProductOutput]])
def list_products(
    category: ProductCategory | None = None,
    available: bool | None = None,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_PRODUCTS)),
) -> ApiResponse[list[ProductOutput]]:
    products = ProductService(db).list_products(
        perm.tenant_id, category=category, available=available
    )
    return ApiResponse(data=products)


@router.get("/{product_id}", response_model=ApiResponse[ProductOutput])
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.VIEW_PRODUCTS)),
) -> ApiResponse[ProductOutput]:
    return ApiResponse(data=ProductService(db).get_by_id(product_id, perm.tenant_id))


@router.post("", response_model=ApiResponse[ProductOutput], status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductCreate,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.CREATE_PRODUCTS)),
) -> ApiResponse[ProductOutput]:
    product = ProductService(db).create(
        body.model_dump(), perm.tenant_id, perm.user_id, perm.user_email
    )
    return ApiResponse(message="Producto creado", data=product)


@router.put("/{product_id}", response_model=ApiResponse[ProductOutput])
def update_product(
    product_id: int,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.EDIT_PRODUCTS)),
) -> ApiResponse[ProductOutput]:
    product = ProductService(db).update(
        product_id,
        body.model_dump(exclude_unset=True, exclude_none=True),
        perm.tenant_id,
        perm.user_id,
        perm.user_email,
    )
    return ApiResponse(message="Producto actualizado", data=product)


@router.delete("/{product_id}", response_model=ApiResponse[None])
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    perm: PermissionContext = Depends(require_permission(Permissions.DELETE_PRODUCTS)),
) -> ApiResponse[None]:
    """Soft delete; orders keep showing the product's snapshot."""
    ProductService(db).delete(product_id, perm.tenant_id, perm.user_id, perm.user_email)
    return ApiResponse(message="Producto eliminado")
