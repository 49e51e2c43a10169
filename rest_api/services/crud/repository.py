"""
Repository Pattern for database access with built-in tenant isolation.

Usage:
    from rest_api.services.crud.repository import TenantRepository, BranchRepository

    product_repo = TenantRepository(Product, db)
    products = product_repo.find_all(tenant_id=1, order_by=Product.name)
    product = product_repo.find_by_id(42, tenant_id=1)

    order_repo = BranchRepository(Order, db)
    orders = order_repo.find_by_branch(branch_id=5, tenant_id=1, filters=[Order.status == "listo"])
"""

from __future__ import annotations

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from rest_api.models import Base

ModelT = TypeVar("ModelT", bound=Base)


class TenantRepository(Generic[ModelT]):
    """
    Repository whose queries are always filtered by tenant_id.
    Soft-deleted rows (is_active=False) are excluded unless asked for.
    """

    def __init__(self, model: type[ModelT], session: Session):
        self._model = model
        self._session = session

    def _tenant_query(self, tenant_id: int) -> Select:
        return select(self._model).where(self._model.tenant_id == tenant_id)

    def _apply_common(
        self,
        query: Select,
        *,
        filters: Sequence[Any] | None,
        options: list[Any] | None,
        include_inactive: bool,
    ) -> Select:
        if hasattr(self._model, "is_active") and not include_inactive:
            query = query.where(self._model.is_active.is_(True))
        if filters:
            query = query.where(*filters)
        if options:
            query = query.options(*options)
        return query

    def find_by_id(
        self,
        entity_id: int,
        tenant_id: int,
        *,
        options: list[Any] | None = None,
        include_inactive: bool = False,
        for_update: bool = False,
    ) -> ModelT | None:
        """Find entity by ID within tenant scope (None if missing or foreign)."""
        query = self._tenant_query(tenant_id).where(self._model.id == entity_id)
        query = self._apply_common(
            query, filters=None, options=options, include_inactive=include_inactive
        )
        if for_update:
            query = query.with_for_update()
        return self._session.scalar(query)

    def find_all(
        self,
        tenant_id: int,
        *,
        filters: Sequence[Any] | None = None,
        options: list[Any] | None = None,
        include_inactive: bool = False,
        limit: int | None = None,
        offset: int | None = None,
        order_by: Any | None = None,
    ) -> Sequence[ModelT]:
        """Find all entities within tenant scope."""
        query = self._apply_common(
            self._tenant_query(tenant_id),
            filters=filters,
            options=options,
            include_inactive=include_inactive,
        )
        if isinstance(order_by, (list, tuple)):
            query = query.order_by(*order_by)
        elif order_by is not None:
            query = query.order_by(order_by)
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return self._session.scalars(query).all()


class BranchRepository(TenantRepository[ModelT]):
    """
    Repository for site-scoped entities (orders, expenses, cash closings).
    The model must have both `tenant_id` and `branch_id` columns.
    """

    def find_by_branch(
        self,
        branch_id: int,
        tenant_id: int,
        *,
        filters: Sequence[Any] | None = None,
        options: list[Any] | None = None,
        include_inactive: bool = False,
        limit: int | None = None,
        offset: int | None = None,
        order_by: Any | None = None,
    ) -> Sequence[ModelT]:
        branch_filters = [self._model.branch_id == branch_id, *(filters or [])]
        return self.find_all(
            tenant_id,
            filters=branch_filters,
            options=options,
            include_inactive=include_inactive,
            limit=limit,
            offset=offset,
            order_by=order_by,
        )

    def find_in_branch(
        self,
        entity_id: int,
        branch_id: int,
        tenant_id: int,
        *,
        options: list[Any] | None = None,
        for_update: bool = False,
    ) -> ModelT | None:
        entity = self.find_by_id(entity_id, tenant_id, options=options, for_update=for_update)
        if entity is None or entity.branch_id != branch_id:
            return None
        return entity
