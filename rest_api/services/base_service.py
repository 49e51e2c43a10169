"""
Base service for tenant-scoped catalog entities.

Router (thin) → Service (business rules) → TenantRepository → Model

Subclasses pass the model, the output schema and the Spanish entity name
used in error messages, and override the `_check_*` hooks for their rules:

    class ProductService(TenantCRUDService[Product, ProductOutput]):
        def __init__(self, db: Session):
            super().__init__(db, Product, ProductOutput, "Producto")
"""

from __future__ import annotations

from typing import Any, Generic, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rest_api.models import Base
from rest_api.services.crud.repository import TenantRepository
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import DatabaseError, NotFoundError, ValidationError
from shared.utils.validators import validate_image_url

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)
OutputT = TypeVar("OutputT", bound=BaseModel)


class TenantCRUDService(Generic[ModelT, OutputT]):
    """
    Get, list, create, update and soft delete inside one tenant.

    Writes stamp the acting user through the audit mixin. Deleted rows stay
    in the table so order snapshots can still point at them.
    """

    def __init__(
        self,
        db: Session,
        model: Type[ModelT],
        output_schema: Type[OutputT],
        entity_name: str,
        *,
        image_fields: tuple[str, ...] = ("image",),
    ):
        self._db = db
        self._model = model
        self._repo = TenantRepository(model, db)
        self._output_schema = output_schema
        self._entity_name = entity_name
        self._image_fields = image_fields

    def to_output(self, entity: ModelT) -> OutputT:
        return self._output_schema.model_validate(entity)

    def get_entity(self, entity_id: int, tenant_id: int) -> ModelT:
        """
        Raises:
            NotFoundError: missing, deleted, or owned by another tenant.
        """
        entity = self._repo.find_by_id(entity_id, tenant_id)
        if entity is None:
            raise NotFoundError(self._entity_name, entity_id, tenant_id=tenant_id)
        return entity

    def get_by_id(self, entity_id: int, tenant_id: int) -> OutputT:
        return self.to_output(self.get_entity(entity_id, tenant_id))

    def list_all(
        self,
        tenant_id: int,
        *,
        filters: list[Any] | None = None,
        order_by: Any | None = None,
    ) -> list[OutputT]:
        entities = self._repo.find_all(tenant_id, filters=filters, order_by=order_by)
        return [self.to_output(e) for e in entities]

    def create(
        self,
        data: dict[str, Any],
        tenant_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> OutputT:
        self._check_create(data, tenant_id)
        self._clean_images(data)

        entity = self._model(**data, tenant_id=tenant_id)
        entity.set_created_by(user_id, user_email)
        self._db.add(entity)
        self._commit("crear", tenant_id=tenant_id)
        self._db.refresh(entity)

        logger.info(f"{self._entity_name} created", entity_id=entity.id, tenant_id=tenant_id)
        return self.to_output(entity)

    def update(
        self,
        entity_id: int,
        data: dict[str, Any],
        tenant_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> OutputT:
        """Apply the given fields only; absent fields keep their value."""
        entity = self.get_entity(entity_id, tenant_id)
        self._check_update(entity, data, tenant_id)
        self._clean_images(data)

        for field_name, value in data.items():
            setattr(entity, field_name, value)
        entity.set_updated_by(user_id, user_email)
        self._commit("actualizar", entity_id=entity_id)
        self._db.refresh(entity)
        return self.to_output(entity)

    def delete(
        self,
        entity_id: int,
        tenant_id: int,
        user_id: int | None,
        user_email: str | None,
    ) -> None:
        entity = self.get_entity(entity_id, tenant_id)
        entity.soft_delete(user_id, user_email)
        safe_commit(self._db)
        logger.info(
            f"{self._entity_name} deleted",
            entity_id=entity_id,
            tenant_id=tenant_id,
            user_id=user_id,
        )

    def _commit(self, action: str, **log_context: Any) -> None:
        try:
            safe_commit(self._db)
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action} {self._entity_name}", error=str(e), **log_context)
            raise DatabaseError(f"{action} {self._entity_name.lower()}")

    def _clean_images(self, data: dict[str, Any]) -> None:
        for field_name in self._image_fields:
            if data.get(field_name):
                try:
                    data[field_name] = validate_image_url(data[field_name])
                except ValueError as e:
                    raise ValidationError(str(e), field=field_name)

    def _check_create(self, data: dict[str, Any], tenant_id: int) -> None:
        pass

    def _check_update(self, entity: ModelT, data: dict[str, Any], tenant_id: int) -> None:
        pass
