"""
Tenant Service - restaurant and site lookup and creation.

Public endpoints (customer catalog, order tracking, push registration,
delivery platform webhook) identify the restaurant and site by name.
"""

from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from rest_api.models import Branch, Tenant
from shared.config.constants import DEFAULT_BRANCH_NAME
from shared.utils.exceptions import NotFoundError
from shared.utils.validators import slugify


class TenantService:
    def __init__(self, db: Session):
        self._db = db

    def find_tenant(self, restaurant: str | None) -> Tenant | None:
        """Match by case-insensitive name or by slug."""
        if not restaurant or not restaurant.strip():
            return None
        name = restaurant.strip()
        return self._db.scalar(
            select(Tenant).where(
                Tenant.is_active.is_(True),
                or_(
                    func.lower(Tenant.name) == name.lower(),
                    Tenant.slug == slugify(name),
                ),
            )
        )

    def find_branch(self, tenant_id: int, branch: str | None) -> Branch | None:
        if not branch or not branch.strip():
            return None
        name = branch.strip()
        return self._db.scalar(
            select(Branch).where(
                Branch.tenant_id == tenant_id,
                Branch.is_active.is_(True),
                or_(
                    func.lower(Branch.name) == name.lower(),
                    Branch.slug == slugify(name),
                ),
            )
        )

    def default_branch(self, tenant_id: int) -> Branch | None:
        return self._db.scalar(
            select(Branch)
            .where(Branch.tenant_id == tenant_id, Branch.is_active.is_(True))
            .order_by(Branch.id)
            .limit(1)
        )

    def resolve(self, restaurant: str | None, branch: str | None = None) -> tuple[Tenant, Branch | None]:
        """
        Resolve a public (restaurant, site) pair.

        A missing site name resolves to None, meaning "any site".

        Raises:
            NotFoundError: unknown restaurant, or a site name that does not
                exist in the restaurant.
        """
        tenant = self.find_tenant(restaurant)
        if tenant is None:
            raise NotFoundError("Restaurante", restaurant=restaurant)

        if not branch or not branch.strip():
            return tenant, None

        found = self.find_branch(tenant.id, branch)
        if found is None:
            raise NotFoundError("Sede", tenant_id=tenant.id, branch=branch)
        return tenant, found

    def create_tenant(self, restaurant: str, branch: str | None = None) -> tuple[Tenant, Branch]:
        """Create a restaurant with its first site. Flushes, does not commit."""
        name = restaurant.strip()
        tenant = Tenant(name=name, slug=self._unique_slug(slugify(name)))
        self._db.add(tenant)
        self._db.flush()

        branch_name = (branch or "").strip() or DEFAULT_BRANCH_NAME
        site = Branch(tenant_id=tenant.id, name=branch_name, slug=slugify(branch_name))
        self._db.add(site)
        self._db.flush()
        return tenant, site

    def get_or_create_branch(self, tenant_id: int, branch: str | None) -> Branch:
        """The named site of a tenant, created on first use; default site when unnamed."""
        if branch and branch.strip():
            found = self.find_branch(tenant_id, branch)
            if found is not None:
                return found
            name = branch.strip()
            site = Branch(tenant_id=tenant_id, name=name, slug=slugify(name))
            self._db.add(site)
            self._db.flush()
            return site

        found = self.default_branch(tenant_id)
        if found is None:
            found = Branch(tenant_id=tenant_id, name=DEFAULT_BRANCH_NAME, slug=slugify(DEFAULT_BRANCH_NAME))
            self._db.add(found)
            self._db.flush()
        return found

    def _unique_slug(self, base: str) -> str:
        slug = base
        suffix = 2
        while self._db.scalar(select(Tenant.id).where(Tenant.slug == slug)) is not None:
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug
