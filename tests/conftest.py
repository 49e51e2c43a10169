"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")
os.environ.setdefault("OUTBOX_PROCESSOR_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MANDAO_SECRET", "test-mandao-secret")
os.environ.setdefault("FCM_PROJECT_ID", "")
os.environ.setdefault("FCM_ACCESS_TOKEN", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import app
from shared.config.constants import ApprovalStatus, Permissions, Roles
from shared.infrastructure.db import get_db
from rest_api.models import (
    Base, Tenant, Branch, User, UserBranchRole, StaffPermission,
    Product, Ingredient, RecipeLink, Expense, ExpenseLine,
)
from shared.security.password import hash_password


MANDAO_SECRET = os.environ["MANDAO_SECRET"]

# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_session):
    """Session factory on the test database, for code that opens its own sessions."""
    return TestingSessionLocal


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def seed_tenant(db_session):
    """Create a test restaurant."""
    tenant = Tenant(name="La Picada", slug="la-picada")
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture
def seed_branch(db_session, seed_tenant):
    """Create the restaurant's first site."""
    branch = Branch(
        tenant_id=seed_tenant.id,
        name="Principal",
        slug="principal",
        address="Av. Siempre Viva 742",
    )
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


def create_user(db_session, tenant, branch, email, password, role, **extra):
    """Approved user holding `role` at `branch`."""
    user = User(
        tenant_id=tenant.id,
        email=email,
        password=hash_password(password),
        name=extra.pop("name", email.split("@")[0].title()),
        approval_status=extra.pop("approval_status", ApprovalStatus.APPROVED),
        **extra,
    )
    db_session.add(user)
    db_session.flush()

    if role is not None:
        db_session.add(
            UserBranchRole(
                user_id=user.id,
                tenant_id=tenant.id,
                branch_id=branch.id,
                role=role,
            )
        )
    db_session.commit()
    db_session.refresh(user)
    return user


def login_headers(client, email, password):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, f"Login failed: {response.json()}"
    token = response.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seed_admin_user(db_session, seed_tenant, seed_branch):
    """Create an admin user for testing authenticated endpoints."""
    return create_user(
        db_session, seed_tenant, seed_branch, "admin@test.com", "testpass123", Roles.ADMIN
    )


@pytest.fixture
def auth_headers(client, seed_admin_user):
    """Get authentication headers for API calls."""
    return login_headers(client, "admin@test.com", "testpass123")


@pytest.fixture
def seed_waiter_user(db_session, seed_tenant, seed_branch, seed_admin_user):
    """Create a waiter holding the flags granted on approval."""
    user = create_user(
        db_session, seed_tenant, seed_branch, "waiter@test.com", "waiter123", Roles.WAITER
    )
    db_session.add(
        StaffPermission(
            tenant_id=seed_tenant.id,
            admin_user_id=seed_admin_user.id,
            staff_user_id=user.id,
            **{flag: flag in Permissions.DEFAULT_GRANTED for flag in Permissions.ALL},
        )
    )
    db_session.commit()
    return user


@pytest.fixture
def waiter_auth_headers(client, seed_waiter_user):
    """Get authentication headers for waiter API calls."""
    return login_headers(client, "waiter@test.com", "waiter123")


@pytest.fixture
def mandao_headers():
    return {"X-Mandao-Secret": MANDAO_SECRET}


# =============================================================================
# Catalog factories
# =============================================================================


@pytest.fixture
def make_product(db_session, seed_tenant):
    """Factory for products of the seeded restaurant."""
    def _make(name="Completo", price_cents=1000, category="Comidas", **extra):
        product = Product(
            tenant_id=seed_tenant.id,
            name=name,
            price_cents=price_cents,
            category=category,
            available=extra.pop("available", True),
            **extra,
        )
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def make_ingredient(db_session, seed_tenant):
    """Factory for an ingredient linked to products: make_ingredient("Queso", 5, {product: 2})."""
    def _make(name="Queso", stock=10, links=None, unit_cost_cents=0):
        ingredient = Ingredient(
            tenant_id=seed_tenant.id,
            name=name,
            stock=stock,
            unit_cost_cents=unit_cost_cents,
        )
        for product, quantity_required in (links or {}).items():
            ingredient.recipe_links.append(
                RecipeLink(
                    tenant_id=seed_tenant.id,
                    product_id=product.id,
                    quantity_required=quantity_required,
                )
            )
        db_session.add(ingredient)
        db_session.commit()
        db_session.refresh(ingredient)
        return ingredient

    return _make


@pytest.fixture
def make_expense(db_session, seed_tenant, seed_branch):
    """Factory for expenses of the seeded site: make_expense([("Gas", 2000)])."""
    from datetime import datetime, timezone

    def _make(lines=(("Gas", 2000),), expense_date=None):
        expense = Expense(
            tenant_id=seed_tenant.id,
            branch_id=seed_branch.id,
            expense_date=expense_date or datetime.now(timezone.utc),
            included_in_closing=False,
        )
        for position, (description, amount_cents) in enumerate(lines):
            expense.lines.append(
                ExpenseLine(position=position, description=description, amount_cents=amount_cents)
            )
        expense.total_cents = sum(amount for _, amount in lines)
        db_session.add(expense)
        db_session.commit()
        db_session.refresh(expense)
        return expense

    return _make
