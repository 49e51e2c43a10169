"""
SQLAlchemy ORM Models Package.

All models are organized into domain-specific modules:
- base: Base class and AuditMixin
- tenant: Tenant (restaurant), Branch (site)
- user: User, UserBranchRole, StaffPermission
- catalog: Product
- ingredient: Ingredient, RecipeLink
- order: Order, OrderItem, OrderItemStatus
- expense: Expense, ExpenseLine
- cash_closing: CashClosing, CashMovement
- push: PushToken
- outbox: OutboxEvent
"""

# Base classes
from .base import Base, AuditMixin

# Core tenant models
from .tenant import Tenant, Branch

# Users, roles and delegation
from .user import User, UserBranchRole, StaffPermission

# Catalog
from .catalog import Product

# Ingredients and recipes
from .ingredient import Ingredient, RecipeLink

# Orders
from .order import Order, OrderItem, OrderItemStatus

# Expenses
from .expense import Expense, ExpenseLine

# Cash reconciliation
from .cash_closing import CashClosing, CashMovement

# Push tokens
from .push import PushToken

# Outbox for transactional side effects
from .outbox import OutboxEvent, OutboxStatus


__all__ = [
    "Base",
    "AuditMixin",
    "Tenant",
    "Branch",
    "User",
    "UserBranchRole",
    "StaffPermission",
    "Product",
    "Ingredient",
    "RecipeLink",
    "Order",
    "OrderItem",
    "OrderItemStatus",
    "Expense",
    "ExpenseLine",
    "CashClosing",
    "CashMovement",
    "PushToken",
    "OutboxEvent",
    "OutboxStatus",
]
