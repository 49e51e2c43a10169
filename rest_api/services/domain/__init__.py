"""
Domain Services - application layer.

Services contain the business rules and own the transaction of each
operation. Routers stay thin.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access)
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import OrderService

    # In router
    service = OrderService(db)
    order = service.create(tenant_id, branch_id, body, user_id, user_email)
"""

from .tenant_service import TenantService
from .auth_service import AuthService
from .staff_service import StaffService
from .product_service import ProductService
from .ingredient_service import IngredientService
from .stock_service import StockService, StockDeduction, StockAvailability
from .order_service import OrderService
from .external_order_service import ExternalOrderService
from .expense_service import ExpenseService
from .cash_closing_service import CashClosingService
from .push_token_service import PushTokenService

__all__ = [
    "TenantService",
    "AuthService",
    "StaffService",
    "ProductService",
    "IngredientService",
    "StockService",
    "StockDeduction",
    "StockAvailability",
    "OrderService",
    "ExternalOrderService",
    "ExpenseService",
    "CashClosingService",
    "PushTokenService",
]
