"""
Centralized constants for the backend application.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import Roles, OrderStatus

    if status == OrderStatus.DELIVERED:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """User role constants."""

    ADMIN: Final[str] = "ADMIN"
    WAITER: Final[str] = "WAITER"  # mesero
    CASHIER: Final[str] = "CASHIER"  # cajero

    ALL: Final[list[str]] = [ADMIN, WAITER, CASHIER]
    STAFF: Final[list[str]] = [WAITER, CASHIER]


class ApprovalStatus:
    """Registration approval state for staff joining an existing restaurant."""

    PENDING: Final[str] = "PENDING"
    APPROVED: Final[str] = "APPROVED"
    REJECTED: Final[str] = "REJECTED"


# =============================================================================
# Order Status
# =============================================================================


class OrderStatus:
    """Order and item status constants (wire values are Spanish)."""

    PENDING: Final[str] = "pendiente"
    PREPARING: Final[str] = "preparando"
    READY: Final[str] = "listo"
    DELIVERED: Final[str] = "entregado"
    CANCELED: Final[str] = "cancelado"

    ALL: Final[list[str]] = [PENDING, PREPARING, READY, DELIVERED, CANCELED]
    # Statuses a line-item unit can be in
    ITEM: Final[list[str]] = [PENDING, PREPARING, READY, DELIVERED]
    ACTIVE: Final[list[str]] = [PENDING, PREPARING, READY]


class OrderSource:
    LOCAL: Final[str] = "local"
    MANDAO: Final[str] = "mandao"


class PaymentMethod:
    CASH: Final[str] = "efectivo"
    TRANSFER: Final[str] = "transferencia"
    CARD: Final[str] = "tarjeta"

    ALL: Final[list[str]] = [CASH, TRANSFER, CARD]


class ProductCategory:
    """Menu categories."""

    MAINS: Final[str] = "Comidas"
    DRINKS: Final[str] = "Bebidas"
    DESSERTS: Final[str] = "Postres"
    STARTERS: Final[str] = "Entradas"
    OTHER: Final[str] = "Otros"

    ALL: Final[list[str]] = [MAINS, DRINKS, DESSERTS, STARTERS, OTHER]
    # Category assigned to external items that match no local product
    EXTERNAL: Final[str] = "Mandao"


class CashMovementType:
    DEPOSIT: Final[str] = "ingreso"
    WITHDRAWAL: Final[str] = "retiro"

    ALL: Final[list[str]] = [DEPOSIT, WITHDRAWAL]


# =============================================================================
# Staff delegation flags
# =============================================================================


class Permissions:
    """Per-action flags on the admin-to-staff delegation record."""

    VIEW_PRODUCTS: Final[str] = "view_products"
    CREATE_PRODUCTS: Final[str] = "create_products"
    EDIT_PRODUCTS: Final[str] = "edit_products"
    DELETE_PRODUCTS: Final[str] = "delete_products"
    VIEW_ORDERS: Final[str] = "view_orders"
    CREATE_ORDERS: Final[str] = "create_orders"
    EDIT_ORDERS: Final[str] = "edit_orders"
    CANCEL_ORDERS: Final[str] = "cancel_orders"
    VIEW_EXPENSES: Final[str] = "view_expenses"
    CREATE_EXPENSES: Final[str] = "create_expenses"
    EDIT_EXPENSES: Final[str] = "edit_expenses"
    DELETE_EXPENSES: Final[str] = "delete_expenses"
    VIEW_REPORTS: Final[str] = "view_reports"
    VIEW_CASH_CLOSINGS: Final[str] = "view_cash_closings"

    ALL: Final[list[str]] = [
        VIEW_PRODUCTS, CREATE_PRODUCTS, EDIT_PRODUCTS, DELETE_PRODUCTS,
        VIEW_ORDERS, CREATE_ORDERS, EDIT_ORDERS, CANCEL_ORDERS,
        VIEW_EXPENSES, CREATE_EXPENSES, EDIT_EXPENSES, DELETE_EXPENSES,
        VIEW_REPORTS, VIEW_CASH_CLOSINGS,
    ]

    # Granted when an admin approves a new staff member
    DEFAULT_GRANTED: Final[frozenset[str]] = frozenset({
        VIEW_PRODUCTS, VIEW_ORDERS, CREATE_ORDERS, EDIT_ORDERS,
    })


# =============================================================================
# Outbox event types
# =============================================================================


class EventType:
    """Side-effect event types written to the outbox."""

    ORDER_STATUS_CHANGED: Final[str] = "ORDER_STATUS_CHANGED"
    EXTERNAL_STATUS_SYNC: Final[str] = "EXTERNAL_STATUS_SYNC"


# =============================================================================
# Validation Limits
# =============================================================================


class Limits:
    """Validation limits."""

    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 999

    MIN_PRICE_CENTS: Final[int] = 0
    MAX_PRICE_CENTS: Final[int] = 100_000_000_00

    MAX_NAME_LENGTH: Final[int] = 100
    MAX_DESCRIPTION_LENGTH: Final[int] = 500
    MAX_NOTES_LENGTH: Final[int] = 500
    MAX_EXPENSE_LINE_LENGTH: Final[int] = 200
    MAX_OBSERVATIONS_LENGTH: Final[int] = 1000
    MIN_RESTAURANT_NAME_LENGTH: Final[int] = 3

    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200


# Table label used for orders arriving from the delivery platform
EXTERNAL_TABLE_LABEL: Final[str] = "MANDAO"
DEFAULT_BRANCH_NAME: Final[str] = "Principal"
