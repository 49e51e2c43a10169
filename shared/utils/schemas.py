"""
Shared Pydantic schemas used across the application.

Money is always expressed in integer cents.
"""

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, EmailStr, Field


T = TypeVar("T")


# =============================================================================
# Common Types
# =============================================================================

Role = Literal["ADMIN", "WAITER", "CASHIER"]
StaffRole = Literal["WAITER", "CASHIER"]
OrderStatus = Literal["pendiente", "preparando", "listo", "entregado", "cancelado"]
ItemStatus = Literal["pendiente", "preparando", "listo", "entregado"]
PaymentMethod = Literal["efectivo", "transferencia", "tarjeta"]
ProductCategory = Literal["Comidas", "Bebidas", "Postres", "Entradas", "Otros"]
CashMovementType = Literal["ingreso", "retiro"]
OrderPeriod = Literal["hoy", "semana", "mes"]


# =============================================================================
# Response envelope
# =============================================================================


class ApiResponse(BaseModel, Generic[T]):
    """Envelope wrapped around every successful response."""

    success: bool = True
    message: str | None = None
    data: T | None = None


class ErrorResponse(BaseModel):
    """Envelope for failed requests."""

    success: bool = False
    message: str
    error: object | None = None


# =============================================================================
# Authentication Schemas
# =============================================================================


class RegisterRequest(BaseModel):
    """
    Register a user.

    A new restaurant name creates the restaurant with this user as ADMIN.
    An existing one files a staff request that an admin must approve.
    """

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    restaurant: str = Field(min_length=3, max_length=100)
    branch: str | None = Field(default=None, max_length=100)
    role: StaffRole = "WAITER"
    phone: str | None = Field(default=None, max_length=50)


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str


class UserInfo(BaseModel):
    """Basic user information included in auth responses."""

    id: int
    name: str
    email: str
    tenant_id: int
    restaurant: str
    branch_id: int | None = None
    branch: str | None = None
    branch_ids: list[int]
    roles: list[str]


class LoginResponse(BaseModel):
    """Login response with JWT token."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds
    user: UserInfo


class RegisterResponse(BaseModel):
    """Registration outcome; no token while approval is pending."""

    user_id: int
    approval_status: str
    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    user: UserInfo | None = None


class PendingUserOutput(BaseModel):
    id: int
    name: str
    email: str
    requested_role: str | None = None
    requested_branch_id: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApprovalRequest(BaseModel):
    approve: bool


# =============================================================================
# Staff delegation
# =============================================================================


class StaffPermissionsInput(BaseModel):
    """Partial update of a staff member's delegation flags."""

    view_products: bool | None = None
    create_products: bool | None = None
    edit_products: bool | None = None
    delete_products: bool | None = None
    view_orders: bool | None = None
    create_orders: bool | None = None
    edit_orders: bool | None = None
    cancel_orders: bool | None = None
    view_expenses: bool | None = None
    create_expenses: bool | None = None
    edit_expenses: bool | None = None
    delete_expenses: bool | None = None
    view_reports: bool | None = None
    view_cash_closings: bool | None = None


class StaffOutput(BaseModel):
    id: int
    name: str
    email: str
    roles: list[str]
    is_active: bool
    permissions: dict[str, bool]


# =============================================================================
# Catalog
# =============================================================================


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    price_cents: int = Field(ge=0)
    category: ProductCategory = "Otros"
    description: str | None = Field(default=None, max_length=500)
    image: str | None = None
    available: bool = True
    stock: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    price_cents: int | None = Field(default=None, ge=0)
    category: ProductCategory | None = None
    description: str | None = Field(default=None, max_length=500)
    image: str | None = None
    available: bool | None = None
    stock: int | None = Field(default=None, ge=0)


class ProductOutput(BaseModel):
    id: int
    tenant_id: int
    name: str
    price_cents: int
    category: str
    description: str | None = None
    image: str | None = None
    available: bool
    stock: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ProductAvailabilityOutput(BaseModel):
    """Product with availability derived from ingredient stock."""

    id: int
    name: str
    price_cents: int
    category: str
    description: str | None = None
    image: str | None = None
    available: bool
    available_by_stock: bool
    limiting_ingredient: str | None = None


class RecipeLinkInput(BaseModel):
    product_id: int
    quantity_required: int = Field(default=1, ge=1)


class RecipeLinkOutput(BaseModel):
    product_id: int
    product_name: str | None = None
    quantity_required: int


class IngredientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    stock: int = Field(default=0, ge=0)
    unit_cost_cents: int = Field(default=0, ge=0)
    products: list[RecipeLinkInput] = Field(min_length=1)


class IngredientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    stock: int | None = Field(default=None, ge=0)
    unit_cost_cents: int | None = Field(default=None, ge=0)
    products: list[RecipeLinkInput] | None = Field(default=None, min_length=1)


class IngredientOutput(BaseModel):
    id: int
    name: str
    stock: int
    unit_cost_cents: int
    products: list[RecipeLinkOutput]
    created_at: datetime | None = None


# =============================================================================
# Orders
# =============================================================================


class OrderItemInput(BaseModel):
    product_id: int
    quantity: int = Field(ge=1, le=999)


class CreateOrderRequest(BaseModel):
    table: str = Field(min_length=1, max_length=50)
    items: list[OrderItemInput]
    notes: str | None = Field(default=None, max_length=500)
    ignore_insufficient_stock: bool = False


class UpdateOrderRequest(BaseModel):
    """Replace an order's table, items and/or notes."""

    table: str | None = Field(default=None, min_length=1, max_length=50)
    items: list[OrderItemInput] | None = None
    notes: str | None = Field(default=None, max_length=500)
    ignore_insufficient_stock: bool = False


class UpdateOrderStatusRequest(BaseModel):
    # Plain str so an unknown value is answered with the domain's own message
    status: str
    apply_to_all_items: bool = False
    payment_method: PaymentMethod | None = None
    customer_name: str | None = Field(default=None, max_length=100)
    customer_document: str | None = Field(default=None, max_length=50)


class UpdateItemStatusRequest(BaseModel):
    """Move units of one line item from one status to another."""

    quantity: int = Field(ge=1)
    from_status: str
    to_status: str


class StatusGroupOutput(BaseModel):
    status: str
    quantity: int


class OrderItemOutput(BaseModel):
    index: int
    product_id: int | None = None
    product_name: str
    product_category: str | None = None
    unit_price_cents: int
    quantity: int
    subtotal_cents: int
    status_groups: list[StatusGroupOutput]
    # True when the catalog product no longer exists and the snapshot is shown
    product_deleted: bool = False


class OrderOutput(BaseModel):
    id: int
    tenant_id: int
    branch_id: int
    table: str
    status: str
    notes: str | None = None
    items: list[OrderItemOutput]
    total_cents: int
    payment_method: str | None = None
    customer_name: str | None = None
    customer_document: str | None = None
    included_in_closing: bool
    cash_closing_id: int | None = None
    source: str
    external_order_id: str | None = None
    created_at: datetime | None = None
    delivered_at: datetime | None = None


class ItemStatusResponse(BaseModel):
    order: OrderOutput
    all_delivered: bool


class OrderStatsOutput(BaseModel):
    orders_today: int
    sales_today_cents: int
    by_status: dict[str, int]


# =============================================================================
# Expenses
# =============================================================================


class ExpenseLineInput(BaseModel):
    description: str = Field(min_length=1, max_length=200)
    amount_cents: int = Field(ge=0)


class ExpenseCreate(BaseModel):
    expense_date: datetime | None = None
    lines: list[ExpenseLineInput] = Field(min_length=1)


class ExpenseUpdate(BaseModel):
    expense_date: datetime | None = None
    lines: list[ExpenseLineInput] | None = Field(default=None, min_length=1)


class ExpenseLineOutput(BaseModel):
    description: str
    amount_cents: int

    class Config:
        from_attributes = True


class ExpenseOutput(BaseModel):
    id: int
    branch_id: int
    expense_date: datetime
    lines: list[ExpenseLineOutput]
    total_cents: int
    included_in_closing: bool
    cash_closing_id: int | None = None

    class Config:
        from_attributes = True


class ExpenseSummaryOutput(BaseModel):
    total_cents: int
    record_count: int
    line_count: int
    average_per_record_cents: int


# =============================================================================
# Cash reconciliation ("liquidación")
# =============================================================================


class CashMovementInput(BaseModel):
    movement_type: CashMovementType
    amount_cents: int = Field(ge=0)
    reason: str | None = Field(default=None, max_length=200)


class CashMovementOutput(BaseModel):
    movement_type: str
    amount_cents: int
    reason: str | None = None
    occurred_at: datetime | None = None

    class Config:
        from_attributes = True


class CloseCashRequest(BaseModel):
    opening_cash_cents: int = Field(default=0, ge=0)
    movements: list[CashMovementInput] = []
    observations: str | None = Field(default=None, max_length=1000)


class PendingClosingOutput(BaseModel):
    """What a close-out would absorb right now."""

    orders: list[OrderOutput]
    expenses: list[ExpenseOutput]
    order_count: int
    expense_count: int
    income_total_cents: int
    expense_total_cents: int
    last_closing_at: datetime | None = None


class CashClosingOutput(BaseModel):
    id: int
    branch_id: int
    closed_at: datetime
    opening_cash_cents: int
    income_total_cents: int
    expense_total_cents: int
    movements_net_cents: int
    closing_cash_cents: int
    order_count: int
    expense_count: int
    observations: str | None = None
    closed: bool
    movements: list[CashMovementOutput] = []


class CashClosingDetailOutput(CashClosingOutput):
    orders: list[OrderOutput] = []
    expenses: list[ExpenseOutput] = []


class CashClosingStatsOutput(BaseModel):
    closing_count: int
    income_total_cents: int
    expense_total_cents: int
    closing_cash_total_cents: int
    average_income_cents: int
    average_expense_cents: int


# =============================================================================
# Push notifications
# =============================================================================


class RegisterPushTokenRequest(BaseModel):
    token: str = Field(min_length=1, max_length=4096)
    table: str = Field(min_length=1, max_length=50)
    restaurant: str = Field(min_length=1, max_length=100)
    branch: str | None = Field(default=None, max_length=100)


class UnregisterPushTokenRequest(BaseModel):
    token: str = Field(min_length=1, max_length=4096)


class TestPushRequest(BaseModel):
    token: str = Field(min_length=1, max_length=4096)
    title: str = Field(default="Notificación de prueba", max_length=100)
    body: str = Field(default="Las notificaciones funcionan correctamente", max_length=300)


class PushTokenOutput(BaseModel):
    id: int
    table: str
    active: bool
    last_used_at: datetime | None = None


class NotifyResult(BaseModel):
    sent: int
    total: int


# =============================================================================
# Delivery platform (Mandao)
# =============================================================================


class ExternalOrderItem(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    quantity: int = Field(ge=1, le=999)
    price_cents: int = Field(ge=0)


class ExternalOrderRequest(BaseModel):
    """Order pushed by the delivery platform."""

    restaurant: str = Field(min_length=1, max_length=100)
    branch: str | None = Field(default=None, max_length=100)
    external_order_id: str = Field(min_length=1, max_length=100)
    items: list[ExternalOrderItem] = Field(min_length=1)
    total_cents: int | None = Field(default=None, ge=0)
    payment_method: PaymentMethod | None = None
    customer_name: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=500)
