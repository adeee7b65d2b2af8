import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "refunded",
]
PaymentStatus = Literal["pending", "paid", "failed", "refunded", "partially_refunded"]
FulfillmentStatus = Literal["unfulfilled", "processing", "shipped", "delivered"]
PaymentMethodType = Literal[
    "cod",
    "credit_card",
    "debit_card",
    "paypal",
    "apple_pay",
    "google_pay",
]


class AddressIn(SQLModel):
    """
    Postal address used for shipping and billing.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str
    phone: str
    street: str
    city: str
    province: str | None = None
    postal_code: str | None = None
    country: str = "PK"

    @field_validator("full_name", "phone", "street", "city")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class PaymentMethodIn(SQLModel):
    model_config = ConfigDict(extra="forbid")

    type: PaymentMethodType
    last4: str | None = Field(default=None, max_length=4)
    brand: str | None = None
    gateway: str | None = None
    transaction_id: str | None = None


class ShippingIn(SQLModel):
    model_config = ConfigDict(extra="forbid")

    address: AddressIn
    method: str
    cost: float = Field(ge=0)
    carrier: str | None = None


class BillingIn(SQLModel):
    model_config = ConfigDict(extra="forbid")

    address: AddressIn
    payment_method: PaymentMethodIn


class PricingIn(SQLModel):
    """
    Client-computed pricing. The server recomputes it from the line items
    and rejects the order on any mismatch.
    """

    model_config = ConfigDict(extra="forbid")

    subtotal: float = Field(ge=0)
    shipping: float = Field(default=0.0, ge=0)
    tax: float = Field(default=0.0, ge=0)
    discount: float = Field(default=0.0, ge=0)
    total: float = Field(ge=0)
    currency: str | None = None


class DiscountIn(SQLModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    type: Literal["percentage", "fixed", "free_shipping"]
    amount: float = Field(ge=0)
    description: str | None = None


class OrderItemCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = Field(gt=0)


class OrderCreate(SQLModel):
    """
    Payload for placing an order.

    User provides:
      - items (product + quantity)
      - pricing as computed client-side
      - shipping and billing details

    Backend derives:
      - customer_id from token
      - status = 'pending'
      - item snapshots and unit prices from the catalog
      - order_number
    """

    model_config = ConfigDict(extra="forbid")

    items: list[OrderItemCreate] = Field(min_length=1)
    pricing: PricingIn
    shipping: ShippingIn
    billing: BillingIn
    discounts: list[DiscountIn] = Field(default_factory=list)
    notes: str | None = Field(default=None, max_length=1000)
    customer_notes: str | None = Field(default=None, max_length=500)

    @field_validator("notes", "customer_notes")
    @classmethod
    def normalize_note(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderStatusUpdate(SQLModel):
    """
    Payload to move an order along its lifecycle.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    note: str | None = Field(default=None, max_length=500)
    tracking_number: str | None = None


class OrderCancel(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=500)


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    vendor_id: uuid.UUID
    product_name: str
    product_type: str
    sku: str
    quantity: int
    unit_price: float
    compare_at_price: float | None
    total_price: float
    snapshot: dict[str, Any]


class TimelineEntryRead(SQLModel):
    status: str
    note: str | None
    tracking_number: str | None
    updated_by: uuid.UUID | None
    created_at: datetime


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    status: OrderStatus
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    subtotal: float
    shipping_cost: float
    tax: float
    discount: float
    total: float
    currency: str
    created_at: datetime


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items and timeline.
    """

    shipping: dict[str, Any]
    billing: dict[str, Any]
    discounts: list[dict[str, Any]]
    notes: str | None
    customer_notes: str | None
    items: list[OrderItemRead]
    timeline: list[TimelineEntryRead]
