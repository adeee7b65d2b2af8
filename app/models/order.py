import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Physical-goods purchase.

    Pricing invariant:
      - total == subtotal + shipping_cost + tax - discount
      - subtotal == sum(item.total_price)

    Never deleted; cancellation and refund are statuses. Every status write
    bumps `version` and is conditioned on the version that was read.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        description="Human readable number, PO-<year>-<sequence>",
    )

    customer_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # pending | confirmed | processing | shipped | delivered | cancelled | refunded
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    # pending | paid | failed | refunded | partially_refunded
    payment_status: str = Field(default="pending")

    # unfulfilled | processing | shipped | delivered
    fulfillment_status: str = Field(default="unfulfilled")

    # Pricing
    subtotal: float = Field(ge=0)
    shipping_cost: float = Field(default=0.0, ge=0)
    tax: float = Field(default=0.0, ge=0)
    discount: float = Field(default=0.0, ge=0)
    total: float = Field(ge=0)
    currency: str = Field(default="PKR")

    shipping: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="address, method, cost, tracking_number, carrier",
    )
    billing: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="address, payment_method",
    )
    discounts: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    notes: str | None = Field(default=None, max_length=1000)
    customer_notes: str | None = Field(default=None, max_length=500)

    version: int = Field(default=1)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """
    Line item snapshot. Prices and product details are copied at creation
    so later catalog edits never change a historical order.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    vendor_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    product_name: str
    product_type: str
    sku: str

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: float = Field(
        ge=0,
        description="Unit price at time of order",
    )
    compare_at_price: float | None = None
    total_price: float = Field(ge=0)

    snapshot: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="image + plant/accessory details at time of order",
    )


class OrderTimelineEntry(SQLModel, table=True):
    """
    Append-only audit log row. Never updated, never deleted.
    """

    __tablename__ = "order_timeline"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # 1-based position within the order's timeline
    position: int = Field(default=1)

    status: str
    note: str | None = None
    tracking_number: str | None = None
    updated_by: uuid.UUID | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
