import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry sold by a vendor (plant or accessory).

    The inventory record is embedded as plain columns:
      - quantity, low_stock_threshold, track_quantity, allow_backorder

    `quantity` is only ever mutated through the InventoryLedger.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    vendor_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    name: str = Field(
        max_length=100,
        min_length=3,
        index=True,
        description="Display name of the plant/product",
    )

    sku: str = Field(
        max_length=64,
        unique=True,
        index=True,
        description="Stock keeping unit (unique)",
    )

    # plant | accessory
    product_type: str = Field(
        default="plant",
        index=True,
    )

    description: str | None = None

    price: float = Field(
        ge=0,
        description="Unit price",
    )

    compare_at_price: float | None = None

    currency: str = Field(default="PKR")

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product is visible on the storefront",
    )

    image_url: str | None = Field(
        default=None,
        description="Main image URL",
    )

    plant_details: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )
    accessory_details: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )

    # Inventory record
    quantity: int = Field(default=0)
    low_stock_threshold: int = Field(default=5, ge=0)
    track_quantity: bool = Field(default=True)
    allow_backorder: bool = Field(default=False)

    # Rating stats (StatsAggregator)
    average_rating: float = Field(default=0.0)
    total_reviews: int = Field(default=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class InventoryReservation(SQLModel, table=True):
    """
    Idempotency ledger for reserve/release.

    One row per order line; `release` flips status reserved -> released
    with a conditional update so a replayed cancellation never restocks twice.
    """

    __tablename__ = "inventory_reservations"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    reservation_key: str = Field(
        unique=True,
        index=True,
        description="'<order_id>:<order_item_id>'",
    )

    order_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    quantity: int = Field(gt=0)

    # reserved | released
    status: str = Field(default="reserved", index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    released_at: datetime | None = None


class ProductReview(SQLModel, table=True):
    """
    Customer review of a product. One review per (product, customer).
    """

    __tablename__ = "product_reviews"
    __table_args__ = (
        UniqueConstraint("product_id", "customer_id", name="uq_review_product_customer"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    customer_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    rating: int = Field(ge=1, le=5)
    comment: str | None = None

    # pending | approved | rejected
    status: str = Field(default="approved", index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = None
