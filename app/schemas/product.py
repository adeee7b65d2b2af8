# app/schemas/product.py
import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

ProductType = Literal["plant", "accessory"]


class ProductCreate(SQLModel):
    """
    Payload for a vendor listing a product.

    - sku is optional: if omitted, generated from `name`.
    - quantity is the opening stock; later changes go through restock/orders.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100, min_length=3)
    sku: str | None = Field(default=None, max_length=64)
    product_type: ProductType = "plant"
    description: str | None = None
    price: float = Field(ge=0)
    compare_at_price: float | None = Field(default=None, ge=0)
    is_active: bool = True
    image_url: str | None = None
    plant_details: dict[str, Any] | None = None
    accessory_details: dict[str, Any] | None = None

    quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=5, ge=0)
    track_quantity: bool = True
    allow_backorder: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().upper()
        if not v:
            raise ValueError("sku cannot be empty if provided")
        return v


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    vendor_id: uuid.UUID
    name: str
    sku: str
    product_type: ProductType
    description: str | None
    price: float
    compare_at_price: float | None
    currency: str
    is_active: bool
    image_url: str | None
    plant_details: dict[str, Any] | None
    accessory_details: dict[str, Any] | None
    quantity: int
    low_stock_threshold: int
    track_quantity: bool
    allow_backorder: bool
    average_rating: float
    total_reviews: int
    created_at: datetime


class RestockRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(gt=0)


class InventoryRead(SQLModel):
    product_id: uuid.UUID
    quantity: int
    low_stock: bool


class ProductReviewCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)


class ProductReviewRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    customer_id: uuid.UUID
    rating: int
    comment: str | None
    status: str
    created_at: datetime
