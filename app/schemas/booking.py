import uuid
from datetime import date, datetime, time
from typing import Any, Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

BookingStatus = Literal[
    "pending",
    "confirmed",
    "in_progress",
    "completed",
    "cancelled",
    "rejected",
]

# Older clients still send the 4-state vocabulary
STATUS_ALIASES: dict[str, str] = {
    "requested": "pending",
    "accepted": "confirmed",
    "declined": "rejected",
}


class AdditionalServiceIn(SQLModel):
    """
    An extra service of the same provider added to the booking.

    Only the id is taken from the client; title, rate, duration and price
    are read from the catalog when the booking is created.
    """

    model_config = ConfigDict(extra="forbid")

    service_id: uuid.UUID


class BookingCreate(SQLModel):
    """
    Payload for requesting a service booking.

    Backend derives:
      - customer_id from token
      - price breakdown from provider/service pricing
      - status = 'pending'
      - booking_number
    """

    model_config = ConfigDict(extra="forbid")

    provider_id: uuid.UUID
    service_id: uuid.UUID
    scheduled_date: date
    scheduled_time: time
    duration: float = Field(ge=0.5, description="Hours, at least 0.5")
    address: str = Field(min_length=5, max_length=500)
    phone: str = Field(min_length=10, max_length=15)
    notes: str | None = Field(default=None, max_length=1000)
    promo_code: str | None = Field(default=None, max_length=50)
    additional_services: list[AdditionalServiceIn] = Field(default_factory=list)
    expected_total: float | None = Field(
        default=None,
        ge=0,
        description="Client-side total; rejected if it differs from the server price",
    )

    @field_validator("address")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("phone")
    @classmethod
    def digits_only(cls, v: str) -> str:
        if not v.isascii() or not v.isdigit():
            raise ValueError("phone must contain digits only")
        return v


class BookingStatusUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: BookingStatus
    reason: str | None = Field(default=None, max_length=500)

    @field_validator("status", mode="before")
    @classmethod
    def resolve_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            return STATUS_ALIASES.get(v, v)
        return v


class BookingCancel(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str = Field(min_length=10, max_length=500)


class BookingReviewCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    rating: int
    comment: str | None = Field(default=None, max_length=1000)


class BookingRead(SQLModel):
    id: uuid.UUID
    booking_number: str
    customer_id: uuid.UUID
    provider_id: uuid.UUID
    service_id: uuid.UUID
    service_type: str
    status: BookingStatus
    scheduled_date: date
    scheduled_time: time
    duration: float
    address: str
    phone: str
    notes: str | None
    additional_services: list[dict[str, Any]]
    base_price: float
    base_duration: float
    extra_hours: float
    extra_hours_cost: float
    minimum_charge_adjustment: float
    travel_fee: float
    additional_services_total: float
    promo_code: str | None
    promo_discount: float
    total_amount: float
    currency: str
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    review_rating: int | None
    review_comment: str | None
    reviewed_at: datetime | None
    created_at: datetime


class BookingPolicyRead(SQLModel):
    """Whether the booking is still inside its cancel/reject windows."""

    booking_id: uuid.UUID
    status: BookingStatus
    can_be_cancelled: bool
    can_be_rejected: bool


class BookingPage(SQLModel):
    items: list[BookingRead]
    total: int
    page: int
    limit: int
    pages: int


class ServiceCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=3, max_length=120)
    description: str | None = None
    service_type: str
    hourly_rate: float = Field(default=0.0, ge=0)
    duration_hours: float = Field(default=1.0, ge=0)


class ServiceRead(SQLModel):
    id: uuid.UUID
    provider_id: uuid.UUID
    title: str
    description: str | None
    service_type: str
    hourly_rate: float
    duration_hours: float
    currency: str
    is_active: bool
