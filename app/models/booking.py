import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import SQLModel, Field

# Bookings in these states occupy the provider's calendar
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed", "in_progress")

# No cancellation or rejection is possible from these states
LOCKED_BOOKING_STATUSES = ("in_progress", "completed", "cancelled", "rejected")


class Service(SQLModel, table=True):
    """
    A bookable service offered by a service provider.
    """

    __tablename__ = "services"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    provider_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    title: str = Field(max_length=120)
    description: str | None = None

    # e.g. lawn_mowing, garden_design, plant_care ...
    service_type: str = Field(index=True)

    # 0 means "use the provider's hourly rate"
    hourly_rate: float = Field(default=0.0, ge=0)
    duration_hours: float = Field(
        default=1.0,
        ge=0,
        description="Base duration included in the base price",
    )
    currency: str = Field(default="PKR")
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class PromoCode(SQLModel, table=True):
    """
    Discount code applicable to bookings.
    """

    __tablename__ = "promo_codes"

    code: str = Field(primary_key=True, max_length=50)

    # fixed | percentage
    discount_type: str = Field(default="fixed")
    value: float = Field(ge=0)
    is_active: bool = Field(default=True)
    expires_at: datetime | None = None


class Booking(SQLModel, table=True):
    """
    Scheduled service reservation between a customer and a provider.

    Date and time-of-day are stored separately and merged as UTC for any
    comparison; `starts_at`/`ends_at` persist the merged half-open interval
    for the overlap query.
    """

    __tablename__ = "bookings"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    booking_number: str = Field(
        unique=True,
        index=True,
        description="Human readable number, BK-<year>-<sequence>",
    )

    customer_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    provider_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    service_id: uuid.UUID = Field(foreign_key="services.id", index=True)
    service_type: str

    # pending | confirmed | in_progress | completed | cancelled | rejected
    status: str = Field(default="pending", index=True)

    scheduled_date: date
    scheduled_time: time
    duration: float = Field(ge=0.5, description="Hours")
    # Aware UTC; SQLite hands them back naive
    starts_at: datetime = Field(sa_type=DateTime(timezone=True), index=True)
    ends_at: datetime = Field(sa_type=DateTime(timezone=True), index=True)

    address: str
    phone: str
    notes: str | None = Field(default=None, max_length=1000)

    additional_services: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    # Price breakdown
    base_price: float = Field(default=0.0)
    base_duration: float = Field(default=0.0)
    extra_hours: float = Field(default=0.0)
    extra_hours_cost: float = Field(default=0.0)
    minimum_charge_adjustment: float = Field(default=0.0)
    travel_fee: float = Field(default=0.0)
    additional_services_total: float = Field(default=0.0)
    promo_code: str | None = None
    promo_discount: float = Field(default=0.0)
    total_amount: float = Field(default=0.0)
    currency: str = Field(default="PKR")

    # Cancellation record (set once, on cancel/reject)
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None  # customer | provider | admin
    cancellation_reason: str | None = None

    # Customer review (set once, after completion)
    review_rating: int | None = None
    review_comment: str | None = None
    reviewed_at: datetime | None = None

    version: int = Field(default=1)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def scheduled_at(self) -> datetime:
        """Scheduled start as an aware UTC datetime."""
        return datetime.combine(self.scheduled_date, self.scheduled_time, tzinfo=timezone.utc)

    def _time_until_start(self, now: datetime | None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return self.scheduled_at - now

    def can_be_cancelled(self, now: datetime | None = None, window_hours: int = 24) -> bool:
        if self.status in LOCKED_BOOKING_STATUSES:
            return False
        return self._time_until_start(now) >= timedelta(hours=window_hours)

    def can_be_rejected(self, now: datetime | None = None, window_hours: int = 12) -> bool:
        if self.status in LOCKED_BOOKING_STATUSES:
            return False
        return self._time_until_start(now) >= timedelta(hours=window_hours)
