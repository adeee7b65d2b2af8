import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Persistent user profile for the marketplace.

    Identity:
      - id: MUST match the auth provider user id (UUID from JWT "sub")

    Role:
      - "customer" | "vendor" | "service_provider" | "admin"
      - guests are represented by the absence of a row / missing token.

    This table is *not* responsible for password hashes. We only mirror
    identity, name, application role and account status.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
        description="Matches auth provider user id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from the identity provider",
    )

    name: str = Field(
        max_length=50,
        description="Display name; first part of email by default",
    )

    # Application role
    role: str = Field(
        default="customer",
        index=True,
        description="customer | vendor | service_provider | admin",
    )

    # active | disabled | suspended
    status: str = Field(
        default="active",
        index=True,
        description="Account status",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class VendorProfile(SQLModel, table=True):
    """
    Seller-side profile. Stats columns are owned by the StatsAggregator.
    """

    __tablename__ = "vendor_profiles"

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        primary_key=True,
    )

    business_name: str | None = None

    total_products: int = Field(default=0, ge=0)
    total_sales: int = Field(default=0)
    total_revenue: float = Field(default=0.0)
    average_rating: float = Field(default=0.0)
    total_reviews: int = Field(default=0)


class ServiceProviderProfile(SQLModel, table=True):
    """
    Service provider profile: pricing, weekly availability and job stats.

    Working hours are "HH:MM" strings; an end <= start means the shift
    wraps past midnight.
    """

    __tablename__ = "service_provider_profiles"

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        primary_key=True,
    )

    business_name: str | None = None

    # Pricing
    hourly_rate: float = Field(default=0.0, ge=0)
    minimum_charge: float | None = Field(default=None, ge=0)
    travel_fee: float | None = Field(default=None, ge=0)

    # Availability
    working_days: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Lowercase weekday names, e.g. ['monday', 'tuesday']",
    )
    working_hours_start: str = Field(default="08:00")
    working_hours_end: str = Field(default="18:00")

    # Stats
    total_jobs: int = Field(default=0)
    completed_jobs: int = Field(default=0)
    average_rating: float = Field(default=0.0)
    total_reviews: int = Field(default=0)
    completion_rate: float = Field(default=100.0)
