import uuid

from pydantic import ConfigDict
from sqlmodel import SQLModel


class VendorStatsRead(SQLModel):
    """
    Seller counters maintained by the stats aggregator.
    """
    model_config = ConfigDict(extra="forbid")

    vendor_id: uuid.UUID
    total_products: int
    total_sales: int
    total_revenue: float
    average_rating: float
    total_reviews: int


class ProviderStatsRead(SQLModel):
    """
    Service provider counters maintained by the stats aggregator.
    """
    model_config = ConfigDict(extra="forbid")

    provider_id: uuid.UUID
    total_jobs: int
    completed_jobs: int
    average_rating: float
    total_reviews: int
    completion_rate: float


class StatusBucket(SQLModel):
    """
    Bookings and revenue grouped by booking status.
    """
    model_config = ConfigDict(extra="forbid")

    status: str
    count: int
    total_revenue: float


class ProviderBookingStats(SQLModel):
    model_config = ConfigDict(extra="forbid")

    provider_id: uuid.UUID
    total_bookings: int
    completed_bookings: int
    status_breakdown: list[StatusBucket]
