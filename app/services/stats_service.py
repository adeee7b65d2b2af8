# app/services/stats_service.py
import logging
import uuid
from collections import defaultdict
from typing import Any, Callable

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import NotFoundError
from app.database import unit_of_work
from app.repositories.booking_repo import BookingRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.stats_repo import StatsRepository
from app.repositories.user_repo import UserRepository
from app.schemas.stats import (
    ProviderBookingStats,
    ProviderStatsRead,
    StatusBucket,
    VendorStatsRead,
)

logger = logging.getLogger(__name__)

settings = get_settings()


class StatsAggregator:
    """
    Owner of the derived vendor/provider/product counters.

    Lifecycle services call the on_* handlers explicitly after their own
    commit, through `dispatch`. Counter increments are keyed in the
    stats_events ledger so a retried or replayed handler is a no-op.
    Ratings are always recomputed from scratch.
    """

    def __init__(
        self,
        stats_repo: StatsRepository,
        order_repo: OrderRepository,
        booking_repo: BookingRepository,
        product_repo: ProductRepository,
        user_repo: UserRepository,
        max_attempts: int | None = None,
    ):
        self.stats_repo = stats_repo
        self.order_repo = order_repo
        self.booking_repo = booking_repo
        self.product_repo = product_repo
        self.user_repo = user_repo
        self.max_attempts = max_attempts or settings.STATS_MAX_ATTEMPTS

    # -------- Dispatch --------

    def dispatch(
        self,
        session: Session,
        handler: Callable[..., Any],
        *args: Any,
    ) -> bool:
        """
        Run a handler in its own unit of work, retrying on failure.

        Never raises: the primary operation has already committed, so a
        failure here is logged loudly for replay instead of surfacing to
        the caller. Returns True if the handler eventually succeeded.
        """
        name = getattr(handler, "__name__", repr(handler))
        for attempt in range(1, self.max_attempts + 1):
            try:
                with unit_of_work(session):
                    handler(session, *args)
                return True
            except Exception:
                logger.warning(
                    "Stats handler %s%s failed (attempt %d/%d)",
                    name,
                    args,
                    attempt,
                    self.max_attempts,
                    exc_info=True,
                )
        logger.error("Stats handler %s%s gave up; replay required", name, args)
        return False

    # -------- Order events --------

    def _vendor_totals(self, session: Session, order_id: uuid.UUID) -> dict[uuid.UUID, list]:
        totals: dict[uuid.UUID, list] = defaultdict(lambda: [0, 0.0])
        for item in self.order_repo.list_items_for_order(session, order_id):
            totals[item.vendor_id][0] += item.quantity
            totals[item.vendor_id][1] += item.total_price
        return totals

    def on_order_delivered(self, session: Session, order_id: uuid.UUID) -> bool:
        """Add units sold and revenue to every vendor on the order."""
        key = f"order:{order_id}:delivered"
        if self.stats_repo.has_event(session, key):
            return False
        for vendor_id, (units, revenue) in self._vendor_totals(session, order_id).items():
            self.stats_repo.add_vendor_sales(session, vendor_id, units, round(revenue, 2))
        self.stats_repo.record_event(session, key)
        return True

    def on_order_refunded(self, session: Session, order_id: uuid.UUID) -> bool:
        """
        Reverse the delivered increments. Only applies if they were
        applied in the first place.
        """
        key = f"order:{order_id}:refunded"
        if self.stats_repo.has_event(session, key):
            return False
        if not self.stats_repo.has_event(session, f"order:{order_id}:delivered"):
            logger.warning("Refund of order %s without delivered stats; nothing to reverse", order_id)
            return False
        for vendor_id, (units, revenue) in self._vendor_totals(session, order_id).items():
            self.stats_repo.add_vendor_sales(session, vendor_id, -units, -round(revenue, 2))
        self.stats_repo.record_event(session, key)
        return True

    # -------- Booking events --------

    def on_booking_created(self, session: Session, booking_id: uuid.UUID) -> bool:
        key = f"booking:{booking_id}:created"
        booking = self.booking_repo.get_by_id(session, booking_id)
        if booking is None or self.stats_repo.has_event(session, key):
            return False
        self.stats_repo.add_provider_jobs(session, booking.provider_id, total=1)
        self.stats_repo.record_event(session, key)
        return True

    def on_booking_completed(self, session: Session, booking_id: uuid.UUID) -> bool:
        key = f"booking:{booking_id}:completed"
        booking = self.booking_repo.get_by_id(session, booking_id)
        if booking is None or self.stats_repo.has_event(session, key):
            return False
        self.stats_repo.add_provider_jobs(session, booking.provider_id, completed=1)
        self.stats_repo.record_event(session, key)
        return True

    # -------- Ratings --------

    def on_review_added(
        self,
        session: Session,
        provider_id: uuid.UUID | None = None,
        vendor_id: uuid.UUID | None = None,
    ) -> None:
        """Full recompute of average + count for a provider and/or vendor."""
        if provider_id is not None:
            avg, total = self.booking_repo.provider_rating(session, provider_id)
            self.stats_repo.set_provider_rating(session, provider_id, avg, total)
        if vendor_id is not None:
            avg, total = self.product_repo.vendor_rating(session, vendor_id)
            self.stats_repo.set_vendor_rating(session, vendor_id, avg, total)

    def on_product_review_changed(self, session: Session, product_id: uuid.UUID) -> None:
        product = self.product_repo.get_by_id(session, product_id)
        if product is None:
            return
        avg, total = self.product_repo.product_rating(session, product_id)
        self.stats_repo.set_product_rating(session, product_id, avg, total)
        self.on_review_added(session, vendor_id=product.vendor_id)

    # -------- Read side --------

    def get_vendor_stats(self, session: Session, vendor_id: uuid.UUID) -> VendorStatsRead:
        profile = self.user_repo.get_vendor_profile(session, vendor_id)
        if profile is None:
            raise NotFoundError("Vendor", vendor_id)
        return VendorStatsRead(
            vendor_id=vendor_id,
            total_products=profile.total_products,
            total_sales=profile.total_sales,
            total_revenue=round(profile.total_revenue, 2),
            average_rating=profile.average_rating,
            total_reviews=profile.total_reviews,
        )

    def get_provider_stats(self, session: Session, provider_id: uuid.UUID) -> ProviderStatsRead:
        profile = self.user_repo.get_provider_profile(session, provider_id)
        if profile is None:
            raise NotFoundError("Service provider", provider_id)
        return ProviderStatsRead(
            provider_id=provider_id,
            total_jobs=profile.total_jobs,
            completed_jobs=profile.completed_jobs,
            average_rating=profile.average_rating,
            total_reviews=profile.total_reviews,
            completion_rate=profile.completion_rate,
        )

    def get_provider_booking_stats(
        self,
        session: Session,
        provider_id: uuid.UUID,
    ) -> ProviderBookingStats:
        """Live breakdown of a provider's bookings by status."""
        buckets: list[StatusBucket] = []
        total = 0
        completed = 0
        for status_value, count, revenue in self.booking_repo.status_breakdown(session, provider_id):
            total += int(count)
            if status_value == "completed":
                completed = int(count)
            buckets.append(
                StatusBucket(
                    status=status_value,
                    count=int(count),
                    total_revenue=round(float(revenue or 0.0), 2),
                )
            )
        return ProviderBookingStats(
            provider_id=provider_id,
            total_bookings=total,
            completed_bookings=completed,
            status_breakdown=buckets,
        )
