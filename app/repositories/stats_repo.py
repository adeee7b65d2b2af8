# app/repositories/stats_repo.py
import uuid

from sqlalchemy import update
from sqlmodel import Session

from app.models.ledger import StatsEvent
from app.models.product import Product
from app.models.user import ServiceProviderProfile, VendorProfile


class StatsRepository:
    """
    Writes to the derived counters on vendor/provider profiles and products,
    plus the event ledger that makes those writes replay-safe.

    Counter updates are relative UPDATE statements (x = x + n) so concurrent
    handlers never overwrite each other.
    """

    # ----- Event ledger -----

    def has_event(self, session: Session, event_key: str) -> bool:
        return session.get(StatsEvent, event_key) is not None

    def record_event(self, session: Session, event_key: str) -> None:
        session.add(StatsEvent(event_key=event_key))
        session.flush()

    # ----- Vendor counters -----

    def ensure_vendor_profile(self, session: Session, vendor_id: uuid.UUID) -> None:
        if session.get(VendorProfile, vendor_id) is None:
            session.add(VendorProfile(user_id=vendor_id))
            session.flush()

    def add_vendor_sales(
        self,
        session: Session,
        vendor_id: uuid.UUID,
        units: int,
        revenue: float,
    ) -> None:
        self.ensure_vendor_profile(session, vendor_id)
        stmt = (
            update(VendorProfile)
            .where(VendorProfile.user_id == vendor_id)
            .values(
                total_sales=VendorProfile.total_sales + units,
                total_revenue=VendorProfile.total_revenue + revenue,
            )
            .execution_options(synchronize_session="fetch")
        )
        session.exec(stmt)  # type: ignore[call-overload]

    def add_vendor_products(self, session: Session, vendor_id: uuid.UUID, count: int) -> None:
        self.ensure_vendor_profile(session, vendor_id)
        stmt = (
            update(VendorProfile)
            .where(VendorProfile.user_id == vendor_id)
            .values(total_products=VendorProfile.total_products + count)
            .execution_options(synchronize_session="fetch")
        )
        session.exec(stmt)  # type: ignore[call-overload]

    def set_vendor_rating(
        self,
        session: Session,
        vendor_id: uuid.UUID,
        average: float,
        total: int,
    ) -> None:
        self.ensure_vendor_profile(session, vendor_id)
        stmt = (
            update(VendorProfile)
            .where(VendorProfile.user_id == vendor_id)
            .values(average_rating=round(average, 2), total_reviews=total)
            .execution_options(synchronize_session="fetch")
        )
        session.exec(stmt)  # type: ignore[call-overload]

    # ----- Product rating -----

    def set_product_rating(
        self,
        session: Session,
        product_id: uuid.UUID,
        average: float,
        total: int,
    ) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(average_rating=round(average, 2), total_reviews=total)
            .execution_options(synchronize_session="fetch")
        )
        session.exec(stmt)  # type: ignore[call-overload]

    # ----- Provider counters -----

    def add_provider_jobs(
        self,
        session: Session,
        provider_id: uuid.UUID,
        total: int = 0,
        completed: int = 0,
    ) -> None:
        profile = session.get(ServiceProviderProfile, provider_id)
        if profile is None:
            return
        stmt = (
            update(ServiceProviderProfile)
            .where(ServiceProviderProfile.user_id == provider_id)
            .values(
                total_jobs=ServiceProviderProfile.total_jobs + total,
                completed_jobs=ServiceProviderProfile.completed_jobs + completed,
            )
            .execution_options(synchronize_session="fetch")
        )
        session.exec(stmt)  # type: ignore[call-overload]
        session.refresh(profile)
        if profile.total_jobs > 0:
            profile.completion_rate = round(
                profile.completed_jobs / profile.total_jobs * 100, 2
            )
            session.add(profile)
            session.flush()

    def set_provider_rating(
        self,
        session: Session,
        provider_id: uuid.UUID,
        average: float,
        total: int,
    ) -> None:
        stmt = (
            update(ServiceProviderProfile)
            .where(ServiceProviderProfile.user_id == provider_id)
            .values(average_rating=round(average, 2), total_reviews=total)
            .execution_options(synchronize_session="fetch")
        )
        session.exec(stmt)  # type: ignore[call-overload]
