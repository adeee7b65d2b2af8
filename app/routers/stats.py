# app/routers/stats.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import get_principal, require_auth
from app.database import get_session
from app.repositories.booking_repo import BookingRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.sequence_repo import SequenceRepository
from app.repositories.stats_repo import StatsRepository
from app.repositories.user_repo import UserRepository
from app.schemas.stats import ProviderBookingStats, ProviderStatsRead, VendorStatsRead
from app.schemas.user import Principal
from app.services.booking_service import BookingService
from app.services.notification_service import NotificationService
from app.services.stats_service import StatsAggregator

router = APIRouter(prefix="/stats", tags=["Stats"])

booking_repo = BookingRepository()
user_repo = UserRepository()
service = StatsAggregator(
    StatsRepository(), OrderRepository(), booking_repo, ProductRepository(), user_repo
)
booking_service = BookingService(
    booking_repo, user_repo, SequenceRepository(), service, NotificationService()
)


@router.get(
    "/vendors/{vendor_id}",
    response_model=VendorStatsRead,
    dependencies=[Depends(require_auth)],
)
def get_vendor_stats(
    vendor_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Sales, revenue and rating counters for a vendor.
    """
    return service.get_vendor_stats(session, vendor_id)


@router.get(
    "/providers/{provider_id}",
    response_model=ProviderStatsRead,
    dependencies=[Depends(require_auth)],
)
def get_provider_stats(
    provider_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Job, completion and rating counters for a service provider.
    """
    return service.get_provider_stats(session, provider_id)


@router.get(
    "/providers/{provider_id}/bookings",
    response_model=ProviderBookingStats,
)
def get_provider_booking_stats(
    provider_id: uuid.UUID,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Live status breakdown of a provider's bookings.

    Only the provider themselves or an admin.
    """
    return booking_service.provider_booking_stats(session, actor, provider_id)
