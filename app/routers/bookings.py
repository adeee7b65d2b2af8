# app/routers/bookings.py
import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from app.core.auth import get_principal
from app.database import get_session
from app.repositories.booking_repo import BookingRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.sequence_repo import SequenceRepository
from app.repositories.stats_repo import StatsRepository
from app.repositories.user_repo import UserRepository
from app.schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingPage,
    BookingPolicyRead,
    BookingRead,
    BookingReviewCreate,
    BookingStatusUpdate,
)
from app.schemas.user import Principal
from app.services.booking_service import BookingService
from app.services.notification_service import NotificationService
from app.services.stats_service import StatsAggregator

router = APIRouter(prefix="/bookings", tags=["Bookings"])

booking_repo = BookingRepository()
user_repo = UserRepository()
stats = StatsAggregator(
    StatsRepository(), OrderRepository(), booking_repo, ProductRepository(), user_repo
)
service = BookingService(
    booking_repo,
    user_repo,
    SequenceRepository(),
    stats,
    NotificationService(),
)


@router.post(
    "",
    response_model=BookingRead,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    payload: BookingCreate,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Request a booking with a service provider.

    Rejected with 409 when the provider is off duty or already booked
    in an overlapping slot.
    """
    return service.create_booking(session, actor, payload)


@router.get("", response_model=BookingPage)
def list_bookings(
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
    booking_status: str | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    when: Literal["upcoming", "past"] | None = None,
):
    """
    Bookings visible to the caller (customer: own, provider: assigned,
    admin: all). `?when=upcoming` lists what is still ahead, `?when=past`
    the booking history.
    """
    return service.list_bookings(session, actor, booking_status, page, limit, when=when)


@router.get("/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: uuid.UUID,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    return service.get_booking(session, actor, booking_id)


@router.get("/{booking_id}/policy", response_model=BookingPolicyRead)
def get_booking_policy(
    booking_id: uuid.UUID,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Whether the booking can still be cancelled / rejected right now.
    """
    return service.get_policy(session, actor, booking_id)


@router.patch("/{booking_id}/status", response_model=BookingRead)
def update_booking_status(
    booking_id: uuid.UUID,
    payload: BookingStatusUpdate,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Provider-driven status change. `accepted`/`declined` are accepted as
    aliases of `confirmed`/`rejected`.
    """
    return service.transition(session, booking_id, payload.status, actor, payload.reason)


@router.post("/{booking_id}/cancel", response_model=BookingRead)
def cancel_booking(
    booking_id: uuid.UUID,
    payload: BookingCancel,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    return service.cancel_booking(session, booking_id, actor, payload.reason)


@router.post("/{booking_id}/reject", response_model=BookingRead)
def reject_booking(
    booking_id: uuid.UUID,
    payload: BookingCancel,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    return service.reject_booking(session, booking_id, actor, payload.reason)


@router.post("/{booking_id}/review", response_model=BookingRead)
def review_booking(
    booking_id: uuid.UUID,
    payload: BookingReviewCreate,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Leave the single customer review of a completed booking.
    """
    return service.add_customer_review(
        session, booking_id, actor, payload.rating, payload.comment
    )


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(
    booking_id: uuid.UUID,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Hard delete (admin only).
    """
    service.delete_booking(session, booking_id, actor)
