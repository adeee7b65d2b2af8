# app/services/booking_service.py
import logging
import math
import uuid
from datetime import date, datetime, time, timedelta, timezone

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import (
    ConcurrentModificationError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.database import unit_of_work
from app.models.booking import LOCKED_BOOKING_STATUSES, Booking, PromoCode, Service
from app.models.user import ServiceProviderProfile
from app.repositories.booking_repo import BookingRepository
from app.repositories.sequence_repo import SequenceRepository
from app.repositories.user_repo import UserRepository
from app.schemas.booking import (
    STATUS_ALIASES,
    BookingCreate,
    BookingPage,
    BookingPolicyRead,
    BookingRead,
)
from app.schemas.stats import ProviderBookingStats
from app.schemas.user import Principal
from app.services.notification_service import NotificationService
from app.services.pricing import Promo, amounts_match, compute_booking_price, money
from app.services.stats_service import StatsAggregator

logger = logging.getLogger(__name__)

settings = get_settings()

BOOKING_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"confirmed", "rejected", "cancelled"},
    "confirmed": {"in_progress", "rejected", "cancelled"},
    "in_progress": {"completed"},
    "completed": set(),
    "cancelled": set(),
    "rejected": set(),
}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def is_within_working_hours(start: str, end: str, at: time) -> bool:
    """
    True if `at` falls in [start, end). An end at or before the start
    means the shift runs past midnight.
    """
    start_t = _parse_hhmm(start)
    end_t = _parse_hhmm(end)
    if end_t > start_t:
        return start_t <= at < end_t
    return at >= start_t or at < end_t


def booking_interval(scheduled_date: date, scheduled_time: time, duration: float) -> tuple[datetime, datetime]:
    """Half-open [starts_at, ends_at) as aware UTC datetimes."""
    starts_at = datetime.combine(scheduled_date, scheduled_time, tzinfo=timezone.utc)
    return starts_at, starts_at + timedelta(hours=duration)


class BookingService:
    """
    Business logic for service bookings.

    Responsibilities:
      - Create bookings (provider availability, overlap, pricing)
      - Cancel/reject inside their time windows
      - Drive the status state machine (provider-side)
      - One customer review per completed booking
      - Admin hard delete, listing and per-provider stats
    """

    def __init__(
        self,
        booking_repo: BookingRepository,
        user_repo: UserRepository,
        sequence_repo: SequenceRepository,
        stats: StatsAggregator,
        notifier: NotificationService,
    ):
        self.booking_repo = booking_repo
        self.user_repo = user_repo
        self.sequence_repo = sequence_repo
        self.stats = stats
        self.notifier = notifier

    # -------- Create --------

    def create_booking(
        self,
        session: Session,
        actor: Principal,
        payload: BookingCreate,
        now: datetime | None = None,
    ) -> BookingRead:
        """
        Request a booking with a provider.

        Steps (one transaction):
          1. Lock the provider row; it must be an active service provider
             with a profile, and own the (active) service.
          2. The slot must fall on a working day inside working hours.
          3. No active booking of the provider may intersect the slot.
          4. Price the booking, check the client total if one was sent,
             and persist it as 'pending'.

        The provider row lock serializes concurrent requests for the same
        provider, so steps 3 and 4 cannot interleave.
        """
        if actor.role not in ("customer", "admin"):
            raise ForbiddenError("Only customers can book services")

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        starts_at, ends_at = booking_interval(
            payload.scheduled_date, payload.scheduled_time, payload.duration
        )
        if starts_at <= now:
            raise ValidationError("Booking must be scheduled in the future")

        with unit_of_work(session):
            provider = self.user_repo.get_for_update(session, payload.provider_id)
            if provider is None:
                raise NotFoundError("Service provider", payload.provider_id)
            if provider.role != "service_provider" or provider.status != "active":
                raise ValidationError("Provider is not an active service provider")

            profile = self.user_repo.get_provider_profile(session, provider.id)
            if profile is None:
                raise NotFoundError("Service provider profile", provider.id)

            service = self.booking_repo.get_service(session, payload.service_id)
            if service is None or service.provider_id != provider.id:
                raise NotFoundError("Service", payload.service_id)
            if not service.is_active:
                raise ValidationError(f"Service is not available: {service.title}")

            extras = self._price_additional_services(
                session, profile, service, [a.service_id for a in payload.additional_services]
            )

            self._check_availability(profile, payload.scheduled_date, payload.scheduled_time)

            clash = self.booking_repo.find_overlapping(session, provider.id, starts_at, ends_at)
            if clash is not None:
                raise ConflictError(
                    f"Provider is already booked in that slot ({clash.booking_number})"
                )

            promo = self._resolve_promo(session, payload.promo_code, now)
            breakdown = compute_booking_price(
                hourly_rate=service.hourly_rate or profile.hourly_rate,
                duration=payload.duration,
                base_duration=service.duration_hours,
                minimum_charge=profile.minimum_charge,
                travel_fee=profile.travel_fee,
                additional_service_prices=[extra["price"] for extra in extras],
                promo=promo,
            )
            if payload.expected_total is not None and not amounts_match(
                payload.expected_total, breakdown.total_amount
            ):
                raise ValidationError(
                    f"Pricing mismatch: total {payload.expected_total:.2f} "
                    f"!= {breakdown.total_amount:.2f}"
                )

            booking = Booking(
                booking_number=self.sequence_repo.next_document_number(
                    session, settings.BOOKING_NUMBER_PREFIX, now.year
                ),
                customer_id=actor.id,
                provider_id=provider.id,
                service_id=service.id,
                service_type=service.service_type,
                scheduled_date=payload.scheduled_date,
                scheduled_time=payload.scheduled_time,
                duration=payload.duration,
                starts_at=starts_at,
                ends_at=ends_at,
                address=payload.address,
                phone=payload.phone,
                notes=payload.notes,
                additional_services=extras,
                promo_code=promo.code if promo else None,
                currency=service.currency,
                **breakdown.model_dump(),
            )
            booking = self.booking_repo.create(session, booking)
            booking_id = booking.id

        logger.info("Booking %s created for provider %s", booking.booking_number, provider.id)
        self.stats.dispatch(session, self.stats.on_booking_created, booking_id)
        return self._after_change(session, booking_id)

    def _price_additional_services(
        self,
        session: Session,
        profile: ServiceProviderProfile,
        main_service: Service,
        service_ids: list[uuid.UUID],
    ) -> list[dict]:
        """
        Snapshot the extras from the catalog.

        Each extra must be an active service of the same provider, listed
        once and distinct from the booked service. It is charged its own
        rate (or the provider's) for its base duration.
        """
        extras: list[dict] = []
        seen: set[uuid.UUID] = set()
        for service_id in service_ids:
            if service_id == main_service.id:
                raise ValidationError("The booked service cannot also be an additional service")
            if service_id in seen:
                raise ValidationError(f"Additional service listed twice: {service_id}")
            seen.add(service_id)

            extra = self.booking_repo.get_service(session, service_id)
            if extra is None or extra.provider_id != main_service.provider_id:
                raise NotFoundError("Service", service_id)
            if not extra.is_active:
                raise ValidationError(f"Service is not available: {extra.title}")

            hourly_rate = extra.hourly_rate or profile.hourly_rate
            extras.append(
                {
                    "service_id": str(extra.id),
                    "title": extra.title,
                    "hourly_rate": hourly_rate,
                    "duration_hours": extra.duration_hours,
                    "price": money(hourly_rate * extra.duration_hours),
                }
            )
        return extras

    def _check_availability(
        self,
        profile: ServiceProviderProfile,
        scheduled_date: date,
        scheduled_time: time,
    ) -> None:
        weekday = WEEKDAYS[scheduled_date.weekday()]
        if weekday not in (profile.working_days or []):
            raise ConflictError(f"Provider does not work on {weekday}")
        if not is_within_working_hours(
            profile.working_hours_start, profile.working_hours_end, scheduled_time
        ):
            raise ConflictError(
                f"Requested time is outside working hours "
                f"({profile.working_hours_start}-{profile.working_hours_end})"
            )

    def _resolve_promo(
        self,
        session: Session,
        code: str | None,
        now: datetime,
    ) -> Promo | None:
        if not code:
            return None
        promo: PromoCode | None = self.booking_repo.get_promo(session, code)
        if promo is None or not promo.is_active:
            raise ValidationError(f"Invalid promo code: {code}")
        if promo.expires_at is not None:
            expires_at = promo.expires_at
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= now:
                raise ValidationError(f"Promo code has expired: {code}")
        return Promo(code=promo.code, discount_type=promo.discount_type, value=promo.value)

    # -------- Cancel / reject --------

    def cancel_booking(
        self,
        session: Session,
        booking_id: uuid.UUID,
        actor: Principal,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> BookingRead:
        """
        Cancel a booking. Customer, provider or admin; only while at least
        BOOKING_CANCELLATION_WINDOW_HOURS remain before the start.
        """
        now = now or datetime.now(timezone.utc)
        with unit_of_work(session):
            booking = self._get_booking(session, booking_id)
            party = self._party(actor, booking)
            if party is None:
                raise ForbiddenError("You are not part of this booking")

            if booking.status in LOCKED_BOOKING_STATUSES:
                raise InvalidTransitionError(booking.status, "cancelled")
            window = settings.BOOKING_CANCELLATION_WINDOW_HOURS
            if not booking.can_be_cancelled(now, window):
                raise ConflictError(
                    f"Bookings can only be cancelled at least {window} hours in advance"
                )

            self._close(session, booking, "cancelled", party, reason, now)

        return self._after_change(session, booking_id)

    def reject_booking(
        self,
        session: Session,
        booking_id: uuid.UUID,
        actor: Principal,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> BookingRead:
        """
        Provider declines a booking, at least
        BOOKING_REJECTION_WINDOW_HOURS before the start.
        """
        now = now or datetime.now(timezone.utc)
        with unit_of_work(session):
            booking = self._get_booking(session, booking_id)
            if actor.id != booking.provider_id:
                raise ForbiddenError("Only the booking's provider can reject it")

            if booking.status in LOCKED_BOOKING_STATUSES:
                raise InvalidTransitionError(booking.status, "rejected")
            window = settings.BOOKING_REJECTION_WINDOW_HOURS
            if not booking.can_be_rejected(now, window):
                raise ConflictError(
                    f"Bookings can only be rejected at least {window} hours in advance"
                )

            self._close(session, booking, "rejected", "provider", reason, now)

        return self._after_change(session, booking_id)

    def _close(
        self,
        session: Session,
        booking: Booking,
        new_status: str,
        party: str,
        reason: str | None,
        now: datetime,
    ) -> None:
        """Write the terminal status and the one-time cancellation record."""
        if not self.booking_repo.claim_version(session, booking):
            raise ConcurrentModificationError("Booking", booking.id)
        booking.status = new_status
        booking.cancelled_at = now
        booking.cancelled_by = party
        booking.cancellation_reason = reason
        self.booking_repo.update(session, booking)
        logger.info("Booking %s %s by %s", booking.id, new_status, party)

    # -------- Provider-driven transitions --------

    def transition(
        self,
        session: Session,
        booking_id: uuid.UUID,
        new_status: str,
        actor: Principal,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> BookingRead:
        """
        Generic status change.

        cancelled/rejected go through their window checks; everything
        else follows BOOKING_TRANSITIONS and is driven by the provider
        (admin may also start or complete a job).
        """
        new_status = STATUS_ALIASES.get(new_status, new_status)
        if new_status == "cancelled":
            return self.cancel_booking(session, booking_id, actor, reason, now)
        if new_status == "rejected":
            return self.reject_booking(session, booking_id, actor, reason, now)

        with unit_of_work(session):
            booking = self._get_booking(session, booking_id)
            is_provider = actor.id == booking.provider_id
            if new_status == "confirmed" and not is_provider:
                raise ForbiddenError("Only the booking's provider can confirm it")
            if new_status in ("in_progress", "completed") and not (is_provider or actor.is_admin):
                raise ForbiddenError("Only the booking's provider can update its progress")

            current = booking.status
            if new_status not in BOOKING_TRANSITIONS.get(current, set()):
                raise InvalidTransitionError(current, new_status)

            if not self.booking_repo.claim_version(session, booking):
                raise ConcurrentModificationError("Booking", booking.id)
            booking.status = new_status
            self.booking_repo.update(session, booking)

        logger.info("Booking %s: %s -> %s by %s", booking_id, current, new_status, actor.id)
        if new_status == "completed":
            self.stats.dispatch(session, self.stats.on_booking_completed, booking_id)
        return self._after_change(session, booking_id)

    # -------- Review --------

    def add_customer_review(
        self,
        session: Session,
        booking_id: uuid.UUID,
        actor: Principal,
        rating: int,
        comment: str | None = None,
    ) -> BookingRead:
        """Leave the single review a completed booking allows."""
        with unit_of_work(session):
            booking = self._get_booking(session, booking_id)
            if actor.id != booking.customer_id:
                raise ForbiddenError("Only the booking's customer can review it")
            if booking.status != "completed":
                raise ConflictError("Only completed bookings can be reviewed")
            if booking.review_rating is not None:
                raise ConflictError("Booking has already been reviewed")
            if not 1 <= rating <= 5:
                raise ValidationError("Rating must be between 1 and 5")

            if not self.booking_repo.claim_version(session, booking):
                raise ConcurrentModificationError("Booking", booking.id)
            booking.review_rating = rating
            booking.review_comment = comment
            booking.reviewed_at = datetime.now(timezone.utc)
            self.booking_repo.update(session, booking)
            provider_id = booking.provider_id

        self.stats.dispatch(session, self.stats.on_review_added, provider_id)
        return BookingRead.model_validate(self._get_booking(session, booking_id))

    # -------- Admin --------

    def delete_booking(
        self,
        session: Session,
        booking_id: uuid.UUID,
        actor: Principal,
    ) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can delete bookings")
        with unit_of_work(session):
            booking = self._get_booking(session, booking_id)
            self.booking_repo.delete(session, booking)
        logger.warning("Booking %s hard-deleted by admin %s", booking_id, actor.id)

    # -------- Queries --------

    def get_booking(
        self,
        session: Session,
        actor: Principal,
        booking_id: uuid.UUID,
    ) -> BookingRead:
        booking = self._get_booking(session, booking_id)
        if self._party(actor, booking) is None:
            raise NotFoundError("Booking", booking_id)
        return BookingRead.model_validate(booking)

    def get_policy(
        self,
        session: Session,
        actor: Principal,
        booking_id: uuid.UUID,
        now: datetime | None = None,
    ) -> BookingPolicyRead:
        booking = self._get_booking(session, booking_id)
        if self._party(actor, booking) is None:
            raise NotFoundError("Booking", booking_id)
        return BookingPolicyRead(
            booking_id=booking.id,
            status=booking.status,
            can_be_cancelled=booking.can_be_cancelled(
                now, settings.BOOKING_CANCELLATION_WINDOW_HOURS
            ),
            can_be_rejected=booking.can_be_rejected(
                now, settings.BOOKING_REJECTION_WINDOW_HOURS
            ),
        )

    def list_bookings(
        self,
        session: Session,
        actor: Principal,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
        when: str | None = None,
        now: datetime | None = None,
    ) -> BookingPage:
        """
        Paginated bookings visible to the caller:
          - customer: bookings they made
          - service_provider: bookings assigned to them
          - admin: all bookings

        `when="upcoming"` keeps bookings that have not started yet,
        `when="past"` the rest (booking history).
        """
        if status is not None:
            status = STATUS_ALIASES.get(status, status)
        if when not in (None, "upcoming", "past"):
            raise ValidationError(f"Unknown booking period: {when}")
        now = now or datetime.now(timezone.utc)

        filters: dict[str, uuid.UUID] = {}
        if actor.role == "customer":
            filters["customer_id"] = actor.id
        elif actor.role == "service_provider":
            filters["provider_id"] = actor.id
        elif not actor.is_admin:
            raise ForbiddenError("Not allowed to list bookings")

        page = max(page, 1)
        total = self.booking_repo.count(session, status=status, when=when, now=now, **filters)
        rows = self.booking_repo.list_bookings(
            session,
            status=status,
            when=when,
            now=now,
            skip=(page - 1) * limit,
            limit=limit,
            **filters,
        )
        return BookingPage(
            items=[BookingRead.model_validate(b) for b in rows],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if limit else 0,
        )

    def provider_booking_stats(
        self,
        session: Session,
        actor: Principal,
        provider_id: uuid.UUID,
    ) -> ProviderBookingStats:
        if not actor.is_admin and actor.id != provider_id:
            raise ForbiddenError("You can only view your own booking stats")
        return self.stats.get_provider_booking_stats(session, provider_id)

    # -------- Helpers --------

    def _get_booking(self, session: Session, booking_id: uuid.UUID) -> Booking:
        booking = self.booking_repo.get_by_id(session, booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    @staticmethod
    def _party(actor: Principal, booking: Booking) -> str | None:
        if actor.is_admin:
            return "admin"
        if actor.id == booking.customer_id:
            return "customer"
        if actor.id == booking.provider_id:
            return "provider"
        return None

    def _after_change(self, session: Session, booking_id: uuid.UUID) -> BookingRead:
        booking = self._get_booking(session, booking_id)
        customer = self.user_repo.get_by_id(session, booking.customer_id)
        self.notifier.booking_status_changed(customer, booking)
        return BookingRead.model_validate(booking)
