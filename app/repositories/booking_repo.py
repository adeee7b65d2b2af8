import uuid
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.booking import ACTIVE_BOOKING_STATUSES, Booking, PromoCode, Service


class BookingRepository:
    """
    Data access layer for bookings, services and promo codes.

    No commits here; BookingService owns the unit of work.
    """

    # ---- Bookings ----

    def get_by_id(self, session: Session, booking_id: uuid.UUID) -> Booking | None:
        return session.get(Booking, booking_id)

    def create(self, session: Session, booking: Booking) -> Booking:
        session.add(booking)
        session.flush()
        session.refresh(booking)
        return booking

    def update(self, session: Session, booking: Booking) -> Booking:
        session.add(booking)
        session.flush()
        session.refresh(booking)
        return booking

    def delete(self, session: Session, booking: Booking) -> None:
        session.delete(booking)
        session.flush()

    def claim_version(self, session: Session, booking: Booking) -> bool:
        """Bump the version only if it still matches what was read."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id, Booking.version == booking.version)
            .values(version=Booking.version + 1, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        if result.rowcount == 0:
            return False
        session.expire(booking, ["version", "updated_at"])
        return True

    def find_overlapping(
        self,
        session: Session,
        provider_id: uuid.UUID,
        starts_at: datetime,
        ends_at: datetime,
    ) -> Booking | None:
        """
        First active booking whose [starts_at, ends_at) intersects the
        requested half-open interval. Back-to-back slots do not overlap.
        """
        stmt = select(Booking).where(
            Booking.provider_id == provider_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.starts_at < ends_at,
            Booking.ends_at > starts_at,
        )
        return session.exec(stmt).first()

    def _filtered(
        self,
        customer_id: uuid.UUID | None,
        provider_id: uuid.UUID | None,
        status: str | None,
        when: str | None = None,
        now: datetime | None = None,
    ):
        conditions = []
        if when == "upcoming":
            conditions.append(Booking.starts_at >= now)
        elif when == "past":
            conditions.append(Booking.starts_at < now)
        if customer_id is not None:
            conditions.append(Booking.customer_id == customer_id)
        if provider_id is not None:
            conditions.append(Booking.provider_id == provider_id)
        if status is not None:
            conditions.append(Booking.status == status)
        return conditions

    def list_bookings(
        self,
        session: Session,
        customer_id: uuid.UUID | None = None,
        provider_id: uuid.UUID | None = None,
        status: str | None = None,
        skip: int = 0,
        limit: int = 10,
        when: str | None = None,
        now: datetime | None = None,
    ) -> list[Booking]:
        """
        Newest first. With `when`, only bookings starting at or after `now`
        ("upcoming", soonest first) or before it ("past", latest first).
        """
        if when == "upcoming":
            order = Booking.starts_at.asc()
        elif when == "past":
            order = Booking.starts_at.desc()
        else:
            order = Booking.created_at.desc()
        stmt = (
            select(Booking)
            .where(*self._filtered(customer_id, provider_id, status, when, now))
            .order_by(order)
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def count(
        self,
        session: Session,
        customer_id: uuid.UUID | None = None,
        provider_id: uuid.UUID | None = None,
        status: str | None = None,
        when: str | None = None,
        now: datetime | None = None,
    ) -> int:
        stmt = select(func.count(Booking.id)).where(
            *self._filtered(customer_id, provider_id, status, when, now)
        )
        return int(session.exec(stmt).one() or 0)

    def status_breakdown(
        self,
        session: Session,
        provider_id: uuid.UUID,
    ) -> list[tuple]:
        """(status, count, revenue) per status for one provider."""
        stmt = (
            select(
                Booking.status,
                func.count(Booking.id),
                func.coalesce(func.sum(Booking.total_amount), 0.0),
            )
            .where(Booking.provider_id == provider_id)
            .group_by(Booking.status)
            .order_by(Booking.status)
        )
        return list(session.exec(stmt).all())

    def provider_rating(
        self,
        session: Session,
        provider_id: uuid.UUID,
    ) -> tuple[float, int]:
        """Average + count over reviewed, completed bookings."""
        stmt = select(
            func.coalesce(func.avg(Booking.review_rating), 0.0),
            func.count(Booking.review_rating),
        ).where(
            Booking.provider_id == provider_id,
            Booking.status == "completed",
            Booking.review_rating.is_not(None),
        )
        avg, count = session.exec(stmt).one()
        return float(avg or 0.0), int(count or 0)

    # ---- Services ----

    def get_service(self, session: Session, service_id: uuid.UUID) -> Service | None:
        return session.get(Service, service_id)

    def list_services(
        self,
        session: Session,
        provider_id: uuid.UUID,
        only_active: bool = True,
    ) -> list[Service]:
        stmt = select(Service).where(Service.provider_id == provider_id)
        if only_active:
            stmt = stmt.where(Service.is_active == True)  # noqa: E712
        return session.exec(stmt.order_by(Service.created_at)).all()

    def create_service(self, session: Session, service: Service) -> Service:
        session.add(service)
        session.flush()
        session.refresh(service)
        return service

    # ---- Promo codes ----

    def get_promo(self, session: Session, code: str) -> PromoCode | None:
        return session.get(PromoCode, code.strip().upper())
