# app/services/provider_service.py
import uuid

from sqlmodel import Session

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.database import unit_of_work
from app.models.booking import Service
from app.models.user import ServiceProviderProfile
from app.repositories.booking_repo import BookingRepository
from app.repositories.user_repo import UserRepository
from app.schemas.booking import ServiceCreate
from app.schemas.user import Principal, ProviderProfileUpsert


class ProviderService:
    """
    Service provider profile (pricing + availability) and the services
    a provider offers.
    """

    def __init__(self, user_repo: UserRepository, booking_repo: BookingRepository):
        self.user_repo = user_repo
        self.booking_repo = booking_repo

    @staticmethod
    def _require_provider(actor: Principal) -> None:
        if actor.role != "service_provider":
            raise ForbiddenError("Service provider access required")

    def get_profile(self, session: Session, provider_id: uuid.UUID) -> ServiceProviderProfile:
        profile = self.user_repo.get_provider_profile(session, provider_id)
        if profile is None:
            raise NotFoundError("Service provider profile", provider_id)
        return profile

    def upsert_profile(
        self,
        session: Session,
        actor: Principal,
        payload: ProviderProfileUpsert,
    ) -> ServiceProviderProfile:
        """
        Create or replace pricing and availability. Stats are left alone.
        """
        self._require_provider(actor)
        if not payload.working_days:
            raise ValidationError("At least one working day is required")

        with unit_of_work(session):
            profile = self.user_repo.get_provider_profile(session, actor.id)
            if profile is None:
                profile = ServiceProviderProfile(user_id=actor.id)
            for field, value in payload.model_dump().items():
                setattr(profile, field, value)
            # Distinct weekdays, order preserved
            profile.working_days = list(dict.fromkeys(payload.working_days))
            self.user_repo.save_provider_profile(session, profile)

        return self.get_profile(session, actor.id)

    def create_service(
        self,
        session: Session,
        actor: Principal,
        payload: ServiceCreate,
    ) -> Service:
        self._require_provider(actor)
        with unit_of_work(session):
            self.get_profile(session, actor.id)
            service = self.booking_repo.create_service(
                session,
                Service(provider_id=actor.id, **payload.model_dump()),
            )
            service_id = service.id
        return self.booking_repo.get_service(session, service_id)

    def list_services(self, session: Session, provider_id: uuid.UUID) -> list[Service]:
        return self.booking_repo.list_services(session, provider_id)
