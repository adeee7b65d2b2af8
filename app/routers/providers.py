# app/routers/providers.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import get_principal
from app.database import get_session
from app.repositories.booking_repo import BookingRepository
from app.repositories.user_repo import UserRepository
from app.schemas.booking import ServiceCreate, ServiceRead
from app.schemas.user import Principal, ProviderProfileRead, ProviderProfileUpsert
from app.services.provider_service import ProviderService

router = APIRouter(prefix="/providers", tags=["Service Providers"])

service = ProviderService(UserRepository(), BookingRepository())


@router.put("/me/profile", response_model=ProviderProfileRead)
def upsert_my_profile(
    payload: ProviderProfileUpsert,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Create or replace the caller's pricing and availability.
    """
    return service.upsert_profile(session, actor, payload)


@router.post(
    "/me/services",
    response_model=ServiceRead,
    status_code=status.HTTP_201_CREATED,
)
def create_service(
    payload: ServiceCreate,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    return service.create_service(session, actor, payload)


@router.get("/{provider_id}/profile", response_model=ProviderProfileRead)
def get_profile(
    provider_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Public provider profile."""
    return service.get_profile(session, provider_id)


@router.get("/{provider_id}/services", response_model=list[ServiceRead])
def list_services(
    provider_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Active services offered by a provider (public)."""
    return service.list_services(session, provider_id)
