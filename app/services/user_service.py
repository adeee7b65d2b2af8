# app/services/user_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.database import unit_of_work
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import Principal, UserRoleUpdate, UserUpdate

logger = logging.getLogger(__name__)


class UserService:
    """
    Accounts: self-service name edits and admin role/status management.

    A vendor profile is opened as soon as an account becomes a vendor;
    provider profiles are created by the provider through
    ProviderService.upsert_profile, since they need pricing and hours.
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def update_me(self, session: Session, current_user: User, payload: UserUpdate) -> User:
        with unit_of_work(session):
            if payload.name is not None:
                current_user.name = payload.name
            self.repo.save(session, current_user)
        session.refresh(current_user)
        return current_user

    # ----- Admin -----

    def list_users(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        role: str | None = None,
        status: str | None = None,
    ) -> list[User]:
        return self.repo.list_users(session, skip=skip, limit=limit, role=role, status=status)

    def get_user(self, session: Session, user_id: uuid.UUID) -> User:
        user = self.repo.get_by_id(session, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def update_role(
        self,
        session: Session,
        actor: Principal,
        user_id: uuid.UUID,
        payload: UserRoleUpdate,
    ) -> User:
        """
        Change an account's role and/or status.

        Admins cannot change their own account here, so the last admin
        cannot lock themselves out.
        """
        if not actor.is_admin:
            raise ForbiddenError("Only admins can change roles")
        if actor.id == user_id:
            raise ValidationError("Admins cannot change their own role or status")
        if payload.role is None and payload.status is None:
            raise ValidationError("Nothing to update: give a role and/or a status")

        with unit_of_work(session):
            user = self.get_user(session, user_id)
            previous = (user.role, user.status)
            if payload.role is not None:
                user.role = payload.role
                if payload.role == "vendor":
                    self.repo.get_or_create_vendor_profile(session, user.id)
            if payload.status is not None:
                user.status = payload.status
            self.repo.save(session, user)

        logger.info(
            "Admin %s changed user %s from %s/%s to %s/%s",
            actor.id,
            user_id,
            previous[0],
            previous[1],
            user.role,
            user.status,
        )
        return user
