import uuid

from sqlmodel import Session, select

from app.models.user import ServiceProviderProfile, User, VendorProfile


class UserRepository:
    """
    Data access layer for User and its role-specific profiles.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    # ----- Users -----

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_for_update(self, session: Session, user_id: uuid.UUID) -> User | None:
        """
        Load a User holding a row lock until the transaction ends.

        Used to serialize concurrent booking attempts against one provider.
        SQLite drops FOR UPDATE; there the engine starts every transaction
        with BEGIN IMMEDIATE instead (app.database.serialize_sqlite_writers).
        """
        stmt = select(User).where(User.id == user_id).with_for_update()
        return session.exec(stmt).first()

    def get_by_email(self, session: Session, email: str) -> User | None:
        """Return a User by unique email, or None if not found."""
        stmt = select(User).where(User.email == email)
        return session.exec(stmt).first()

    def list_users(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        role: str | None = None,
        status: str | None = None,
    ) -> list[User]:
        """Paginated user listing, optionally narrowed to one role/status."""
        stmt = select(User)
        if role is not None:
            stmt = stmt.where(User.role == role)
        if status is not None:
            stmt = stmt.where(User.status == status)
        stmt = stmt.order_by(User.created_at).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def save(self, session: Session, user: User) -> User:
        """Insert or update a User without committing."""
        session.add(user)
        session.flush()
        session.refresh(user)
        return user

    # ----- Vendor profile -----

    def get_vendor_profile(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> VendorProfile | None:
        return session.get(VendorProfile, user_id)

    def get_or_create_vendor_profile(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> VendorProfile:
        profile = session.get(VendorProfile, user_id)
        if profile is None:
            profile = VendorProfile(user_id=user_id)
            session.add(profile)
            session.flush()
        return profile

    # ----- Service provider profile -----

    def get_provider_profile(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> ServiceProviderProfile | None:
        return session.get(ServiceProviderProfile, user_id)

    def save_provider_profile(
        self,
        session: Session,
        profile: ServiceProviderProfile,
    ) -> ServiceProviderProfile:
        session.add(profile)
        session.flush()
        session.refresh(profile)
        return profile
