"""Tests for account management."""

import uuid

import pytest

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.user import VendorProfile
from app.repositories.user_repo import UserRepository
from app.schemas.user import UserRoleUpdate, UserUpdate
from app.services.user_service import UserService

from .conftest import as_principal


@pytest.fixture
def user_service():
    return UserService(UserRepository())


class TestUserService:
    def test_update_name(self, session, user_service, customer):
        updated = user_service.update_me(session, customer, UserUpdate(name="  Alice G  "))
        assert updated.name == "Alice G"

    def test_promote_to_vendor_opens_profile(self, session, user_service, admin, customer):
        user = user_service.update_role(
            session, as_principal(admin), customer.id, UserRoleUpdate(role="vendor")
        )
        assert user.role == "vendor"
        assert session.get(VendorProfile, customer.id) is not None

    def test_suspend(self, session, user_service, admin, customer):
        user = user_service.update_role(
            session, as_principal(admin), customer.id, UserRoleUpdate(status="suspended")
        )
        assert user.status == "suspended"
        assert user.role == "customer"

    def test_admin_cannot_change_themselves(self, session, user_service, admin):
        with pytest.raises(ValidationError):
            user_service.update_role(
                session, as_principal(admin), admin.id, UserRoleUpdate(role="customer")
            )

    def test_empty_update_is_rejected(self, session, user_service, admin, customer):
        with pytest.raises(ValidationError):
            user_service.update_role(session, as_principal(admin), customer.id, UserRoleUpdate())

    def test_non_admin_is_forbidden(self, session, user_service, vendor, customer):
        with pytest.raises(ForbiddenError):
            user_service.update_role(
                session, as_principal(vendor), customer.id, UserRoleUpdate(role="admin")
            )

    def test_unknown_user(self, session, user_service, admin):
        with pytest.raises(NotFoundError):
            user_service.get_user(session, uuid.uuid4())

    def test_list_filters_by_role(self, session, user_service, customer, vendor, provider):
        providers = user_service.list_users(session, role="service_provider")
        assert [u.id for u in providers] == [provider.id]
        assert len(user_service.list_users(session)) == 3
        assert user_service.list_users(session, status="suspended") == []
