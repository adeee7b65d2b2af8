"""Pytest fixtures for marketplace tests."""

import os

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from app.database import build_engine, create_db_and_tables, serialize_sqlite_writers
from app.models import booking as _booking_models  # noqa: F401
from app.models import ledger as _ledger_models  # noqa: F401
from app.models import order as _order_models  # noqa: F401
from app.models.booking import Service
from app.models.product import Product
from app.models.user import ServiceProviderProfile, User, VendorProfile
from app.repositories.booking_repo import BookingRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.sequence_repo import SequenceRepository
from app.repositories.stats_repo import StatsRepository
from app.repositories.user_repo import UserRepository
from app.schemas.booking import BookingCreate
from app.schemas.order import OrderCreate
from app.schemas.user import Principal
from app.services.booking_service import BookingService
from app.services.inventory_service import InventoryLedger
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.product_service import ProductService
from app.services.provider_service import ProviderService
from app.services.stats_service import StatsAggregator

ALL_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


# -------- Database --------


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = serialize_sqlite_writers(
        create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite database, for tests that run real concurrent connections."""
    engine = build_engine(f"sqlite:///{tmp_path / 'marketplace.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


# -------- Seed data --------


def make_user(session: Session, email: str, role: str = "customer", status: str = "active") -> User:
    user = User(email=email, name=email.split("@")[0], role=role, status=status)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_product(
    session: Session,
    vendor: User,
    name: str = "Monstera Deliciosa",
    sku: str = "MON-001",
    price: float = 500.0,
    quantity: int = 5,
    **extra,
) -> Product:
    product = Product(
        vendor_id=vendor.id,
        name=name,
        sku=sku,
        price=price,
        quantity=quantity,
        **extra,
    )
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


def make_provider(session: Session, email: str = "gardener@example.com", **profile) -> User:
    """Service provider working every day 08:00-18:00 at 1000/hour unless overridden."""
    user = make_user(session, email, role="service_provider")
    data = {
        "business_name": "Green Thumb",
        "hourly_rate": 1000.0,
        "working_days": list(ALL_WEEKDAYS),
        "working_hours_start": "08:00",
        "working_hours_end": "18:00",
    }
    data.update(profile)
    session.add(ServiceProviderProfile(user_id=user.id, **data))
    session.commit()
    session.refresh(user)
    return user


def make_service(
    session: Session,
    provider: User,
    title: str = "Garden maintenance",
    service_type: str = "gardening",
    **extra,
) -> Service:
    data = {"hourly_rate": 0.0, "duration_hours": 1.0}
    data.update(extra)
    svc = Service(provider_id=provider.id, title=title, service_type=service_type, **data)
    session.add(svc)
    session.commit()
    session.refresh(svc)
    return svc


def as_principal(user: User) -> Principal:
    return Principal(id=user.id, role=user.role)


def run_concurrently(*calls):
    """
    Run each call on its own thread, all released at once by a barrier.

    Returns one entry per call, in order: its result or the exception it raised.
    """
    barrier = threading.Barrier(len(calls))

    def run(call):
        barrier.wait()
        try:
            return call()
        except Exception as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


@pytest.fixture
def customer(session):
    return make_user(session, "alice@example.com")


@pytest.fixture
def other_customer(session):
    return make_user(session, "bob@example.com")


@pytest.fixture
def vendor(session):
    user = make_user(session, "greenhouse@example.com", role="vendor")
    session.add(VendorProfile(user_id=user.id, business_name="Greenhouse"))
    session.commit()
    return user


@pytest.fixture
def other_vendor(session):
    user = make_user(session, "potshop@example.com", role="vendor")
    session.add(VendorProfile(user_id=user.id, business_name="Pot Shop"))
    session.commit()
    return user


@pytest.fixture
def admin(session):
    return make_user(session, "admin@example.com", role="admin")


@pytest.fixture
def provider(session):
    return make_provider(session)


@pytest.fixture
def service(session, provider):
    return make_service(session, provider)


@pytest.fixture
def product(session, vendor):
    return make_product(session, vendor)


# -------- Services --------


@pytest.fixture
def product_repo():
    return ProductRepository()


@pytest.fixture
def order_repo():
    return OrderRepository()


@pytest.fixture
def booking_repo():
    return BookingRepository()


@pytest.fixture
def user_repo():
    return UserRepository()


@pytest.fixture
def stats_repo():
    return StatsRepository()


@pytest.fixture
def ledger(product_repo):
    return InventoryLedger(product_repo)


@pytest.fixture
def stats(stats_repo, order_repo, booking_repo, product_repo, user_repo):
    return StatsAggregator(stats_repo, order_repo, booking_repo, product_repo, user_repo)


@pytest.fixture
def order_service(order_repo, product_repo, user_repo, ledger, stats):
    return OrderService(
        order_repo,
        product_repo,
        user_repo,
        SequenceRepository(),
        ledger,
        stats,
        NotificationService(),
    )


@pytest.fixture
def booking_service(booking_repo, user_repo, stats):
    return BookingService(
        booking_repo,
        user_repo,
        SequenceRepository(),
        stats,
        NotificationService(),
    )


@pytest.fixture
def product_service(product_repo, stats_repo, ledger, stats):
    return ProductService(product_repo, stats_repo, ledger, stats)


@pytest.fixture
def provider_service(user_repo, booking_repo):
    return ProviderService(user_repo, booking_repo)


# -------- Payload builders --------


def order_payload(lines, shipping: float = 0.0, tax: float = 0.0, discount: float = 0.0, **overrides):
    """
    Build an OrderCreate from (product, quantity) pairs with pricing that
    matches the catalog.
    """
    subtotal = round(sum(p.price * qty for p, qty in lines), 2)
    address = {
        "full_name": "Alice Example",
        "phone": "03001234567",
        "street": "1 Garden Road",
        "city": "Lahore",
    }
    data = {
        "items": [{"product_id": str(p.id), "quantity": qty} for p, qty in lines],
        "pricing": {
            "subtotal": subtotal,
            "shipping": shipping,
            "tax": tax,
            "discount": discount,
            "total": round(subtotal + shipping + tax - discount, 2),
        },
        "shipping": {"address": address, "method": "standard", "cost": shipping},
        "billing": {"address": address, "payment_method": {"type": "cod"}},
    }
    data.update(overrides)
    return OrderCreate.model_validate(data)


def future_date(days: int = 5) -> date:
    return (datetime.now(timezone.utc) + timedelta(days=days)).date()


def booking_payload(provider: User, service: Service, **overrides) -> BookingCreate:
    data = {
        "provider_id": provider.id,
        "service_id": service.id,
        "scheduled_date": future_date(),
        "scheduled_time": time(10, 0),
        "duration": 1.0,
        "address": "12 Canal View, Lahore",
        "phone": "03001234567",
    }
    data.update(overrides)
    return BookingCreate.model_validate(data)
