"""Tests for the stats aggregator, product reviews and provider profiles."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.ledger import StatsEvent
from app.schemas.booking import ServiceCreate
from app.schemas.product import ProductCreate, ProductReviewCreate
from app.schemas.user import ProviderProfileUpsert
from app.services.stats_service import StatsAggregator

from .conftest import as_principal, booking_payload, make_user, order_payload


class TestDispatch:
    def test_retries_until_success(self, session, stats):
        calls = []

        def flaky(session, value):
            calls.append(value)
            if len(calls) == 1:
                raise RuntimeError("boom")

        assert stats.dispatch(session, flaky, "x") is True
        assert calls == ["x", "x"]

    def test_gives_up_without_raising(
        self, session, stats_repo, order_repo, booking_repo, product_repo, user_repo, caplog
    ):
        aggregator = StatsAggregator(
            stats_repo, order_repo, booking_repo, product_repo, user_repo, max_attempts=2
        )
        calls = []

        def broken(session):
            calls.append(1)
            raise RuntimeError("always")

        assert aggregator.dispatch(session, broken) is False
        assert len(calls) == 2
        assert "replay required" in caplog.text

    def test_failed_attempt_is_rolled_back(self, session, stats):
        def half_done(session):
            session.add(StatsEvent(event_key="partial"))
            session.flush()
            raise RuntimeError("after write")

        stats.dispatch(session, half_done)
        assert session.get(StatsEvent, "partial") is None


class TestOrderStats:
    @pytest.fixture
    def delivered_order(self, session, order_service, customer, admin, product):
        order = order_service.create_order(session, as_principal(customer), order_payload([(product, 2)]))
        for status in ("confirmed", "processing", "shipped", "delivered"):
            order_service.transition(session, order.id, status, as_principal(admin))
        return order

    def test_delivered_is_applied_once(self, session, stats, vendor, delivered_order):
        assert stats.dispatch(session, stats.on_order_delivered, delivered_order.id) is True
        assert stats.get_vendor_stats(session, vendor.id).total_sales == 2
        assert stats.get_vendor_stats(session, vendor.id).total_revenue == 1000

    def test_refund_without_delivered_stats_is_ignored(self, session, order_service, stats, customer, vendor, product):
        order = order_service.create_order(session, as_principal(customer), order_payload([(product, 1)]))

        assert stats.dispatch(session, stats.on_order_refunded, order.id) is True
        assert session.get(StatsEvent, f"order:{order.id}:refunded") is None
        assert stats.get_vendor_stats(session, vendor.id).total_sales == 0

    def test_unknown_vendor(self, session, stats, customer):
        with pytest.raises(NotFoundError):
            stats.get_vendor_stats(session, customer.id)


class TestProductReviews:
    def test_review_sets_product_and_vendor_rating(
        self, session, product_service, stats, customer, other_customer, vendor, product
    ):
        product_service.add_or_update_review(
            session, as_principal(customer), product.id, ProductReviewCreate(rating=5)
        )
        product_service.add_or_update_review(
            session, as_principal(other_customer), product.id, ProductReviewCreate(rating=2)
        )

        session.refresh(product)
        assert product.average_rating == 3.5
        assert product.total_reviews == 2

        vendor_stats = stats.get_vendor_stats(session, vendor.id)
        assert vendor_stats.average_rating == 3.5
        assert vendor_stats.total_reviews == 2

    def test_second_review_replaces_the_first(self, session, product_service, customer, product):
        actor = as_principal(customer)
        first = product_service.add_or_update_review(session, actor, product.id, ProductReviewCreate(rating=1))
        second = product_service.add_or_update_review(
            session, actor, product.id, ProductReviewCreate(rating=4, comment="Grew on me")
        )

        assert second.id == first.id
        session.refresh(product)
        assert product.average_rating == 4
        assert product.total_reviews == 1

    def test_only_customers_review(self, session, product_service, vendor, product):
        with pytest.raises(ForbiddenError):
            product_service.add_or_update_review(
                session, as_principal(vendor), product.id, ProductReviewCreate(rating=5)
            )


class TestProductCatalog:
    def test_create_product_bumps_vendor_total(self, session, product_service, stats, vendor, product):
        created = product_service.create_product(
            session,
            as_principal(vendor),
            ProductCreate(name="Snake Plant", price=350, quantity=10),
        )

        assert created.sku
        assert created.quantity == 10
        assert stats.get_vendor_stats(session, vendor.id).total_products == 1

    def test_duplicate_sku_is_rejected(self, session, product_service, vendor, product):
        with pytest.raises(ValidationError, match="SKU"):
            product_service.create_product(
                session,
                as_principal(vendor),
                ProductCreate(name="Another Monstera", sku=product.sku, price=100),
            )

    def test_customers_cannot_list_products(self, session, product_service, customer):
        with pytest.raises(ForbiddenError):
            product_service.create_product(
                session, as_principal(customer), ProductCreate(name="Cactus", price=10)
            )

    def test_restock_reports_low_stock(self, session, product_service, vendor, other_vendor, product):
        inventory = product_service.restock(session, as_principal(vendor), product.id, 1)
        assert inventory.quantity == 6
        assert inventory.low_stock is False

        with pytest.raises(ForbiddenError):
            product_service.restock(session, as_principal(other_vendor), product.id, 1)


class TestProviderProfiles:
    def test_upsert_profile_and_services(self, session, provider_service):
        gardener = make_user(session, "newgardener@example.com", role="service_provider")
        actor = as_principal(gardener)

        profile = provider_service.upsert_profile(
            session,
            actor,
            ProviderProfileUpsert(
                business_name="Leaf & Co",
                hourly_rate=800,
                working_days=["monday", "tuesday", "monday"],
            ),
        )
        assert profile.working_days == ["monday", "tuesday"]
        assert profile.hourly_rate == 800

        created = provider_service.create_service(
            session,
            actor,
            ServiceCreate(title="Hedge trimming", service_type="trimming", duration_hours=2),
        )
        assert created.provider_id == gardener.id
        assert [s.id for s in provider_service.list_services(session, gardener.id)] == [created.id]

    def test_working_days_are_required(self, session, provider_service, provider):
        with pytest.raises(ValidationError):
            provider_service.upsert_profile(
                session, as_principal(provider), ProviderProfileUpsert(hourly_rate=500)
            )

    def test_upsert_keeps_counters(self, session, provider_service, booking_service, stats, customer, provider, service):
        booking_service.create_booking(session, as_principal(customer), booking_payload(provider, service))
        provider_service.upsert_profile(
            session,
            as_principal(provider),
            ProviderProfileUpsert(hourly_rate=1200, working_days=["friday"]),
        )
        assert stats.get_provider_stats(session, provider.id).total_jobs == 1

    def test_customers_have_no_profile(self, session, provider_service, customer):
        with pytest.raises(ForbiddenError):
            provider_service.upsert_profile(
                session,
                as_principal(customer),
                ProviderProfileUpsert(hourly_rate=1, working_days=["monday"]),
            )

    def test_working_hours_must_be_hh_mm(self):
        with pytest.raises(PydanticValidationError):
            ProviderProfileUpsert(hourly_rate=500, working_days=["monday"], working_hours_start="25:00")
        with pytest.raises(PydanticValidationError):
            ProviderProfileUpsert(hourly_rate=500, working_days=["monday"], working_hours_end="9am")
        profile = ProviderProfileUpsert(
            hourly_rate=500, working_days=["monday"], working_hours_start="07:30", working_hours_end="23:59"
        )
        assert profile.working_hours_start == "07:30"
