"""Tests for the inventory ledger."""

import uuid

import pytest
from sqlmodel import Session

from app.core.errors import InsufficientStockError, NotFoundError, ValidationError
from app.database import unit_of_work
from app.models.product import InventoryReservation

from .conftest import make_product, make_user, run_concurrently


class TestReserve:
    def test_reserve_decrements_stock(self, session, ledger, product):
        assert ledger.reserve(session, product.id, 2) == 3
        session.refresh(product)
        assert product.quantity == 3

    def test_reserve_everything_then_fail(self, session, ledger, product):
        assert ledger.reserve(session, product.id, 5) == 0
        with pytest.raises(InsufficientStockError) as exc:
            ledger.reserve(session, product.id, 1)
        assert exc.value.product_name == product.name
        assert ledger.product_repo.get_quantity(session, product.id) == 0

    def test_failed_reserve_leaves_stock_untouched(self, session, ledger, product):
        with pytest.raises(InsufficientStockError):
            ledger.reserve(session, product.id, 6)
        assert ledger.product_repo.get_quantity(session, product.id) == 5

    def test_backorder_allows_negative_stock(self, session, ledger, vendor):
        product = make_product(session, vendor, sku="BACK-1", quantity=1, allow_backorder=True)
        assert ledger.reserve(session, product.id, 3) == -2

    def test_untracked_product_never_runs_out(self, session, ledger, vendor):
        product = make_product(session, vendor, sku="FREE-1", quantity=0, track_quantity=False)
        assert ledger.reserve(session, product.id, 100) == 0

    def test_quantity_must_be_positive(self, session, ledger, product):
        with pytest.raises(ValidationError):
            ledger.reserve(session, product.id, 0)

    def test_unknown_product(self, session, ledger):
        with pytest.raises(NotFoundError):
            ledger.reserve(session, uuid.uuid4(), 1)

    def test_keyed_reserve_writes_reservation(self, session, ledger, product):
        ledger.reserve(session, product.id, 2, key="order-1:item-1")
        reservation = ledger.product_repo.get_reservation(session, "order-1:item-1")
        assert isinstance(reservation, InventoryReservation)
        assert reservation.quantity == 2
        assert reservation.status == "reserved"


class TestRelease:
    def test_release_restocks(self, session, ledger, product):
        ledger.reserve(session, product.id, 3)
        assert ledger.release(session, product.id, 3) == 5

    def test_keyed_release_is_idempotent(self, session, ledger, product):
        ledger.reserve(session, product.id, 3, key="order-1:item-1")
        assert ledger.release(session, product.id, 3, key="order-1:item-1") == 5
        # Replayed compensation must not restock twice
        assert ledger.release(session, product.id, 3, key="order-1:item-1") == 5

        reservation = ledger.product_repo.get_reservation(session, "order-1:item-1")
        session.refresh(reservation)
        assert reservation.status == "released"
        assert reservation.released_at is not None

    def test_keyed_release_must_match_the_reservation(self, session, ledger, product):
        ledger.reserve(session, product.id, 3, key="order-1:item-1")
        with pytest.raises(ValidationError):
            ledger.release(session, product.id, 2, key="order-1:item-1")
        with pytest.raises(NotFoundError):
            ledger.release(session, product.id, 3, key="order-9:item-9")
        assert ledger.product_repo.get_quantity(session, product.id) == 2

    def test_release_untracked_product_is_noop(self, session, ledger, vendor):
        product = make_product(session, vendor, sku="FREE-2", quantity=0, track_quantity=False)
        assert ledger.release(session, product.id, 4) == 0


class TestRestock:
    def test_restock_adds_units(self, session, ledger, product):
        assert ledger.restock(session, product.id, 10) == 15

    def test_restock_untracked_product_is_rejected(self, session, ledger, vendor):
        product = make_product(session, vendor, sku="FREE-3", track_quantity=False)
        with pytest.raises(ValidationError):
            ledger.restock(session, product.id, 1)

    def test_low_stock_flag(self, session, ledger, product):
        ledger.reserve(session, product.id, 1)
        session.refresh(product)
        assert product.quantity == 4
        assert ledger.is_low_stock(product) is True


class TestConcurrentReserve:
    def test_last_unit_goes_to_one_buyer(self, file_engine, ledger):
        with Session(file_engine) as session:
            vendor = make_user(session, "greenhouse@example.com", role="vendor")
            product_id = make_product(session, vendor, quantity=1).id

        def reserve():
            with Session(file_engine) as session:
                with unit_of_work(session):
                    return ledger.reserve(session, product_id, 1)

        results = run_concurrently(reserve, reserve)

        assert sorted(r for r in results if isinstance(r, int)) == [0]
        assert sum(isinstance(r, InsufficientStockError) for r in results) == 1
        with Session(file_engine) as session:
            assert ledger.product_repo.get_quantity(session, product_id) == 0
