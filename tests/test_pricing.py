"""Tests for the pure pricing functions."""

import pytest

from app.core.errors import ValidationError
from app.services.pricing import (
    Promo,
    compute_booking_price,
    compute_order_pricing,
    verify_order_pricing,
)


class TestOrderPricing:
    def test_total_is_subtotal_plus_shipping_plus_tax_minus_discount(self):
        pricing = compute_order_pricing([(2, 500.0), (1, 149.99)], shipping=200, tax=50, discount=100)
        assert pricing.subtotal == 1149.99
        assert pricing.total == 1299.99
        assert pricing.total == round(
            pricing.subtotal + pricing.shipping + pricing.tax - pricing.discount, 2
        )

    def test_rounds_to_cents(self):
        pricing = compute_order_pricing([(3, 0.1)])
        assert pricing.subtotal == 0.3
        assert pricing.total == 0.3

    def test_negative_inputs_are_rejected(self):
        with pytest.raises(ValidationError):
            compute_order_pricing([(1, 100.0)], discount=-5)
        with pytest.raises(ValidationError):
            compute_order_pricing([(1, -1.0)])

    def test_zero_quantity_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_order_pricing([(0, 100.0)])

    def test_discount_larger_than_order_is_rejected(self):
        with pytest.raises(ValidationError, match="negative"):
            compute_order_pricing([(1, 100.0)], discount=150)


class TestVerifyOrderPricing:
    def test_matching_pricing_passes(self):
        computed = compute_order_pricing([(2, 500.0)], shipping=100)
        verify_order_pricing(1000.0, 1100.0, computed)

    def test_within_half_a_cent_passes(self):
        computed = compute_order_pricing([(1, 10.0)])
        verify_order_pricing(10.004, 9.996, computed)

    def test_subtotal_mismatch_raises(self):
        computed = compute_order_pricing([(2, 500.0)])
        with pytest.raises(ValidationError, match="subtotal"):
            verify_order_pricing(900.0, 1000.0, computed)

    def test_total_mismatch_raises(self):
        computed = compute_order_pricing([(2, 500.0)], tax=80)
        with pytest.raises(ValidationError, match="total"):
            verify_order_pricing(1000.0, 1000.0, computed)


class TestBookingPrice:
    def test_duration_within_base_has_no_extra_hours(self):
        price = compute_booking_price(hourly_rate=1000, duration=1.0, base_duration=1.0)
        assert price.base_price == 1000
        assert price.extra_hours == 0
        assert price.extra_hours_cost == 0
        assert price.total_amount == 1000

    def test_extra_hours_are_charged_at_hourly_rate(self):
        price = compute_booking_price(hourly_rate=1000, duration=2.5, base_duration=1.0)
        assert price.extra_hours == 1.5
        assert price.extra_hours_cost == 1500
        assert price.total_amount == 2500

    def test_full_breakdown_with_percentage_promo(self):
        price = compute_booking_price(
            hourly_rate=1000,
            duration=2.5,
            base_duration=1.0,
            minimum_charge=3000,
            travel_fee=200,
            additional_service_prices=[300],
            promo=Promo(code="SPRING10", discount_type="percentage", value=10),
        )
        assert price.minimum_charge_adjustment == 500
        assert price.travel_fee == 200
        assert price.additional_services_total == 300
        # 10% of the pre-discount subtotal (3000 + 200 + 300)
        assert price.promo_discount == 350
        assert price.total_amount == 3150

    def test_minimum_charge_does_not_apply_above_it(self):
        price = compute_booking_price(
            hourly_rate=1000, duration=3, base_duration=1, minimum_charge=2000
        )
        assert price.minimum_charge_adjustment == 0
        assert price.total_amount == 3000

    def test_fixed_promo(self):
        price = compute_booking_price(
            hourly_rate=1000,
            duration=1,
            base_duration=1,
            promo=Promo(code="FLAT200", discount_type="fixed", value=200),
        )
        assert price.promo_discount == 200
        assert price.total_amount == 800

    def test_promo_bigger_than_price_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_booking_price(
                hourly_rate=100,
                duration=1,
                base_duration=1,
                promo=Promo(code="HUGE", discount_type="fixed", value=500),
            )

    def test_percentage_over_100_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_booking_price(
                hourly_rate=100,
                duration=1,
                base_duration=1,
                promo=Promo(code="X", discount_type="percentage", value=120),
            )

    def test_negative_rate_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_booking_price(hourly_rate=-1, duration=1, base_duration=1)
