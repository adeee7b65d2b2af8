# app/services/pricing.py
"""
Pure pricing functions for orders and bookings. No I/O.

Order:
    subtotal = sum(quantity * unit_price)
    total    = subtotal + shipping + tax - discount

Booking:
    base_price        = hourly_rate * base_duration
    extra_hours_cost  = hourly_rate * max(0, duration - base_duration)
    labour            = base_price + extra_hours_cost, raised to minimum_charge
    subtotal          = labour + travel_fee + sum(additional service prices)
    total_amount      = subtotal - promo_discount

All amounts are rounded to cents. Negative inputs or totals are rejected,
never clamped.
"""
import math
from typing import Iterable, Literal

from sqlmodel import SQLModel

from app.core.errors import ValidationError

# Half a cent: anything closer than this is the same amount
MONEY_TOLERANCE = 0.005

DiscountType = Literal["fixed", "percentage"]


def money(value: float) -> float:
    return round(value + 0.0, 2)


def _require_non_negative(**amounts: float | None) -> None:
    for name, amount in amounts.items():
        if amount is not None and amount < 0:
            raise ValidationError(f"{name} cannot be negative")


class OrderPricing(SQLModel):
    subtotal: float
    shipping: float
    tax: float
    discount: float
    total: float


class Promo(SQLModel):
    code: str | None = None
    discount_type: DiscountType = "fixed"
    value: float = 0.0


class BookingPriceBreakdown(SQLModel):
    base_price: float
    base_duration: float
    extra_hours: float
    extra_hours_cost: float
    minimum_charge_adjustment: float
    travel_fee: float
    additional_services_total: float
    promo_discount: float
    total_amount: float


def compute_order_pricing(
    lines: Iterable[tuple[int, float]],
    shipping: float = 0.0,
    tax: float = 0.0,
    discount: float = 0.0,
) -> OrderPricing:
    """
    Derive order pricing from (quantity, unit_price) pairs.
    """
    _require_non_negative(shipping=shipping, tax=tax, discount=discount)

    subtotal = 0.0
    for quantity, unit_price in lines:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        _require_non_negative(unit_price=unit_price)
        subtotal += money(quantity * unit_price)

    subtotal = money(subtotal)
    total = money(subtotal + shipping + tax - discount)
    if total < 0:
        raise ValidationError("Order total cannot be negative")

    return OrderPricing(
        subtotal=subtotal,
        shipping=money(shipping),
        tax=money(tax),
        discount=money(discount),
        total=total,
    )


def amounts_match(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=0.0, abs_tol=MONEY_TOLERANCE)


def verify_order_pricing(
    submitted_subtotal: float,
    submitted_total: float,
    computed: OrderPricing,
) -> None:
    """
    Reject client pricing that disagrees with the server computation.
    Mismatches are an error, never silently corrected.
    """
    if not amounts_match(submitted_subtotal, computed.subtotal):
        raise ValidationError(
            f"Pricing mismatch: subtotal {submitted_subtotal:.2f} != {computed.subtotal:.2f}"
        )
    if not amounts_match(submitted_total, computed.total):
        raise ValidationError(
            f"Pricing mismatch: total {submitted_total:.2f} != {computed.total:.2f}"
        )


def compute_booking_price(
    hourly_rate: float,
    duration: float,
    base_duration: float,
    minimum_charge: float | None = None,
    travel_fee: float | None = None,
    additional_service_prices: Iterable[float] = (),
    promo: Promo | None = None,
) -> BookingPriceBreakdown:
    """
    Derive a booking price breakdown.

    The percentage promo applies to the pre-discount subtotal
    (labour + travel fee + additional services).
    """
    additional = list(additional_service_prices)
    _require_non_negative(
        hourly_rate=hourly_rate,
        duration=duration,
        base_duration=base_duration,
        minimum_charge=minimum_charge,
        travel_fee=travel_fee,
    )
    for price in additional:
        _require_non_negative(additional_service_price=price)

    extra_hours = max(0.0, duration - base_duration)
    base_price = money(hourly_rate * base_duration)
    extra_hours_cost = money(hourly_rate * extra_hours)

    labour = base_price + extra_hours_cost
    minimum_charge_adjustment = 0.0
    if minimum_charge and labour < minimum_charge:
        minimum_charge_adjustment = money(minimum_charge - labour)

    fee = money(travel_fee or 0.0)
    additional_total = money(sum(additional))
    subtotal = money(labour + minimum_charge_adjustment + fee + additional_total)

    promo_discount = 0.0
    if promo is not None:
        _require_non_negative(promo_value=promo.value)
        if promo.discount_type == "percentage":
            if promo.value > 100:
                raise ValidationError("Percentage discount cannot exceed 100")
            promo_discount = money(subtotal * promo.value / 100)
        else:
            promo_discount = money(promo.value)

    total = money(subtotal - promo_discount)
    if total < 0:
        raise ValidationError("Booking total cannot be negative")

    return BookingPriceBreakdown(
        base_price=base_price,
        base_duration=base_duration,
        extra_hours=extra_hours,
        extra_hours_cost=extra_hours_cost,
        minimum_charge_adjustment=minimum_charge_adjustment,
        travel_fee=fee,
        additional_services_total=additional_total,
        promo_discount=promo_discount,
        total_amount=total,
    )
