"""Charge amount arithmetic in major and minor currency units."""

from decimal import Decimal

from artpay.common.errors import AmountPrecisionError

MINOR_UNITS_PER_MAJOR = 100


def compute_amount(item_cost: Decimal, quantity: int, delivery_fee: Decimal) -> Decimal:
    """Return `item_cost * quantity + delivery_fee`."""

    item_cost, delivery_fee = Decimal(item_cost), Decimal(delivery_fee)
    if item_cost < 0 or delivery_fee < 0:
        raise ValueError("item cost and delivery fee must be non-negative")
    if quantity < 1:
        raise ValueError("quantity must be at least 1")
    return item_cost * quantity + delivery_fee


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to the gateway's integer minor units.

    Raises AmountPrecisionError instead of rounding away fractional paise.
    """

    scaled = Decimal(amount) * MINOR_UNITS_PER_MAJOR
    if scaled != scaled.to_integral_value():
        raise AmountPrecisionError(f"amount {amount} has sub-minor-unit precision")
    return int(scaled)


def from_minor_units(minor: int) -> Decimal:
    return Decimal(minor) / MINOR_UNITS_PER_MAJOR
