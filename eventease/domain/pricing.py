from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

CENT = Decimal("0.01")


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price, quantity: int, is_free: bool = False) -> Decimal:
    if is_free:
        return to_money(0)
    return to_money(Decimal(str(unit_price)) * quantity)


def compute_discount(
    subtotal: Decimal,
    discount_type: DiscountType,
    discount_value,
) -> Decimal:
    """
    Returns the discount for ``subtotal``, never more than the subtotal itself.
    """
    value = Decimal(str(discount_value))

    if discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * value / Decimal(100)
    elif discount_type == DiscountType.FIXED:
        discount = value
    else:
        raise ValueError(f"Unknown discount type: {discount_type}")

    return to_money(min(max(discount, Decimal(0)), subtotal))
