"""
Sale pricing: discounts, final totals and cash change.

Final total invariant: final_total == max(0, total - discount), where a
PERCENTAGE discount is a share of the total and a FIXED discount is an amount.
"""

from __future__ import annotations

from ..constants import DISCOUNT_PERCENTAGE, DISCOUNT_TYPES
from ..errors import ValidationError


def _money(value: float) -> float:
    rounded = round(value, 2)
    return int(rounded) if float(rounded).is_integer() else rounded


def compute_discount(total: float, discount: float | None, discount_type: str | None) -> float:
    if not discount:
        return 0
    if discount < 0:
        raise ValidationError("discount must be >= 0")
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}")
    if discount_type == DISCOUNT_PERCENTAGE:
        if discount > 100:
            raise ValidationError("percentage discount cannot exceed 100")
        return _money(total * discount / 100)
    return _money(discount)


def compute_final_total(total: float, discount: float | None = None, discount_type: str | None = None) -> float:
    """Total after discount, never negative."""
    return _money(max(0, total - compute_discount(total, discount, discount_type)))


def compute_change_due(final_total: float, amount_tendered: float | None) -> float:
    if amount_tendered is None:
        return 0
    if amount_tendered < final_total:
        raise ValidationError(
            "amount_tendered is less than the amount due",
            details={"amount_tendered": amount_tendered, "final_total": final_total},
        )
    return _money(amount_tendered - final_total)


def items_total(items) -> float:
    return _money(sum(item["price"] * item["quantity"] for item in items))
