"""Order total calculation."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Tuple

from config import TAX_RATE, FREE_SHIPPING_THRESHOLD, FLAT_SHIPPING_FEE

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round a price or amount to whole cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(price, quantity: int) -> Decimal:
    return to_money(to_money(price) * quantity)


def calculate_totals(lines: Iterable[Tuple[Decimal, int]]) -> Dict[str, Decimal]:
    """
    Compute order totals from (unit price, quantity) pairs.

    Shipping is free once the subtotal is strictly above the threshold.
    """
    subtotal = sum((line_total(price, quantity) for price, quantity in lines), Decimal("0.00"))
    tax = to_money(subtotal * TAX_RATE)
    shipping = Decimal("0.00") if subtotal > FREE_SHIPPING_THRESHOLD else to_money(FLAT_SHIPPING_FEE)
    return {
        "subtotal": to_money(subtotal),
        "tax": tax,
        "shipping": shipping,
        "total": to_money(subtotal + tax + shipping),
    }
