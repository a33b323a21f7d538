"""
Invoice Computer - line and invoice totals.

All arithmetic is plain float at full precision. Rounding to currency
precision happens only through round_currency, at the point a value is
stored or shown, so per-line rounding never accumulates into the total.

Inputs come from OCR or from a form, so any numeric field that is not a
finite number counts as 0.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

from .models import LineItem, Totals

CENT = Decimal("0.01")

# Keys accepted for the discount when a line item arrives as a mapping
_DISCOUNT_KEYS = ("discount_percent", "discountPercent", "discount")


def to_number(value: Any) -> float:
    """
    Coerce a raw field value to a finite float.

    None, "", unparseable strings, NaN and infinities all become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, (int, float, Decimal)):
            number = float(value)
        else:
            number = float(str(value).strip())
    except (ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _fields(item) -> tuple[Any, Any, Any]:
    if isinstance(item, Mapping):
        discount = None
        for key in _DISCOUNT_KEYS:
            if key in item:
                discount = item[key]
                break
        return item.get("price"), item.get("quantity"), discount
    return item.price, item.quantity, item.discount_percent


def line_subtotal(item: LineItem | Mapping) -> float:
    """price * quantity * (1 - discount_percent / 100)."""
    price, quantity, discount = _fields(item)
    return to_number(price) * to_number(quantity) * (1 - to_number(discount) / 100)


def line_subtotals(items: Iterable[LineItem | Mapping]) -> list[float]:
    """Per-line subtotals in item order."""
    return [line_subtotal(item) for item in items]


def aggregate(items: Iterable[LineItem | Mapping], tax_percent: Any) -> Totals:
    """
    Compute invoice totals.

    Args:
        items: Line items
        tax_percent: Flat tax (GST) percentage, coerced like any other field

    Returns:
        Totals with subtotal, tax_amount and total = subtotal + tax_amount
    """
    subtotal = 0.0
    for item in items:
        subtotal += line_subtotal(item)
    tax_amount = subtotal * to_number(tax_percent) / 100
    return Totals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def round_currency(value: Any) -> float:
    """Round to 2 decimals, half up, for storage or display."""
    amount = Decimal(str(to_number(value)))
    return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def format_currency(amount: Any, symbol: str = "₹") -> str:
    """Format an amount for display, e.g. "₹189.00"."""
    return f"{symbol}{round_currency(amount):.2f}"
