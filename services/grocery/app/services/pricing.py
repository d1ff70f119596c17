"""Order pricing: subtotal, sales tax and the flat pickup service fee.

All amounts are Decimal dollars rounded half-up to the cent. Tax is rounded before it
is added, so total == subtotal + tax + service_fee holds exactly.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from services.grocery.app.services.records import CartLine, Totals

TAX_RATE = Decimal("0.08")
SERVICE_FEE = Decimal("2.00")

_CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    # float goes through str so 0.1 stays 0.10 and not 0.1000000000000000055...
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    return int(to_money(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(_CENT)


def compute_totals(lines: Iterable[CartLine]) -> Totals:
    subtotal = to_money(sum((line.line_total for line in lines), Decimal("0")))
    tax = to_money(subtotal * TAX_RATE)
    service_fee = SERVICE_FEE
    return Totals(
        subtotal=subtotal,
        tax=tax,
        service_fee=service_fee,
        total=subtotal + tax + service_fee,
    )
