"""
Redondeo monetario compartido: 2 decimales, ROUND_HALF_UP.

Todo valor monetario que se persiste o se reporta pasa por round_money.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # Evitar el error binario de float (0.1 -> 0.1000000000000000055...)
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Number]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return round_money(total)


def line_total(unit_price: Number, quantity: int, discount_percent: Number = 0) -> Decimal:
    """
    Total de una línea de venta.

    unit_price × (1 − descuento/100) × cantidad, redondeado una sola vez al final.
    """
    factor = Decimal("1") - to_decimal(discount_percent) / Decimal("100")
    return round_money(to_decimal(unit_price) * factor * Decimal(quantity))
