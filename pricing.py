"""
Price and weight-unit arithmetic shared by the catalog, the cart and billing.

Prices are per kilogram. A weight in grams is converted before multiplying.
Only item totals and cart totals are rounded, to 2 decimal places.
"""

from typing import Iterable, Protocol

GRAMS_PER_KG = 1000


class PricedLine(Protocol):
    price_per_unit: float
    weight: float
    weight_unit: str
    quantity: int


def normalized_weight(weight: float, weight_unit: str) -> float:
    """Weight expressed in kilograms."""
    if weight_unit == "gm":
        return weight / GRAMS_PER_KG
    return weight


def unit_value(price_per_unit: float, weight: float, weight_unit: str) -> float:
    return price_per_unit * normalized_weight(weight, weight_unit)


def item_total(price_per_unit: float, weight: float, weight_unit: str, quantity: int) -> float:
    return round(unit_value(price_per_unit, weight, weight_unit) * quantity, 2)


def cart_total(lines: Iterable[PricedLine]) -> float:
    total = 0.0
    for line in lines:
        total += item_total(line.price_per_unit, line.weight, line.weight_unit, line.quantity)
    return round(total, 2)
