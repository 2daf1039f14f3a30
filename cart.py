"""Client-side cart state for building a bill before checkout."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pricing import cart_total, item_total
from schemas import CartItem, CreateBillRequest


@dataclass
class CartLine:
    product_id: str
    name: str
    price_per_unit: float
    weight: float
    weight_unit: str
    quantity: int = 1

    @property
    def item_total(self) -> float:
        return item_total(self.price_per_unit, self.weight, self.weight_unit, self.quantity)


class Cart:
    """Ordered cart lines keyed by product id.

    Weight and price can be edited per line; the catalog product is not changed.
    """

    def __init__(self):
        self.lines: List[CartLine] = []

    def __len__(self) -> int:
        return len(self.lines)

    def _find(self, product_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def add(self, product: Dict[str, Any]) -> CartLine:
        """Add one unit of a catalog product (as returned by the API)."""
        line = self._find(product["id"])
        if line:
            line.quantity += 1
            return line
        line = CartLine(
            product_id=product["id"],
            name=product["name"],
            price_per_unit=float(product["price_per_unit"]),
            weight=float(product["weight"]),
            weight_unit=product["weight_unit"],
        )
        self.lines.append(line)
        return line

    def set_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(product_id)
            return
        line = self._find(product_id)
        if line:
            line.quantity = quantity

    def set_weight(self, product_id: str, weight: float) -> None:
        line = self._find(product_id)
        if line:
            line.weight = max(float(weight or 0), 0.0)

    def set_price(self, product_id: str, price_per_unit: float) -> None:
        line = self._find(product_id)
        if line:
            line.price_per_unit = max(float(price_per_unit or 0), 0.0)

    def remove(self, product_id: str) -> None:
        self.lines = [line for line in self.lines if line.product_id != product_id]

    def clear(self) -> None:
        self.lines = []

    @property
    def total(self) -> float:
        return cart_total(self.lines)

    def to_bill_request(self, customer_name: Optional[str] = None, payment_method: str = "cash", notes: Optional[str] = None) -> CreateBillRequest:
        if not self.lines:
            raise ValueError("Cart is empty")
        return CreateBillRequest(
            items=[
                CartItem(
                    product_id=line.product_id,
                    price_per_unit=line.price_per_unit,
                    weight=line.weight,
                    weight_unit=line.weight_unit,
                    quantity=line.quantity,
                    item_total=line.item_total,
                )
                for line in self.lines
            ],
            total_amount=self.total,
            customer_name=customer_name,
            payment_method=payment_method,
            notes=notes,
        )
