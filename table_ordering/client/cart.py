from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from table_ordering.core.money import CENT


@dataclass
class CartLine:
    menu_item_id: int
    name: str
    price: Decimal
    quantity: int
    image_url: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return (self.price * self.quantity).quantize(CENT)


class Cart:
    """Local cart; each line keeps the menu price seen when it was added."""

    def __init__(self) -> None:
        self._lines: Dict[int, CartLine] = {}

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def add(self, menu_item: Dict[str, Any], quantity: int = 1) -> CartLine:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        item_id = int(menu_item["id"])
        line = self._lines.get(item_id)
        if line is not None:
            line.quantity += quantity
            return line

        line = CartLine(
            menu_item_id=item_id,
            name=menu_item["name"],
            price=Decimal(str(menu_item["price"])).quantize(CENT),
            quantity=quantity,
            image_url=menu_item.get("image_url"),
        )
        self._lines[item_id] = line
        return line

    def remove(self, menu_item_id: int) -> None:
        self._lines.pop(menu_item_id, None)

    def update(self, menu_item_id: int, quantity: int) -> None:
        if quantity <= 0:
            self.remove(menu_item_id)
            return
        line = self._lines.get(menu_item_id)
        if line is not None:
            line.quantity = quantity

    def clear(self) -> None:
        self._lines.clear()

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self._lines.values()), Decimal("0.00")).quantize(CENT)

    @property
    def count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def to_checkout_payload(self, *, table_number: int | None = None, notes: str | None = None) -> Dict[str, Any]:
        if self.is_empty():
            raise ValueError("cart is empty")
        return {
            "table_number": table_number,
            "total_amount": str(self.total),
            "notes": notes,
            "items": [
                {
                    "menu_item_id": line.menu_item_id,
                    "quantity": line.quantity,
                    "unit_price": str(line.price),
                    "subtotal": str(line.subtotal),
                }
                for line in self._lines.values()
            ],
        }
