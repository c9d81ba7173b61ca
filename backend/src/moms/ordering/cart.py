from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from moms.models.menus import MealType


@dataclass
class CartLine:
    menu_item_id: str
    name: str
    price: float
    quantity: int
    meal_type: MealType

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


class Cart:
    """Session-local cart; one line per menu item, quantities always positive."""

    def __init__(self) -> None:
        self._lines: List[CartLine] = []

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    def get(self, menu_item_id: str) -> Optional[CartLine]:
        return next((line for line in self._lines if line.menu_item_id == menu_item_id), None)

    def quantity_of(self, menu_item_id: str) -> int:
        line = self.get(menu_item_id)
        return line.quantity if line else 0

    def add_item(
        self,
        menu_item_id: str,
        name: str,
        price: float,
        meal_type: MealType | str,
        quantity: int = 1,
    ) -> CartLine:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        line = self.get(menu_item_id)
        if line is not None:
            line.quantity += quantity
            return line
        line = CartLine(
            menu_item_id=menu_item_id,
            name=name,
            price=float(price),
            quantity=quantity,
            meal_type=MealType(meal_type),
        )
        self._lines.append(line)
        return line

    def update_quantity(self, menu_item_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(menu_item_id)
            return
        line = self.get(menu_item_id)
        if line is not None:
            line.quantity = quantity

    def remove_item(self, menu_item_id: str) -> None:
        self._lines = [line for line in self._lines if line.menu_item_id != menu_item_id]

    def remove_meals(self, meal_types: Iterable[MealType]) -> None:
        drop = set(meal_types)
        self._lines = [line for line in self._lines if line.meal_type not in drop]

    def clear(self) -> None:
        self._lines = []

    def total(self) -> float:
        return sum(line.price * line.quantity for line in self._lines)

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)
