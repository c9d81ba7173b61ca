"""
Checkout: one ``placeOrder`` call per meal type in the cart.

The calls are independent. A meal whose order fails keeps its lines in the
cart; lines of meals that were placed are removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List

from moms.functions.client import CallResult, OrderApi
from moms.models.menus import MealType

from .cart import Cart, CartLine

logger = logging.getLogger(__name__)


class EmptyCartError(ValueError):
    pass


@dataclass
class CheckoutResult:
    placed: Dict[MealType, Dict[str, Any]] = field(default_factory=dict)
    failed: Dict[MealType, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return bool(self.placed) and not self.failed

    @property
    def partial(self) -> bool:
        return bool(self.placed) and bool(self.failed)


def group_by_meal(lines: List[CartLine]) -> Dict[MealType, List[Dict[str, Any]]]:
    """Order-item payloads per meal type, in the order meals first appear in the cart."""
    groups: Dict[MealType, List[Dict[str, Any]]] = {}
    for line in lines:
        groups.setdefault(line.meal_type, []).append({
            "menuItemId": line.menu_item_id,
            "name": line.name,
            "quantity": line.quantity,
            "priceAtOrder": line.price,
        })
    return groups


def checkout(cart: Cart, orders: OrderApi, house_id: str, agency_id: str, day: date) -> CheckoutResult:
    if not cart:
        raise EmptyCartError("Your cart is empty")

    result = CheckoutResult()
    for meal_type, items in group_by_meal(cart.lines).items():
        response: CallResult = orders.place({
            "houseId": house_id,
            "agencyId": agency_id,
            "date": day.isoformat(),
            "mealType": meal_type.value,
            "items": items,
        })
        if response.success:
            result.placed[meal_type] = (response.data or {}).get("order", {})
        else:
            result.failed[meal_type] = response.error or "Failed to place order"
            logger.warning("order for %s failed: %s", meal_type.value, result.failed[meal_type])

    cart.remove_meals(result.placed)
    return result
