"""
The customer's ordering screen without the screen: today's menu for the
signed-in house, a cart that only accepts orderable meals, and checkout.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from moms.core.config import get_settings
from moms.functions.client import MenuApi, OrderApi
from moms.models.menus import MealType
from moms.utils.clock import Clock, local_clock

from .cart import Cart, CartLine
from .checkout import CheckoutResult, checkout
from .menu import MealAvailability, available_meals

if TYPE_CHECKING:
    from moms.auth.session import AuthSession

logger = logging.getLogger(__name__)


class NotLinkedError(Exception):
    """The signed-in profile has no house or agency to order for."""


class OrderBoard:
    def __init__(
        self,
        session: "AuthSession",
        menus: MenuApi,
        orders: OrderApi,
        cart: Cart | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._menus = menus
        self._orders = orders
        self.cart = cart or Cart()
        self._clock = clock or local_clock(get_settings().timezone)
        self._daily_menu: Dict[str, Any] = {}
        self.error: Optional[str] = None

    @property
    def today(self) -> date:
        return self._clock().date()

    @property
    def agency_id(self) -> Optional[str]:
        profile = self._session.user_data
        return profile.agency_id if profile else None

    @property
    def house_id(self) -> Optional[str]:
        profile = self._session.user_data
        return profile.house_id if profile else None

    def load(self) -> bool:
        """Fetch today's menu; ``False`` (and ``error`` set) when it could not be loaded."""
        if not self.agency_id:
            self.error = "Your account is not linked to an agency"
            return False
        result = self._menus.get_daily_menu(self.agency_id, self.today.isoformat())
        if not result.success:
            self.error = result.error
            logger.warning("daily menu unavailable agency=%s: %s", self.agency_id, result.error)
            return False
        self._daily_menu = result.data or {}
        self.error = None
        return True

    def meals(self) -> List[MealAvailability]:
        # cutoff is re-evaluated on every read
        return available_meals(self._daily_menu, self._clock())

    def meal(self, meal_type: MealType | str) -> Optional[MealAvailability]:
        meal_type = MealType(meal_type)
        return next((m for m in self.meals() if m.meal_type == meal_type), None)

    def add_to_cart(self, item_id: str, meal_type: MealType | str, quantity: int = 1) -> CartLine:
        meal = self.meal(meal_type)
        if meal is None:
            raise LookupError(f"No {MealType(meal_type).value} menu today")
        meal.ensure_orderable()
        item = meal.find_item(item_id)
        if item is None:
            raise LookupError(f"Item {item_id!r} is not on the {meal.meal_type.value} menu")
        return self.cart.add_item(item["id"], item["name"], item["price"], meal.meal_type, quantity)

    def checkout(self) -> CheckoutResult:
        if not self.house_id or not self.agency_id:
            raise NotLinkedError("Your account is not linked to a house")
        return checkout(self.cart, self._orders, self.house_id, self.agency_id, self.today)

    def order_history(self, day: date | None = None) -> List[Dict[str, Any]]:
        """The caller's orders, newest first; empty (and ``error`` set) on failure."""
        filters = {"date": day.isoformat()} if day else {}
        result = self._orders.get_my_orders(**filters)
        if not result.success:
            self.error = result.error
            return []
        return list((result.data or {}).get("orders") or [])

    def cancel_order(self, order_id: str, reason: str | None = None) -> bool:
        result = self._orders.cancel(order_id, reason)
        if not result.success:
            self.error = result.error
            logger.warning("cancel failed order=%s code=%s", order_id, result.code)
        return result.success
