from __future__ import annotations

from typing import Optional

from moms.functions.client import CallResult, MenuApi
from moms.models.menus import MealType


class AgencyMenuManager:
    """Agency side of the daily menu: catalogue, membership toggles, locks and cutoffs."""

    def __init__(self, menus: MenuApi, agency_id: str):
        self._menus = menus
        self.agency_id = agency_id

    def catalogue(self) -> CallResult:
        return self._menus.get_items(self.agency_id)

    def daily_items(self, day: str, meal_type: MealType | str) -> CallResult:
        """The meal's published items as ``data``, or the failed load untouched."""
        result = self._menus.get_daily_menu(self.agency_id, day)
        if not result.success:
            return result
        meal = ((result.data or {}).get("menu") or {}).get(MealType(meal_type).value) or {}
        return CallResult(success=True, data=list(meal.get("items") or []))

    def toggle_daily_item(self, day: str, meal_type: MealType | str, item_id: str) -> CallResult:
        """Add the item to the meal's list, or remove it if it is already there."""
        loaded = self.daily_items(day, meal_type)
        if not loaded.success:
            return loaded
        current = [item["id"] for item in loaded.data]
        if item_id in current:
            updated = [i for i in current if i != item_id]
        else:
            updated = current + [item_id]
        return self._menus.publish_daily_menu(self.agency_id, day, MealType(meal_type).value, updated)

    def remove_from_daily(self, day: str, meal_type: MealType | str, item_id: str) -> CallResult:
        loaded = self.daily_items(day, meal_type)
        if not loaded.success:
            return loaded
        updated = [item["id"] for item in loaded.data if item["id"] != item_id]
        return self._menus.publish_daily_menu(self.agency_id, day, MealType(meal_type).value, updated)

    def lock_meal(self, day: str, meal_type: MealType | str) -> CallResult:
        return self._menus.lock_menu(self.agency_id, day, MealType(meal_type).value)

    def unlock_meal(self, day: str, meal_type: MealType | str) -> CallResult:
        return self._menus.unlock_menu(self.agency_id, day, MealType(meal_type).value)

    def set_cutoff(self, meal_type: MealType | str, cutoff_time: Optional[str]) -> CallResult:
        # None clears the cutoff
        return self._menus.update_cutoff(self.agency_id, MealType(meal_type).value, cutoff_time)
