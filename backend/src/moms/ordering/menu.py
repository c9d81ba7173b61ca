"""
Daily menu availability: which meals are published today and which of them
still accept orders (not locked, not past cutoff).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Any, Dict, List, Mapping, Optional

from moms.models.menus import MEAL_TYPE_LABELS, MealType


class MealClosedError(Exception):
    """Ordering for a meal is closed (locked by the agency or past cutoff)."""

    def __init__(self, meal_type: MealType, reason: str):
        super().__init__(f"Orders for {meal_type.value} are no longer accepted ({reason}).")
        self.meal_type = meal_type
        self.reason = reason


def parse_cutoff(cutoff: str) -> time:
    """``"HH:MM"`` -> ``time``; raises ``ValueError`` on anything else."""
    hours, minutes = cutoff.strip().split(":")
    return time(int(hours), int(minutes))


def is_past_cutoff(cutoff: Optional[str], now: datetime | time) -> bool:
    """True once the time of day is strictly after ``HH:MM:00``; no cutoff -> never."""
    if not cutoff:
        return False
    current = now.time() if isinstance(now, datetime) else now
    return current > parse_cutoff(cutoff)


@dataclass
class MealAvailability:
    meal_type: MealType
    items: List[Dict[str, Any]] = field(default_factory=list)
    cutoff: Optional[str] = None
    locked: bool = False
    past_cutoff: bool = False

    @property
    def label(self) -> str:
        return MEAL_TYPE_LABELS[self.meal_type]

    @property
    def available(self) -> bool:
        return bool(self.items)

    @property
    def orderable(self) -> bool:
        return not self.locked and not self.past_cutoff

    @property
    def closed_reason(self) -> Optional[str]:
        if self.locked:
            return "locked"
        if self.past_cutoff:
            return "past cutoff"
        return None

    def find_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        return next((item for item in self.items if item.get("id") == item_id), None)

    def ensure_orderable(self) -> None:
        reason = self.closed_reason
        if reason:
            raise MealClosedError(self.meal_type, reason)


def meal_availability(
    meal_type: MealType,
    meal: Optional[Mapping[str, Any]],
    cutoff_times: Mapping[str, str],
    now: datetime,
) -> MealAvailability:
    meal = meal or {}
    cutoff = cutoff_times.get(meal_type.value)
    return MealAvailability(
        meal_type=meal_type,
        items=list(meal.get("items") or []),
        cutoff=cutoff,
        locked=bool(meal.get("locked")),
        past_cutoff=is_past_cutoff(cutoff, now),
    )


def available_meals(daily_menu: Mapping[str, Any], now: datetime) -> List[MealAvailability]:
    """
    Meals with a non-empty published list, in breakfast/lunch/dinner/snacks order.

    ``daily_menu`` is the ``getDailyMenu`` payload:
    ``{"menu": {meal: {"items": [...], "locked": bool}}, "cutoffTimes": {meal: "HH:MM"}}``.
    """
    menu = daily_menu.get("menu") or {}
    cutoff_times = daily_menu.get("cutoffTimes") or {}
    meals = (meal_availability(mt, menu.get(mt.value), cutoff_times, now) for mt in MealType)
    return [meal for meal in meals if meal.available]
