from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from moms.models.identity import Role
from moms.models.menus import DailyMenuMeal, MealType, MenuItem
from moms.models.organization import Agency
from moms.ordering.menu import parse_cutoff

from .registry import (
    CallContext,
    FunctionError,
    day_arg,
    dump_all,
    enum_arg,
    function,
    get_or_404,
    require_fields,
)

logger = logging.getLogger(__name__)


def _price_arg(value: Any) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError) as exc:
        raise FunctionError("invalid-argument", "price must be a number") from exc
    if price < 0:
        raise FunctionError("invalid-argument", "price must not be negative")
    return price


def cutoff_arg(value: Any, key: str = "cutoffTime") -> str:
    """Validated ``HH:MM`` string."""
    if not isinstance(value, str):
        raise FunctionError("invalid-argument", f"{key} must be HH:MM")
    try:
        parsed = parse_cutoff(value)
    except ValueError as exc:
        raise FunctionError("invalid-argument", f"{key} must be HH:MM") from exc
    return parsed.strftime("%H:%M")


def cutoff_times_arg(raw: Any) -> Dict[str, str]:
    """Validate a ``{mealType: "HH:MM"}`` mapping; empty values are dropped."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise FunctionError("invalid-argument", "cutoffTimes must be an object")
    cutoffs: Dict[str, str] = {}
    for meal, value in raw.items():
        try:
            meal_type = MealType(meal)
        except ValueError as exc:
            raise FunctionError("invalid-argument", f"Unknown meal type {meal!r} in cutoffTimes") from exc
        if value:
            cutoffs[meal_type.value] = cutoff_arg(value, f"cutoffTimes.{meal_type.value}")
    return cutoffs


def get_meal(db: Session, agency_id: str, day: date, meal_type: MealType) -> Optional[DailyMenuMeal]:
    stmt = select(DailyMenuMeal).where(
        DailyMenuMeal.agency_id == agency_id,
        DailyMenuMeal.day == day,
        DailyMenuMeal.meal_type == meal_type,
    )
    return db.exec(stmt).first()


def _get_or_create_meal(db: Session, agency_id: str, day: date, meal_type: MealType) -> DailyMenuMeal:
    meal = get_meal(db, agency_id, day, meal_type)
    if meal is None:
        meal = DailyMenuMeal(agency_id=agency_id, day=day, meal_type=meal_type, items=[])
    return meal


def load_daily_menu(db: Session, agency: Agency, day: date) -> Dict[str, Any]:
    rows = db.exec(
        select(DailyMenuMeal).where(DailyMenuMeal.agency_id == agency.id, DailyMenuMeal.day == day)
    ).all()
    menu = {row.meal_type.value: {"items": list(row.items or []), "locked": row.locked} for row in rows}
    return {
        "agencyId": agency.id,
        "date": day.isoformat(),
        "menu": menu,
        "cutoffTimes": dict(agency.cutoff_times or {}),
    }


# -------------------- catalogue --------------------
@function("createMenuItem")
def create_menu_item(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId", "name", "price")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    ctx.require_agency_actor(agency.id)
    item = MenuItem(
        agency_id=agency.id,
        name=str(data["name"]).strip(),
        price=_price_arg(data["price"]),
        category=data.get("category"),
        description=data.get("description"),
        image_url=data.get("imageUrl"),
    )
    ctx.db.add(item)
    ctx.db.commit()
    ctx.db.refresh(item)
    return {"item": item.to_dict()}


@function("updateMenuItem")
def update_menu_item(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "itemId")
    item = get_or_404(ctx.db, MenuItem, data["itemId"], "Menu item")
    ctx.require_agency_actor(item.agency_id)
    if "name" in data:
        item.name = str(data["name"]).strip()
    if "price" in data:
        item.price = _price_arg(data["price"])
    for key, attr in (("category", "category"), ("description", "description"), ("imageUrl", "image_url")):
        if key in data:
            setattr(item, attr, data[key])
    if "isActive" in data:
        item.is_active = bool(data["isActive"])
    ctx.db.add(item)
    ctx.db.commit()
    ctx.db.refresh(item)
    return {"item": item.to_dict()}


@function("deleteMenuItem")
def delete_menu_item(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "itemId")
    item = get_or_404(ctx.db, MenuItem, data["itemId"], "Menu item")
    ctx.require_agency_actor(item.agency_id)
    ctx.db.delete(item)
    ctx.db.commit()
    return {"deleted": data["itemId"]}


@function("getMenuItems")
def get_menu_items(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    ctx.require_caller()
    stmt = (
        select(MenuItem)
        .where(MenuItem.agency_id == data["agencyId"], MenuItem.is_active == True)  # noqa: E712
        .order_by(MenuItem.category, MenuItem.name)
    )
    return {"items": dump_all(ctx.db.exec(stmt).all())}


# -------------------- daily menu --------------------
@function("getDailyMenu")
def get_daily_menu(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    day = day_arg(data)
    caller = ctx.require_caller()
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    if caller.role != Role.system_admin and caller.agency_id != agency.id:
        raise FunctionError("permission-denied", "Not linked to this agency")
    return load_daily_menu(ctx.db, agency, day)


@function("publishDailyMenu")
def publish_daily_menu(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId", "mealType")
    day = day_arg(data)
    meal_type = enum_arg(MealType, data, "mealType")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    caller = ctx.require_agency_actor(agency.id)

    meal = _get_or_create_meal(ctx.db, agency.id, day, meal_type)
    if meal.locked:
        raise FunctionError("failed-precondition", "Menu is locked; unlock it before editing")

    raw_items = data.get("items") or []
    if not isinstance(raw_items, list):
        raise FunctionError("invalid-argument", "items must be a list")
    requested: List[str] = []
    for entry in raw_items:
        item_id = entry.get("id") if isinstance(entry, dict) else entry
        if not isinstance(item_id, str) or not item_id:
            raise FunctionError("invalid-argument", "Menu item ids must be non-empty strings")
        if item_id not in requested:
            requested.append(item_id)

    catalogue = {
        item.id: item
        for item in ctx.db.exec(
            select(MenuItem).where(MenuItem.agency_id == agency.id, MenuItem.id.in_(requested))
        ).all()
    } if requested else {}
    unknown = [item_id for item_id in requested if item_id not in catalogue]
    if unknown:
        raise FunctionError("invalid-argument", f"Unknown menu item(s): {', '.join(unknown)}")

    meal.items = [catalogue[item_id].menu_entry() for item_id in requested]
    meal.published_by = caller.id
    meal.updated_at = datetime.utcnow()
    ctx.db.add(meal)
    ctx.db.commit()
    logger.info(
        "daily menu published agency=%s date=%s meal=%s items=%d",
        agency.id, day.isoformat(), meal_type.value, len(requested),
    )
    return load_daily_menu(ctx.db, agency, day)


def _set_lock(ctx: CallContext, data: Dict[str, Any], locked: bool) -> Dict[str, Any]:
    require_fields(data, "agencyId", "mealType")
    day = day_arg(data)
    meal_type = enum_arg(MealType, data, "mealType")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    ctx.require_agency_actor(agency.id)
    meal = _get_or_create_meal(ctx.db, agency.id, day, meal_type)
    meal.locked = locked
    meal.updated_at = datetime.utcnow()
    ctx.db.add(meal)
    ctx.db.commit()
    logger.info("menu %s agency=%s date=%s meal=%s", "locked" if locked else "unlocked",
                agency.id, day.isoformat(), meal_type.value)
    return {"mealType": meal_type.value, "date": day.isoformat(), "locked": locked}


@function("lockMenu")
def lock_menu(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    return _set_lock(ctx, data, True)


@function("unlockMenu")
def unlock_menu(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    return _set_lock(ctx, data, False)


@function("updateCutoffTime")
def update_cutoff_time(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId", "mealType")
    meal_type = enum_arg(MealType, data, "mealType")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    caller = ctx.require_agency_actor(agency.id)
    if caller.role == Role.agency_helper:
        raise FunctionError("permission-denied", "Only the agency owner can change cutoff times")

    cutoff_times = dict(agency.cutoff_times or {})
    cutoff = data.get("cutoffTime")
    if cutoff:
        cutoff_times[meal_type.value] = cutoff_arg(cutoff)
    else:
        cutoff_times.pop(meal_type.value, None)

    # reassign so the JSON column is flagged dirty
    agency.cutoff_times = cutoff_times
    ctx.db.add(agency)
    ctx.db.commit()
    return {"cutoffTimes": cutoff_times}
