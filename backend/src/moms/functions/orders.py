from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Mapping

from sqlmodel import select

from moms.models.identity import Role
from moms.models.menus import MealType
from moms.models.orders import Order, OrderStatus
from moms.models.organization import Agency, House
from moms.ordering.menu import meal_availability

from .menu import get_meal
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

ORDER_TRANSITIONS: Mapping[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.placed: frozenset({OrderStatus.confirmed, OrderStatus.cancelled}),
    OrderStatus.confirmed: frozenset({OrderStatus.preparing, OrderStatus.cancelled}),
    OrderStatus.preparing: frozenset({OrderStatus.ready}),
    OrderStatus.ready: frozenset({OrderStatus.delivered}),
    OrderStatus.delivered: frozenset(),
    OrderStatus.cancelled: frozenset(),
}


class TransitionError(FunctionError):
    def __init__(self, current: OrderStatus, target: OrderStatus):
        super().__init__(
            "failed-precondition",
            f"Cannot move order from {current.value} to {target.value}",
        )
        self.current = current
        self.target = target


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


def apply_transition(order: Order, target: OrderStatus) -> None:
    if not can_transition(order.status, target):
        raise TransitionError(order.status, target)
    order.status = target
    order.updated_at = datetime.utcnow()


def _order_lines(raw_items: Any, published: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not isinstance(raw_items, list) or not raw_items:
        raise FunctionError("invalid-argument", "Order must contain at least one item")
    lines: List[Dict[str, Any]] = []
    seen = set()
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise FunctionError("invalid-argument", "Malformed order item")
        item_id = raw.get("menuItemId")
        if not isinstance(item_id, str):
            raise FunctionError("invalid-argument", "menuItemId must be a string")
        if item_id not in published:
            raise FunctionError("invalid-argument", f"Item {item_id!r} is not on this menu")
        if item_id in seen:
            raise FunctionError("invalid-argument", f"Item {item_id!r} listed twice")
        seen.add(item_id)
        try:
            quantity = int(raw.get("quantity", 0))
        except (TypeError, ValueError) as exc:
            raise FunctionError("invalid-argument", "quantity must be an integer") from exc
        if quantity <= 0:
            raise FunctionError("invalid-argument", "quantity must be positive")
        # the published price is authoritative; a client-sent priceAtOrder is ignored
        lines.append({
            "menuItemId": item_id,
            "name": published[item_id].get("name") or raw.get("name"),
            "quantity": quantity,
            "priceAtOrder": float(published[item_id].get("price", 0.0)),
        })
    return lines


@function("placeOrder")
def place_order(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId", "agencyId", "mealType")
    day = day_arg(data)
    meal_type = enum_arg(MealType, data, "mealType")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    caller = ctx.require_caller(Role.customer, Role.house_admin)
    if caller.role != Role.system_admin and caller.house_id != house.id:
        raise FunctionError("permission-denied", "Not a member of this house")
    if house.agency_id != data["agencyId"]:
        raise FunctionError("invalid-argument", "House does not belong to this agency")
    agency = get_or_404(ctx.db, Agency, house.agency_id, "Agency")

    if day != ctx.today:
        raise FunctionError("failed-precondition", "Orders can only be placed for today")

    meal = get_meal(ctx.db, agency.id, day, meal_type)
    availability = meal_availability(
        meal_type,
        {"items": meal.items, "locked": meal.locked} if meal else None,
        agency.cutoff_times or {},
        ctx.now,
    )
    if not availability.available:
        raise FunctionError("failed-precondition", f"No {meal_type.value} menu published for today")
    if not availability.orderable:
        raise FunctionError(
            "failed-precondition",
            f"Orders for {meal_type.value} are closed ({availability.closed_reason})",
        )

    published = {item["id"]: item for item in availability.items}
    lines = _order_lines(data.get("items"), published)
    order = Order(
        house_id=house.id,
        agency_id=agency.id,
        user_id=caller.id,
        day=day,
        meal_type=meal_type,
        items=lines,
        total=round(sum(line["priceAtOrder"] * line["quantity"] for line in lines), 2),
    )
    ctx.db.add(order)
    ctx.db.commit()
    ctx.db.refresh(order)
    logger.info("order placed id=%s house=%s meal=%s total=%.2f", order.id, house.id, meal_type.value, order.total)
    return {"order": order.to_dict()}


@function("updateOrderStatus")
def update_order_status(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "orderId")
    target = enum_arg(OrderStatus, data, "status")
    order = get_or_404(ctx.db, Order, data["orderId"], "Order")
    ctx.require_agency_actor(order.agency_id)
    apply_transition(order, target)
    ctx.db.add(order)
    ctx.db.commit()
    ctx.db.refresh(order)
    return {"order": order.to_dict()}


@function("cancelOrder")
def cancel_order(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "orderId")
    order = get_or_404(ctx.db, Order, data["orderId"], "Order")
    caller = ctx.require_caller()
    is_owner = caller.id == order.user_id
    is_house_admin = caller.role == Role.house_admin and caller.house_id == order.house_id
    is_agency = caller.role in (Role.agency_owner, Role.agency_helper) and caller.agency_id == order.agency_id
    if not (is_owner or is_house_admin or is_agency or caller.role == Role.system_admin):
        raise FunctionError("permission-denied", "Not allowed to cancel this order")
    apply_transition(order, OrderStatus.cancelled)
    order.cancel_reason = data.get("reason")
    ctx.db.add(order)
    ctx.db.commit()
    ctx.db.refresh(order)
    return {"order": order.to_dict()}


def _filtered(stmt, data: Mapping[str, Any]):
    if data.get("date"):
        stmt = stmt.where(Order.day == day_arg(data))
    if data.get("mealType"):
        stmt = stmt.where(Order.meal_type == enum_arg(MealType, data, "mealType"))
    if data.get("status"):
        stmt = stmt.where(Order.status == enum_arg(OrderStatus, data, "status"))
    return stmt.order_by(Order.created_at.desc())


@function("getMyOrders")
def get_my_orders(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    caller = ctx.require_caller()
    stmt = _filtered(select(Order).where(Order.user_id == caller.id), data)
    return {"orders": dump_all(ctx.db.exec(stmt).all())}


@function("getHouseOrders")
def get_house_orders(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    ctx.require_house_access(house)
    stmt = _filtered(select(Order).where(Order.house_id == house.id), data)
    return {"orders": dump_all(ctx.db.exec(stmt).all())}


@function("getAgencyOrders")
def get_agency_orders(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    ctx.require_agency_actor(data["agencyId"])
    stmt = _filtered(select(Order).where(Order.agency_id == data["agencyId"]), data)
    return {"orders": dump_all(ctx.db.exec(stmt).all())}


@function("getAggregatedOrders")
def get_aggregated_orders(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    """Per-item quantities across all live orders of one agency, day and meal."""
    require_fields(data, "agencyId")
    day = day_arg(data)
    meal_type = enum_arg(MealType, data, "mealType")
    ctx.require_agency_actor(data["agencyId"])
    orders = ctx.db.exec(
        select(Order).where(
            Order.agency_id == data["agencyId"],
            Order.day == day,
            Order.meal_type == meal_type,
            Order.status != OrderStatus.cancelled,
        )
    ).all()

    totals: Dict[str, Dict[str, Any]] = {}
    by_house: Dict[str, int] = defaultdict(int)
    for order in orders:
        for line in order.items:
            entry = totals.setdefault(line["menuItemId"], {"menuItemId": line["menuItemId"], "name": line["name"], "quantity": 0})
            entry["quantity"] += line["quantity"]
            by_house[order.house_id] += line["quantity"]

    return {
        "date": day.isoformat(),
        "mealType": meal_type.value,
        "orderCount": len(orders),
        "items": sorted(totals.values(), key=lambda e: e["name"]),
        "byHouse": dict(by_house),
    }
