from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Tuple

from sqlmodel import and_, or_, select

from moms.models.billing import Bill
from moms.models.chat import ChatMessage
from moms.models.orders import Order
from moms.models.organization import House

from .registry import CallContext, FunctionError, dump_all, function, get_or_404, require_fields

PAGE_SIZE = 50


def _parse_cursor(raw: Any) -> Tuple[datetime, str]:
    try:
        created_at, message_id = str(raw).rsplit("|", 1)
        return datetime.fromisoformat(created_at), message_id
    except ValueError as exc:
        raise FunctionError("invalid-argument", "Invalid cursor") from exc


def _post(ctx: CallContext, house: House, **fields: Any) -> Dict[str, Any]:
    caller = ctx.require_house_access(house)
    message = ChatMessage(house_id=house.id, sender_id=caller.id, sender_name=caller.name, **fields)
    ctx.db.add(message)
    ctx.db.commit()
    ctx.db.refresh(message)
    return {"message": message.to_dict()}


@function("sendChatMessage")
def send_chat_message(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    text = (data.get("text") or "").strip() or None
    image_url = data.get("imageUrl") or None
    if text is None and image_url is None:
        raise FunctionError("invalid-argument", "Message needs text or an image")
    return _post(ctx, house, text=text, image_url=image_url)


@function("shareOrderInChat")
def share_order_in_chat(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId", "orderId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    order = get_or_404(ctx.db, Order, data["orderId"], "Order")
    if order.house_id != house.id:
        raise FunctionError("invalid-argument", "Order belongs to another house")
    return _post(ctx, house, shared_order_id=order.id)


@function("shareBillInChat")
def share_bill_in_chat(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId", "billId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    bill = get_or_404(ctx.db, Bill, data["billId"], "Bill")
    if bill.house_id != house.id:
        raise FunctionError("invalid-argument", "Bill belongs to another house")
    return _post(ctx, house, shared_bill_id=bill.id)


@function("getChatMessages")
def get_chat_messages(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    """Newest first; pass the returned ``cursor`` (``<createdAt>|<id>``) for the next page."""
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    ctx.require_house_access(house)
    stmt = select(ChatMessage).where(ChatMessage.house_id == house.id)
    if data.get("cursor"):
        created_at, message_id = _parse_cursor(data["cursor"])
        # messages sharing the boundary timestamp are ordered by id
        stmt = stmt.where(
            or_(
                ChatMessage.created_at < created_at,
                and_(ChatMessage.created_at == created_at, ChatMessage.id < message_id),
            )
        )
    stmt = stmt.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(PAGE_SIZE)
    messages = ctx.db.exec(stmt).all()
    next_cursor = None
    if len(messages) == PAGE_SIZE:
        last = messages[-1]
        next_cursor = f"{last.created_at.isoformat()}|{last.id}"
    return {"messages": dump_all(messages), "cursor": next_cursor}
