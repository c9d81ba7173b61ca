from __future__ import annotations

import logging
from typing import Any, Dict

from sqlmodel import select

from moms.models.billing import Bill, BillStatus, Payment, PaymentMethod, PaymentStatus
from moms.models.identity import Role
from moms.models.orders import Order, OrderStatus
from moms.models.organization import House

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


def _bill_status(bill: Bill) -> BillStatus:
    if bill.amount_paid <= 0:
        return BillStatus.issued
    if bill.balance <= 0:
        return BillStatus.paid
    return BillStatus.partial


@function("generateBill")
def generate_bill(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    period_start = day_arg(data, "periodStart")
    period_end = day_arg(data, "periodEnd")
    if period_end < period_start:
        raise FunctionError("invalid-argument", "periodEnd is before periodStart")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    ctx.require_agency_actor(house.agency_id)

    already_billed = set()
    for bill in ctx.db.exec(select(Bill).where(Bill.house_id == house.id)).all():
        already_billed.update(bill.order_ids or [])

    orders = [
        order
        for order in ctx.db.exec(
            select(Order)
            .where(
                Order.house_id == house.id,
                Order.day >= period_start,
                Order.day <= period_end,
                Order.status != OrderStatus.cancelled,
            )
            .order_by(Order.day)
        ).all()
        if order.id not in already_billed
    ]
    if not orders:
        raise FunctionError("failed-precondition", "No unbilled orders in this period")

    bill = Bill(
        agency_id=house.agency_id,
        house_id=house.id,
        period_start=period_start,
        period_end=period_end,
        order_ids=[order.id for order in orders],
        total=round(sum(order.total for order in orders), 2),
        due_date=day_arg(data, "dueDate") if data.get("dueDate") else None,
    )
    ctx.db.add(bill)
    ctx.db.commit()
    ctx.db.refresh(bill)
    logger.info("bill generated id=%s house=%s orders=%d total=%.2f", bill.id, house.id, len(orders), bill.total)
    return {"bill": bill.to_dict()}


def _bill_for_house_member(ctx: CallContext, bill_id: str) -> Bill:
    bill = get_or_404(ctx.db, Bill, bill_id, "Bill")
    ctx.require_house_access(get_or_404(ctx.db, House, bill.house_id, "House"))
    return bill


@function("getBill")
def get_bill(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "billId")
    bill = _bill_for_house_member(ctx, data["billId"])
    orders = ctx.db.exec(select(Order).where(Order.id.in_(bill.order_ids or []))).all() if bill.order_ids else []
    return {"bill": bill.to_dict(), "orders": dump_all(orders)}


def _bills(ctx: CallContext, stmt, data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("status"):
        stmt = stmt.where(Bill.status == enum_arg(BillStatus, data, "status"))
    return {"bills": dump_all(ctx.db.exec(stmt.order_by(Bill.created_at.desc())).all())}


@function("getHouseBills")
def get_house_bills(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    ctx.require_house_access(house)
    return _bills(ctx, select(Bill).where(Bill.house_id == house.id), data)


@function("getAgencyBills")
def get_agency_bills(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    ctx.require_agency_actor(data["agencyId"])
    return _bills(ctx, select(Bill).where(Bill.agency_id == data["agencyId"]), data)


@function("getMyBills")
def get_my_bills(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    caller = ctx.require_caller(Role.customer, Role.house_admin)
    if not caller.house_id:
        return {"bills": []}
    return _bills(ctx, select(Bill).where(Bill.house_id == caller.house_id), data)


# -------------------- payments --------------------
@function("recordPayment")
def record_payment(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "billId", "amount")
    bill = _bill_for_house_member(ctx, data["billId"])
    try:
        amount = round(float(data["amount"]), 2)
    except (TypeError, ValueError) as exc:
        raise FunctionError("invalid-argument", "amount must be a number") from exc
    if amount <= 0:
        raise FunctionError("invalid-argument", "amount must be positive")
    if bill.status == BillStatus.paid:
        raise FunctionError("failed-precondition", "Bill is already paid")
    method = enum_arg(PaymentMethod, data, "method") if data.get("method") else PaymentMethod.upi

    payment = Payment(
        bill_id=bill.id,
        user_id=ctx.caller.id,
        amount=amount,
        method=method,
        screenshot_url=data.get("screenshotUrl"),
        reference=data.get("reference"),
    )
    ctx.db.add(payment)
    ctx.db.commit()
    ctx.db.refresh(payment)
    return {"payment": payment.to_dict()}


def _pending_payment(ctx: CallContext, payment_id: str) -> tuple[Payment, Bill]:
    payment = get_or_404(ctx.db, Payment, payment_id, "Payment")
    bill = get_or_404(ctx.db, Bill, payment.bill_id, "Bill")
    ctx.require_agency_actor(bill.agency_id)
    if payment.status != PaymentStatus.pending:
        raise FunctionError("failed-precondition", f"Payment is already {payment.status.value}")
    return payment, bill


@function("confirmPayment")
def confirm_payment(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "paymentId")
    payment, bill = _pending_payment(ctx, data["paymentId"])
    payment.status = PaymentStatus.confirmed
    bill.amount_paid = round(bill.amount_paid + payment.amount, 2)
    bill.status = _bill_status(bill)
    ctx.db.add(payment)
    ctx.db.add(bill)
    ctx.db.commit()
    ctx.db.refresh(payment)
    ctx.db.refresh(bill)
    logger.info("payment confirmed id=%s bill=%s status=%s", payment.id, bill.id, bill.status.value)
    return {"payment": payment.to_dict(), "bill": bill.to_dict()}


@function("rejectPayment")
def reject_payment(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "paymentId")
    payment, _ = _pending_payment(ctx, data["paymentId"])
    payment.status = PaymentStatus.rejected
    payment.reject_reason = data.get("reason")
    ctx.db.add(payment)
    ctx.db.commit()
    ctx.db.refresh(payment)
    return {"payment": payment.to_dict()}


@function("getPayments")
def get_payments(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "billId")
    bill = _bill_for_house_member(ctx, data["billId"])
    payments = ctx.db.exec(select(Payment).where(Payment.bill_id == bill.id).order_by(Payment.created_at)).all()
    return {"payments": dump_all(payments)}


@function("getAgencyPayments")
def get_agency_payments(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    ctx.require_agency_actor(data["agencyId"])
    stmt = select(Payment).join(Bill, Bill.id == Payment.bill_id).where(Bill.agency_id == data["agencyId"])
    if data.get("status"):
        stmt = stmt.where(Payment.status == enum_arg(PaymentStatus, data, "status"))
    payments = ctx.db.exec(stmt.order_by(Payment.created_at.desc())).all()
    return {"payments": dump_all(payments)}
