"""
Dashboard counters for agencies and the system admin.
"""

from __future__ import annotations

from typing import Any, Dict

from sqlmodel import func, select

from moms.models.billing import Bill, BillStatus, Payment, PaymentStatus
from moms.models.identity import Role, User
from moms.models.orders import Order, OrderStatus
from moms.models.organization import Agency, AgencyStatus, House

from .registry import CallContext, function, get_or_404, require_fields

OPEN_BILL_STATUSES = (BillStatus.issued, BillStatus.partial, BillStatus.overdue)


def _count(ctx: CallContext, stmt) -> int:
    return int(ctx.db.exec(stmt).one() or 0)


@function("getAgencyStats")
def get_agency_stats(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    ctx.require_agency_actor(agency.id)

    house_ids = select(House.id).where(House.agency_id == agency.id)
    today_orders = ctx.db.exec(
        select(Order).where(
            Order.agency_id == agency.id,
            Order.day == ctx.today,
            Order.status != OrderStatus.cancelled,
        )
    ).all()
    open_bills = ctx.db.exec(
        select(Bill).where(Bill.agency_id == agency.id, Bill.status.in_(OPEN_BILL_STATUSES))
    ).all()
    pending_payments = _count(
        ctx,
        select(func.count(Payment.id))
        .join(Bill, Bill.id == Payment.bill_id)
        .where(Bill.agency_id == agency.id, Payment.status == PaymentStatus.pending),
    )
    return {
        "agencyId": agency.id,
        "date": ctx.today.isoformat(),
        "activeHouses": _count(ctx, select(func.count(House.id)).where(House.agency_id == agency.id)),
        "totalMembers": _count(ctx, select(func.count(User.id)).where(User.house_id.in_(house_ids))),
        "todayOrders": len(today_orders),
        "todayRevenue": round(sum(order.total for order in today_orders), 2),
        "pendingAmount": round(sum(bill.balance for bill in open_bills), 2),
        "pendingPayments": pending_payments,
    }


@function("adminGetStats")
def admin_get_stats(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    ctx.require_caller(Role.system_admin)
    return {
        "date": ctx.today.isoformat(),
        "totalAgencies": _count(ctx, select(func.count(Agency.id))),
        "activeAgencies": _count(ctx, select(func.count(Agency.id)).where(Agency.status == AgencyStatus.active)),
        "totalHouses": _count(ctx, select(func.count(House.id))),
        "totalUsers": _count(ctx, select(func.count(User.id))),
        # distinct customers who ordered today
        "activeToday": _count(
            ctx,
            select(func.count(func.distinct(Order.user_id))).where(
                Order.day == ctx.today, Order.status != OrderStatus.cancelled
            ),
        ),
    }
