import pytest

from moms.models import Role

TODAY = "2025-03-10"


@pytest.fixture
async def billed(call, make_account, tenant):
    """One lunch order (2 x Dal Rice) and a bill covering it."""
    customer = make_account("9876500001", Role.customer, house_id=tenant.house_id, agency_id=tenant.agency_id)
    await call(
        "publishDailyMenu",
        {"agencyId": tenant.agency_id, "date": TODAY, "mealType": "lunch", "items": [tenant.items["Dal Rice"]]},
        tenant.owner_id,
    )
    order = await call(
        "placeOrder",
        {
            "houseId": tenant.house_id,
            "agencyId": tenant.agency_id,
            "date": TODAY,
            "mealType": "lunch",
            "items": [{"menuItemId": tenant.items["Dal Rice"], "quantity": 2}],
        },
        customer,
    )
    assert order.status_code == 200, order.text
    bill = await call(
        "generateBill",
        {"houseId": tenant.house_id, "periodStart": "2025-03-01", "periodEnd": "2025-03-31", "dueDate": "2025-04-05"},
        tenant.owner_id,
    )
    assert bill.status_code == 200, bill.text
    tenant.customer = customer
    tenant.order_id = order.json()["data"]["order"]["id"]
    tenant.bill = bill.json()["data"]["bill"]
    return tenant


@pytest.mark.asyncio
async def test_generate_bill_collects_unbilled_orders(call, billed):
    bill = billed.bill
    assert bill["orderIds"] == [billed.order_id]
    assert bill["total"] == 160.0
    assert bill["status"] == "issued"
    assert bill["dueDate"] == "2025-04-05"

    again = await call(
        "generateBill",
        {"houseId": billed.house_id, "periodStart": "2025-03-01", "periodEnd": "2025-03-31"},
        billed.owner_id,
    )
    assert again.status_code == 412

    backwards = await call(
        "generateBill",
        {"houseId": billed.house_id, "periodStart": "2025-03-31", "periodEnd": "2025-03-01"},
        billed.owner_id,
    )
    assert backwards.status_code == 400


@pytest.mark.asyncio
async def test_bill_listings(call, billed):
    mine = (await call("getMyBills", {}, billed.customer)).json()["data"]["bills"]
    assert [b["id"] for b in mine] == [billed.bill["id"]]

    detail = (await call("getBill", {"billId": billed.bill["id"]}, billed.customer)).json()["data"]
    assert [o["id"] for o in detail["orders"]] == [billed.order_id]

    house = (await call("getHouseBills", {"houseId": billed.house_id, "status": "issued"}, billed.customer)).json()
    assert len(house["data"]["bills"]) == 1

    agency = (await call("getAgencyBills", {"agencyId": billed.agency_id, "status": "paid"}, billed.owner_id)).json()
    assert agency["data"]["bills"] == []

    denied = await call("generateBill", {"houseId": billed.house_id, "periodStart": TODAY, "periodEnd": TODAY}, billed.customer)
    assert denied.status_code == 403

    shared = await call("shareBillInChat", {"houseId": billed.house_id, "billId": billed.bill["id"]}, billed.customer)
    assert shared.json()["data"]["message"]["sharedBillId"] == billed.bill["id"]
    shared_order = await call("shareOrderInChat", {"houseId": billed.house_id, "orderId": billed.order_id}, billed.customer)
    assert shared_order.json()["data"]["message"]["sharedOrderId"] == billed.order_id


@pytest.mark.asyncio
async def test_payments_settle_the_bill(call, billed):
    bill_id = billed.bill["id"]

    first = (await call("recordPayment", {"billId": bill_id, "amount": 100, "method": "upi", "screenshotUrl": "/files/payments/x.png"}, billed.customer)).json()["data"]["payment"]
    assert first["status"] == "pending"

    confirmed = (await call("confirmPayment", {"paymentId": first["id"]}, billed.owner_id)).json()["data"]
    assert confirmed["bill"]["status"] == "partial"
    assert confirmed["bill"]["balance"] == 60.0

    twice = await call("confirmPayment", {"paymentId": first["id"]}, billed.owner_id)
    assert twice.status_code == 412

    second = (await call("recordPayment", {"billId": bill_id, "amount": 60, "method": "cash"}, billed.customer)).json()["data"]["payment"]
    settled = (await call("confirmPayment", {"paymentId": second["id"]}, billed.owner_id)).json()["data"]["bill"]
    assert settled["status"] == "paid"
    assert settled["amountPaid"] == 160.0

    closed = await call("recordPayment", {"billId": bill_id, "amount": 5}, billed.customer)
    assert closed.status_code == 412

    payments = (await call("getPayments", {"billId": bill_id}, billed.customer)).json()["data"]["payments"]
    assert [p["status"] for p in payments] == ["confirmed", "confirmed"]


@pytest.mark.asyncio
async def test_rejected_payment_does_not_count(call, billed):
    bill_id = billed.bill["id"]
    payment = (await call("recordPayment", {"billId": bill_id, "amount": 160}, billed.customer)).json()["data"]["payment"]
    assert payment["method"] == "upi"

    rejected = (await call("rejectPayment", {"paymentId": payment["id"], "reason": "screenshot unreadable"}, billed.owner_id)).json()["data"]["payment"]
    assert rejected["status"] == "rejected"
    assert rejected["rejectReason"] == "screenshot unreadable"

    bill = (await call("getBill", {"billId": bill_id}, billed.customer)).json()["data"]["bill"]
    assert bill["amountPaid"] == 0.0
    assert bill["status"] == "issued"

    pending = (await call("getAgencyPayments", {"agencyId": billed.agency_id, "status": "pending"}, billed.owner_id)).json()
    assert pending["data"]["payments"] == []

    invalid = await call("recordPayment", {"billId": bill_id, "amount": -3}, billed.customer)
    assert invalid.status_code == 400
