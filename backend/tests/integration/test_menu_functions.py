import pytest

from moms.models import Role

TODAY = "2025-03-10"


@pytest.fixture
def customer(make_account, tenant):
    return make_account("9876500001", Role.customer, name="Meera", house_id=tenant.house_id, agency_id=tenant.agency_id)


@pytest.mark.asyncio
async def test_catalogue_crud(call, tenant, customer):
    created = await call("createMenuItem", {"agencyId": tenant.agency_id, "name": "Samosa", "price": "15"}, tenant.owner_id)
    assert created.status_code == 200, created.text
    item = created.json()["data"]["item"]
    assert item["price"] == 15.0

    updated = await call("updateMenuItem", {"itemId": item["id"], "price": 18, "isActive": False}, tenant.owner_id)
    assert updated.json()["data"]["item"]["isActive"] is False

    listed = await call("getMenuItems", {"agencyId": tenant.agency_id}, customer)
    names = [i["name"] for i in listed.json()["data"]["items"]]
    assert "Samosa" not in names
    assert {"Poha", "Dal Rice", "Veg Thali"} <= set(names)

    deleted = await call("deleteMenuItem", {"itemId": item["id"]}, tenant.owner_id)
    assert deleted.json()["data"] == {"deleted": item["id"]}


@pytest.mark.asyncio
async def test_customer_cannot_edit_catalogue(call, tenant, customer):
    resp = await call("createMenuItem", {"agencyId": tenant.agency_id, "name": "X", "price": 1}, customer)
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "error": "Not allowed for your role", "code": "permission-denied"}


@pytest.mark.asyncio
async def test_bad_price_and_missing_fields(call, tenant):
    negative = await call("createMenuItem", {"agencyId": tenant.agency_id, "name": "X", "price": -1}, tenant.owner_id)
    assert negative.status_code == 400
    missing = await call("createMenuItem", {"agencyId": tenant.agency_id}, tenant.owner_id)
    assert missing.status_code == 400
    assert "name" in missing.json()["error"]


@pytest.mark.asyncio
async def test_publish_and_read_daily_menu(call, tenant, customer):
    items = [{"id": tenant.items["Dal Rice"], "available": True}, {"id": tenant.items["Dal Rice"]}, tenant.items["Veg Thali"]]
    resp = await call(
        "publishDailyMenu",
        {"agencyId": tenant.agency_id, "date": TODAY, "mealType": "lunch", "items": items},
        tenant.owner_id,
    )
    assert resp.status_code == 200, resp.text

    menu = (await call("getDailyMenu", {"agencyId": tenant.agency_id, "date": TODAY}, customer)).json()["data"]
    assert menu["date"] == TODAY
    assert menu["cutoffTimes"] == {"lunch": "11:00", "dinner": "18:30"}
    lunch = menu["menu"]["lunch"]
    assert [i["name"] for i in lunch["items"]] == ["Dal Rice", "Veg Thali"]
    assert lunch["locked"] is False
    assert "dinner" not in menu["menu"]


@pytest.mark.asyncio
async def test_publish_rejects_foreign_items(call, tenant):
    resp = await call(
        "publishDailyMenu",
        {"agencyId": tenant.agency_id, "date": TODAY, "mealType": "lunch", "items": [{"id": "nope"}]},
        tenant.owner_id,
    )
    assert resp.status_code == 400
    assert "nope" in resp.json()["error"]


@pytest.mark.asyncio
async def test_locked_meal_cannot_be_republished(call, tenant):
    base = {"agencyId": tenant.agency_id, "date": TODAY, "mealType": "dinner"}
    assert (await call("lockMenu", base, tenant.owner_id)).json()["data"]["locked"] is True

    resp = await call("publishDailyMenu", {**base, "items": [tenant.items["Veg Thali"]]}, tenant.owner_id)
    assert resp.status_code == 412
    assert resp.json()["code"] == "failed-precondition"

    assert (await call("unlockMenu", base, tenant.owner_id)).status_code == 200
    assert (await call("publishDailyMenu", {**base, "items": [tenant.items["Veg Thali"]]}, tenant.owner_id)).status_code == 200


@pytest.mark.asyncio
async def test_cutoff_updates_are_owner_only(call, tenant, make_account):
    helper = make_account("9000000003", Role.agency_helper, agency_id=tenant.agency_id)

    denied = await call("updateCutoffTime", {"agencyId": tenant.agency_id, "mealType": "breakfast", "cutoffTime": "08:00"}, helper)
    assert denied.status_code == 403

    set_resp = await call("updateCutoffTime", {"agencyId": tenant.agency_id, "mealType": "breakfast", "cutoffTime": "8:05"}, tenant.owner_id)
    assert set_resp.json()["data"]["cutoffTimes"]["breakfast"] == "08:05"

    cleared = await call("updateCutoffTime", {"agencyId": tenant.agency_id, "mealType": "lunch", "cutoffTime": None}, tenant.owner_id)
    assert cleared.json()["data"]["cutoffTimes"] == {"breakfast": "08:05", "dinner": "18:30"}

    invalid = await call("updateCutoffTime", {"agencyId": tenant.agency_id, "mealType": "lunch", "cutoffTime": "noon"}, tenant.owner_id)
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_other_agency_cannot_read_menu(call, tenant, make_account):
    stranger = make_account("9000000004", Role.agency_owner, agency_id="another-agency")
    resp = await call("getDailyMenu", {"agencyId": tenant.agency_id, "date": TODAY}, stranger)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_anonymous_and_unknown_calls(call, tenant):
    anonymous = await call("getDailyMenu", {"agencyId": tenant.agency_id, "date": TODAY})
    assert anonymous.status_code == 401
    unknown = await call("noSuchFunction", {}, tenant.owner_id)
    assert unknown.status_code == 404
    bad_enum = await call("lockMenu", {"agencyId": tenant.agency_id, "date": TODAY, "mealType": "brunch"}, tenant.owner_id)
    assert bad_enum.status_code == 400
