import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_endpoint(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers["content-type"] == "application/json; charset=utf-8"


@pytest.mark.asyncio
async def test_core_routes_registered(client: AsyncClient):
    resp = await client.get("/__routes")
    assert resp.status_code == 200
    routes = " ".join(resp.json())
    for path in ("/auth/login", "/auth/register", "/auth/me", "/functions/{name}", "/storage/upload", "/files/{path:path}"):
        assert path in routes


@pytest.mark.asyncio
async def test_dbcheck_lists_tables(client: AsyncClient):
    resp = await client.get("/__dbcheck")
    tables = set(resp.json()["tables"])
    assert {"user", "credential", "agency", "house", "dailymenumeal", "order", "bill"} <= tables


@pytest.mark.asyncio
async def test_register_order_checkout_end_to_end(client: AsyncClient, tenant, bearer):
    owner = bearer(tenant.owner_id)
    await client.post(
        "/functions/publishDailyMenu",
        json={"agencyId": tenant.agency_id, "date": "2025-03-10", "mealType": "lunch", "items": [tenant.items["Dal Rice"]]},
        headers=owner,
    )
    await client.post(
        "/functions/publishDailyMenu",
        json={"agencyId": tenant.agency_id, "date": "2025-03-10", "mealType": "dinner", "items": [tenant.items["Veg Thali"]]},
        headers=owner,
    )
    await client.post(
        "/functions/lockMenu",
        json={"agencyId": tenant.agency_id, "date": "2025-03-10", "mealType": "dinner"},
        headers=owner,
    )

    reg = await client.post("/auth/register", json={"phone": "9876500001", "password": "secret123", "name": "Meera"})
    assert reg.status_code == 201
    me = {"Authorization": f"Bearer {reg.json()['token']}"}

    results = {}
    for meal, item in (("lunch", "Dal Rice"), ("dinner", "Veg Thali")):
        resp = await client.post(
            "/functions/placeOrder",
            json={
                "houseId": tenant.house_id,
                "agencyId": tenant.agency_id,
                "date": "2025-03-10",
                "mealType": meal,
                "items": [{"menuItemId": tenant.items[item], "quantity": 1}],
            },
            headers=me,
        )
        results[meal] = resp

    assert results["lunch"].json()["success"] is True
    assert results["dinner"].status_code == 412
    assert results["dinner"].json()["success"] is False
