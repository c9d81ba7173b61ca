import pytest
from sqlmodel import select

from moms.models import Credential


@pytest.mark.asyncio
async def test_register_house_admin_and_fetch_profile(client, tenant):
    resp = await client.post(
        "/auth/register",
        json={"phone": "(987) 654-3210", "password": "secret123", "name": "Ravi"},
    )
    assert resp.status_code == 201, resp.text
    payload = resp.json()
    assert payload["houseName"] == "H1"
    assert payload["dashboard"] == "house_admin"
    assert payload["user"]["role"] == "house_admin"
    assert payload["user"]["houseId"] == tenant.house_id

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {payload['token']}"})
    assert me.status_code == 200
    assert me.json()["user"]["name"] == "Ravi"
    assert me.json()["state"] == "authenticated_registered"


@pytest.mark.asyncio
async def test_register_unknown_phone_is_refused(client, tenant, db_session):
    resp = await client.post(
        "/auth/register",
        json={"phone": "1111111111", "password": "secret123", "name": "Stranger"},
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "NOT_AUTHORIZED"
    identifiers = [c.identifier for c in db_session.exec(select(Credential))]
    assert not any(i.startswith("1111111111@") for i in identifiers)


@pytest.mark.asyncio
async def test_register_twice_conflicts(client, tenant):
    body = {"phone": "9876500001", "password": "secret123", "name": "Meera"}
    assert (await client.post("/auth/register", json=body)).status_code == 201
    again = await client.post("/auth/register", json=body)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "identifier-already-in-use"


@pytest.mark.asyncio
async def test_login_flow(client, tenant):
    bad = await client.post("/auth/login", json={"phone": "9000000002", "password": "wrong-one"})
    assert bad.status_code == 401
    assert bad.json()["detail"]["error"] == "Invalid phone number or password"

    ok = await client.post("/auth/login", json={"phone": "9000000002", "password": "secret123"})
    assert ok.status_code == 200, ok.text
    assert ok.json()["dashboard"] == "agency"
    assert ok.json()["user"]["agencyId"] == tenant.agency_id


@pytest.mark.asyncio
async def test_update_profile_and_logout(client, tenant, bearer):
    headers = bearer(tenant.owner_id)

    patched = await client.patch("/auth/me", json={"name": "Owner Two"}, headers=headers)
    assert patched.status_code == 200
    assert patched.json()["user"]["name"] == "Owner Two"

    rejected = await client.patch("/auth/me", json={"role": "system_admin"}, headers=headers)
    assert rejected.status_code == 400

    out = await client.post("/auth/logout", headers=headers)
    assert out.status_code == 204


@pytest.mark.asyncio
async def test_me_requires_valid_token(client):
    assert (await client.get("/auth/me")).status_code == 401
    garbage = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert garbage.status_code == 401
    wrong_scheme = await client.get("/auth/me", headers={"Authorization": "Basic abc"})
    assert wrong_scheme.status_code == 401
