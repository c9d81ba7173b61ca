from contextlib import suppress
from datetime import datetime
from types import SimpleNamespace
from typing import AsyncIterator, Iterator
from zoneinfo import ZoneInfo

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlmodel import Session, SQLModel, create_engine

from moms.auth.credentials import hash_password
from moms.auth.tokens import create_access_token
from moms.core import database as core_database
from moms.core.config import Settings, get_settings
from moms.core.database import get_session
from moms.main import create_app
from moms.models import Agency, Credential, House, HouseMemberPhone, MenuItem, Role, User
from moms.routers.deps import get_clock
from moms.routers.storage import get_blob_store
from moms.storage import BlobStore
from moms.utils.phone import phone_to_identifier

IST = ZoneInfo("Asia/Kolkata")

PASSWORD = "secret123"
HOUSE_ADMIN_PHONE = "9876543210"
MEMBER_PHONE = "9876500001"
OWNER_PHONE = "9000000002"


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, hour: int, minute: int = 0) -> None:
        self.now = self.now.replace(hour=hour, minute=minute, second=0, microsecond=0)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock() -> FrozenClock:
    # 09:00 local on a Monday: before every seeded cutoff
    return FrozenClock(datetime(2025, 3, 10, 9, 0, tzinfo=IST))


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    from moms import models  # noqa: F401
    SQLModel.metadata.create_all(engine)
    try:
        yield engine
    finally:
        with suppress(Exception):
            engine.dispose()


@pytest.fixture
def sessions(engine):
    return lambda: Session(engine)


@pytest.fixture(scope="function")
def test_app(monkeypatch, engine, tmp_path, clock) -> Iterator[FastAPI]:
    def _override_get_session():
        with Session(engine) as session:
            yield session

    # patch global engine/init_db so startup hooks and session factories use the test database
    monkeypatch.setattr(core_database, "engine", engine, raising=False)

    def _init_db():
        SQLModel.metadata.create_all(engine)

    monkeypatch.setattr(core_database, "init_db", _init_db, raising=False)

    store = BlobStore(Settings(upload_dir=str(tmp_path / "uploads")))

    app = create_app()
    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_blob_store] = lambda: store

    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def db_session(test_app: FastAPI):
    override = test_app.dependency_overrides[get_session]
    generator = override()
    session = next(generator)
    try:
        yield session
    finally:
        with suppress(StopIteration):
            next(generator)


# -------------------- seed data --------------------
@pytest.fixture
def make_account(engine):
    """Credential plus profile in one go, for roles that never self-register."""

    def _make(phone: str, role: Role, name: str = "User", password: str = PASSWORD, **fields) -> str:
        identifier = phone_to_identifier(phone, get_settings().credential_domain)
        with Session(engine) as session:
            credential = Credential(identifier=identifier, password_hash=hash_password(password))
            session.add(credential)
            session.flush()
            session.add(User(id=credential.uid, phone=phone, name=name, role=role, **fields))
            session.commit()
            return credential.uid

    return _make


@pytest.fixture
def tenant(engine, make_account):
    """Agency ``A1`` with owner, house ``H1`` and a three-item catalogue."""
    with Session(engine) as session:
        agency = Agency(name="A1", cutoff_times={"lunch": "11:00", "dinner": "18:30"})
        session.add(agency)
        session.flush()
        house = House(agency_id=agency.id, name="H1", house_admin_phone=HOUSE_ADMIN_PHONE)
        house.members = [HouseMemberPhone(phone=MEMBER_PHONE)]
        items = [
            MenuItem(agency_id=agency.id, name="Poha", price=35.0, category="breakfast"),
            MenuItem(agency_id=agency.id, name="Dal Rice", price=80.0, category="main"),
            MenuItem(agency_id=agency.id, name="Veg Thali", price=120.0, category="main"),
        ]
        session.add(house)
        session.add_all(items)
        session.commit()
        agency_id, house_id = agency.id, house.id
        item_ids = {item.name: item.id for item in items}

    owner_id = make_account(OWNER_PHONE, Role.agency_owner, name="Owner", agency_id=agency_id)
    with Session(engine) as session:
        agency = session.get(Agency, agency_id)
        agency.owner_id = owner_id
        session.add(agency)
        session.commit()

    return SimpleNamespace(agency_id=agency_id, house_id=house_id, owner_id=owner_id, items=item_ids)


@pytest.fixture
def bearer():
    def _headers(uid: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(uid)}"}

    return _headers


@pytest.fixture
def call(client, bearer):
    """POST a named function as ``uid`` (anonymous when ``None``)."""

    async def _call(name: str, data: dict | None = None, uid: str | None = None):
        headers = bearer(uid) if uid else {}
        return await client.post(f"/functions/{name}", json=data or {}, headers=headers)

    return _call
