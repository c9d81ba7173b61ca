"""
Seed a demo tenant: a system admin, one agency with its owner, a house with
pre-authorized phones and a small menu catalogue.

Accounts that cannot come in through house registration (system admin and
agency owner) are only created here.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from sqlmodel import Session, select

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from moms.auth.credentials import hash_password  # noqa: E402
from moms.core.config import get_settings  # noqa: E402
from moms.core.database import engine, init_db  # noqa: E402
from moms.models import Agency, Credential, House, HouseMemberPhone, MenuItem, Role, User  # noqa: E402
from moms.utils.phone import phone_to_identifier  # noqa: E402


@dataclass(frozen=True)
class MenuSeed:
    name: str
    price: float
    category: str


MENU: list[MenuSeed] = [
    MenuSeed("Idli Sambar", 40.0, "breakfast"),
    MenuSeed("Masala Dosa", 60.0, "breakfast"),
    MenuSeed("Poha", 35.0, "breakfast"),
    MenuSeed("Veg Thali", 120.0, "main"),
    MenuSeed("Dal Rice", 80.0, "main"),
    MenuSeed("Chapati (2 pcs)", 20.0, "bread"),
    MenuSeed("Paneer Butter Masala", 140.0, "main"),
    MenuSeed("Samosa", 15.0, "snacks"),
    MenuSeed("Masala Chai", 12.0, "beverages"),
]

CUTOFF_TIMES = {"breakfast": "07:30", "lunch": "11:00", "dinner": "18:30", "snacks": "16:00"}


def ensure_account(session: Session, phone: str, password: str, name: str, role: Role) -> User:
    identifier = phone_to_identifier(phone, get_settings().credential_domain)
    credential = session.exec(select(Credential).where(Credential.identifier == identifier)).first()
    if credential is None:
        credential = Credential(identifier=identifier, password_hash=hash_password(password))
        session.add(credential)
        session.flush()
    user = session.get(User, credential.uid)
    if user is None:
        user = User(id=credential.uid, phone=phone, name=name, role=role)
        session.add(user)
        session.flush()
    return user


def ensure_agency(session: Session, name: str, owner: User) -> Agency:
    agency = session.exec(select(Agency).where(Agency.name == name)).first()
    if agency is None:
        agency = Agency(name=name, owner_id=owner.id, cutoff_times=dict(CUTOFF_TIMES))
        session.add(agency)
        session.flush()
    owner.agency_id = agency.id
    session.add(owner)
    return agency


def ensure_house(session: Session, agency: Agency, name: str, admin_phone: str, members: Sequence[str]) -> House:
    house = session.exec(select(House).where(House.agency_id == agency.id, House.name == name)).first()
    if house is None:
        house = House(agency_id=agency.id, name=name, house_admin_phone=admin_phone)
        house.members = [HouseMemberPhone(phone=phone) for phone in members]
        session.add(house)
        session.flush()
    return house


def load_menu(session: Session, agency: Agency) -> int:
    existing = {item.name for item in session.exec(select(MenuItem).where(MenuItem.agency_id == agency.id))}
    inserted = 0
    for seed in MENU:
        if seed.name in existing:
            continue
        session.add(MenuItem(agency_id=agency.id, name=seed.name, price=seed.price, category=seed.category))
        inserted += 1
    return inserted


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--password", default="demo1234", help="password for the seeded accounts")
    args = parser.parse_args(argv)

    init_db()
    with Session(engine) as session:
        ensure_account(session, "9000000001", args.password, "System Admin", Role.system_admin)
        owner = ensure_account(session, "9000000002", args.password, "Agency Owner", Role.agency_owner)
        agency = ensure_agency(session, "Demo Kitchen", owner)
        house = ensure_house(session, agency, "H1", "9876543210", ["9876500001", "9876500002"])
        items_inserted = load_menu(session, agency)
        session.commit()
        print(f"Seeded agency {agency.id} house {house.id} and {items_inserted} menu items.")


if __name__ == "__main__":
    main()
