"""
Lookups used to place a new identity: which house pre-authorized this phone,
and which agency a given owner runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlmodel import select

from moms.core.database import SessionFactory, session_factory
from moms.models.identity import Role
from moms.models.organization import Agency, House, HouseMemberPhone


@dataclass(frozen=True)
class HousePlacement:
    house_id: str
    house_name: str
    agency_id: str
    small_house_id: Optional[str]
    role: Role


class HouseDirectory:
    def __init__(self, sessions: SessionFactory = session_factory):
        self._sessions = sessions

    def find_by_admin_phone(self, phone: str) -> Optional[House]:
        with self._sessions() as db:
            return db.exec(select(House).where(House.house_admin_phone == phone)).first()

    def find_by_member_phone(self, phone: str) -> Optional[House]:
        with self._sessions() as db:
            stmt = (
                select(House)
                .join(HouseMemberPhone, HouseMemberPhone.house_id == House.id)
                .where(HouseMemberPhone.phone == phone)
            )
            return db.exec(stmt).first()

    def resolve_placement(self, phone: str) -> Optional[HousePlacement]:
        """Admin phone wins over member phone; ``None`` means not pre-authorized."""
        house = self.find_by_admin_phone(phone)
        role = Role.house_admin
        if house is None:
            house = self.find_by_member_phone(phone)
            role = Role.customer
        if house is None:
            return None
        return HousePlacement(
            house_id=house.id,
            house_name=house.name,
            agency_id=house.agency_id,
            small_house_id=house.small_house_id,
            role=role,
        )

    def find_agency_by_owner(self, owner_id: str) -> Optional[str]:
        with self._sessions() as db:
            agency = db.exec(select(Agency).where(Agency.owner_id == owner_id)).first()
            return agency.id if agency else None
