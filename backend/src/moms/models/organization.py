from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from .identity import new_id


class AgencyStatus(str, Enum):
    pending = "pending"
    active = "active"
    suspended = "suspended"


class Agency(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    owner_id: Optional[str] = Field(default=None, index=True)
    status: AgencyStatus = Field(default=AgencyStatus.active)
    # meal type -> "HH:MM"
    cutoff_times: Dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ownerId": self.owner_id,
            "status": self.status.value,
            "cutoffTimes": dict(self.cutoff_times or {}),
        }


class House(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    agency_id: str = Field(foreign_key="agency.id", index=True)
    name: str
    house_admin_phone: Optional[str] = Field(default=None, index=True)
    small_house_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    members: List["HouseMemberPhone"] = Relationship(
        back_populates="house",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    @property
    def member_phones(self) -> List[str]:
        return [m.phone for m in self.members]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agencyId": self.agency_id,
            "name": self.name,
            "houseAdminPhone": self.house_admin_phone,
            "smallHouseId": self.small_house_id,
            "memberPhones": self.member_phones,
        }


class HouseMemberPhone(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    house_id: str = Field(foreign_key="house.id", index=True)
    phone: str = Field(index=True)

    house: House = Relationship(back_populates="members")
