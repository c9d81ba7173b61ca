from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel


def new_id() -> str:
    return uuid4().hex


class Role(str, Enum):
    system_admin = "system_admin"
    agency_owner = "agency_owner"
    agency_helper = "agency_helper"
    house_admin = "house_admin"
    customer = "customer"


class UserStatus(str, Enum):
    pending = "pending"
    active = "active"
    suspended = "suspended"


class Credential(SQLModel, table=True):
    uid: str = Field(default_factory=new_id, primary_key=True)
    identifier: str = Field(index=True, unique=True)
    password_hash: str
    failed_attempts: int = 0
    locked_until: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class User(SQLModel, table=True):
    id: str = Field(primary_key=True)
    phone: str = Field(index=True)
    name: str = "User"
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Role = Field(default=Role.customer, index=True)
    status: UserStatus = Field(default=UserStatus.active)
    agency_id: Optional[str] = Field(default=None, index=True)
    house_id: Optional[str] = Field(default=None, index=True)
    small_house_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "phone": self.phone,
            "name": self.name,
            "email": self.email,
            "avatarUrl": self.avatar_url,
            "role": self.role.value,
            "status": self.status.value,
            "agencyId": self.agency_id,
            "houseId": self.house_id,
            "smallHouseId": self.small_house_id,
        }
