from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from .identity import new_id
from .menus import MealType


class OrderStatus(str, Enum):
    placed = "placed"
    confirmed = "confirmed"
    preparing = "preparing"
    ready = "ready"
    delivered = "delivered"
    cancelled = "cancelled"


class Order(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    house_id: str = Field(foreign_key="house.id", index=True)
    agency_id: str = Field(foreign_key="agency.id", index=True)
    user_id: Optional[str] = Field(default=None, index=True)
    day: date = Field(index=True)
    meal_type: MealType = Field(index=True)
    # [{menuItemId, name, quantity, priceAtOrder}]
    items: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total: float = 0.0
    status: OrderStatus = Field(default=OrderStatus.placed, index=True)
    cancel_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "houseId": self.house_id,
            "agencyId": self.agency_id,
            "userId": self.user_id,
            "date": self.day.isoformat(),
            "mealType": self.meal_type.value,
            "items": list(self.items or []),
            "total": self.total,
            "status": self.status.value,
            "cancelReason": self.cancel_reason,
        }
