from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from .identity import new_id


class MealType(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snacks = "snacks"


MEAL_TYPE_LABELS = {
    MealType.breakfast: "Breakfast",
    MealType.lunch: "Lunch",
    MealType.dinner: "Dinner",
    MealType.snacks: "Snacks",
}


class MenuItem(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    agency_id: str = Field(foreign_key="agency.id", index=True)
    name: str = Field(index=True)
    price: float
    category: Optional[str] = Field(default=None, index=True)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agencyId": self.agency_id,
            "name": self.name,
            "price": self.price,
            "category": self.category,
            "description": self.description,
            "imageUrl": self.image_url,
            "isActive": self.is_active,
        }

    def menu_entry(self) -> Dict[str, Any]:
        """Snapshot stored inside a daily menu list."""
        return {"id": self.id, "name": self.name, "price": self.price, "category": self.category}


class DailyMenuMeal(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("agency_id", "day", "meal_type"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    agency_id: str = Field(foreign_key="agency.id", index=True)
    day: date = Field(index=True)
    meal_type: MealType = Field(index=True)
    # [{id, name, price, category}], each id at most once
    items: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    locked: bool = False
    published_by: Optional[str] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)
