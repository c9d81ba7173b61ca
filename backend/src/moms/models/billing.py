from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from .identity import new_id


class BillStatus(str, Enum):
    draft = "draft"
    issued = "issued"
    partial = "partial"
    paid = "paid"
    overdue = "overdue"


class PaymentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    rejected = "rejected"


class PaymentMethod(str, Enum):
    cash = "cash"
    upi = "upi"
    bank_transfer = "bank_transfer"
    other = "other"


class Bill(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    agency_id: str = Field(foreign_key="agency.id", index=True)
    house_id: str = Field(foreign_key="house.id", index=True)
    period_start: date
    period_end: date
    order_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total: float = 0.0
    amount_paid: float = 0.0
    status: BillStatus = Field(default=BillStatus.issued, index=True)
    due_date: Optional[date] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    @property
    def balance(self) -> float:
        return round(self.total - self.amount_paid, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agencyId": self.agency_id,
            "houseId": self.house_id,
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            "orderIds": list(self.order_ids or []),
            "total": self.total,
            "amountPaid": self.amount_paid,
            "balance": self.balance,
            "status": self.status.value,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
        }


class Payment(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    bill_id: str = Field(foreign_key="bill.id", index=True)
    user_id: Optional[str] = Field(default=None, index=True)
    amount: float
    method: PaymentMethod = PaymentMethod.upi
    screenshot_url: Optional[str] = None
    reference: Optional[str] = None
    status: PaymentStatus = Field(default=PaymentStatus.pending, index=True)
    reject_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "billId": self.bill_id,
            "userId": self.user_id,
            "amount": self.amount,
            "method": self.method.value,
            "screenshotUrl": self.screenshot_url,
            "reference": self.reference,
            "status": self.status.value,
            "rejectReason": self.reject_reason,
        }
