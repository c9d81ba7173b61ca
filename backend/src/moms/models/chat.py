from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import Field, SQLModel

from .identity import new_id


class ChatMessage(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    house_id: str = Field(foreign_key="house.id", index=True)
    sender_id: str = Field(index=True)
    sender_name: str
    text: Optional[str] = None
    image_url: Optional[str] = None
    shared_order_id: Optional[str] = None
    shared_bill_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "houseId": self.house_id,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "text": self.text,
            "imageUrl": self.image_url,
            "sharedOrderId": self.shared_order_id,
            "sharedBillId": self.shared_bill_id,
            "createdAt": self.created_at.isoformat(),
        }
