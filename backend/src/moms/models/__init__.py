from .billing import Bill, BillStatus, Payment, PaymentMethod, PaymentStatus
from .chat import ChatMessage
from .identity import Credential, Role, User, UserStatus, new_id
from .menus import MEAL_TYPE_LABELS, DailyMenuMeal, MealType, MenuItem
from .orders import Order, OrderStatus
from .organization import Agency, AgencyStatus, House, HouseMemberPhone

__all__ = [
    "Agency",
    "AgencyStatus",
    "Bill",
    "BillStatus",
    "ChatMessage",
    "Credential",
    "DailyMenuMeal",
    "House",
    "HouseMemberPhone",
    "MEAL_TYPE_LABELS",
    "MealType",
    "MenuItem",
    "Order",
    "OrderStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Role",
    "User",
    "UserStatus",
    "new_id",
]
