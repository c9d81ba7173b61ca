from .cart import Cart, CartLine
from .menu import MealAvailability, MealClosedError, available_meals, is_past_cutoff

__all__ = [
    "Cart",
    "CartLine",
    "MealAvailability",
    "MealClosedError",
    "available_meals",
    "is_past_cutoff",
]
