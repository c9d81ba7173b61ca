from types import SimpleNamespace

import pytest

from moms.functions.client import CallResult
from moms.models.menus import MealType
from moms.ordering.board import NotLinkedError, OrderBoard
from moms.ordering.menu import MealClosedError
from moms.ordering.menu_admin import AgencyMenuManager

DAILY_MENU = {
    "agencyId": "a1",
    "date": "2025-03-10",
    "menu": {
        "lunch": {"items": [{"id": "l1", "name": "Dal Rice", "price": 80.0}], "locked": False},
        "dinner": {"items": [{"id": "d1", "name": "Veg Thali", "price": 120.0}], "locked": True},
        "snacks": {"items": [], "locked": False},
    },
    "cutoffTimes": {"lunch": "11:00"},
}


class FakeMenus:
    def __init__(self, payload=DAILY_MENU):
        self.payload = payload
        self.requested = []
        self.published = []

    def get_daily_menu(self, agency_id, day):
        self.requested.append((agency_id, day))
        if self.payload is None:
            return CallResult(success=False, error="Agency not found", code="not-found")
        return CallResult(success=True, data=self.payload)

    def publish_daily_menu(self, agency_id, day, meal_type, item_ids):
        self.published.append((meal_type, list(item_ids)))
        return CallResult(success=True)

    def lock_menu(self, agency_id, day, meal_type):
        return CallResult(success=True, data={"locked": True})


class FakeOrders:
    def __init__(self):
        self.calls = []

    def place(self, payload):
        self.calls.append(payload)
        return CallResult(success=True, data={"order": {"id": "o1"}})


def _session(agency_id="a1", house_id="h1"):
    return SimpleNamespace(user_data=SimpleNamespace(agency_id=agency_id, house_id=house_id))


def test_load_lists_published_meals(clock):
    menus = FakeMenus()
    board = OrderBoard(_session(), menus, FakeOrders(), clock=clock)

    assert board.load()
    assert menus.requested == [("a1", "2025-03-10")]
    assert [m.meal_type for m in board.meals()] == [MealType.lunch, MealType.dinner]


def test_load_failure_sets_error(clock):
    board = OrderBoard(_session(), FakeMenus(payload=None), FakeOrders(), clock=clock)
    assert not board.load()
    assert board.error == "Agency not found"


def test_unlinked_profile_cannot_order(clock):
    board = OrderBoard(_session(agency_id=None, house_id=None), FakeMenus(), FakeOrders(), clock=clock)
    assert not board.load()
    with pytest.raises(NotLinkedError):
        board.checkout()


def test_add_to_cart_respects_cutoff_and_lock(clock):
    board = OrderBoard(_session(), FakeMenus(), FakeOrders(), clock=clock)
    board.load()

    line = board.add_to_cart("l1", "lunch", 2)
    assert line.quantity == 2 and line.price == 80.0

    with pytest.raises(MealClosedError):
        board.add_to_cart("d1", MealType.dinner)
    with pytest.raises(LookupError):
        board.add_to_cart("nope", MealType.lunch)
    with pytest.raises(LookupError):
        board.add_to_cart("b1", MealType.breakfast)

    clock.set(11, 1)
    with pytest.raises(MealClosedError) as excinfo:
        board.add_to_cart("l1", MealType.lunch)
    assert excinfo.value.reason == "past cutoff"


def test_checkout_places_todays_orders(clock):
    orders = FakeOrders()
    board = OrderBoard(_session(), FakeMenus(), orders, clock=clock)
    board.load()
    board.add_to_cart("l1", MealType.lunch)

    result = board.checkout()

    assert result.success
    assert orders.calls[0]["date"] == "2025-03-10"
    assert not board.cart


def test_menu_manager_toggles_membership():
    menus = FakeMenus()
    manager = AgencyMenuManager(menus, "a1")

    manager.toggle_daily_item("2025-03-10", "lunch", "l2")
    manager.toggle_daily_item("2025-03-10", MealType.lunch, "l1")
    manager.remove_from_daily("2025-03-10", "dinner", "d1")

    assert menus.published == [("lunch", ["l1", "l2"]), ("lunch", []), ("dinner", [])]
    assert manager.lock_meal("2025-03-10", "lunch").success


def test_menu_manager_leaves_menu_alone_when_it_cannot_load():
    menus = FakeMenus(payload=None)
    manager = AgencyMenuManager(menus, "a1")

    toggled = manager.toggle_daily_item("2025-03-10", "lunch", "l9")
    removed = manager.remove_from_daily("2025-03-10", "lunch", "l1")

    assert not toggled.success and toggled.code == "not-found"
    assert not removed.success
    assert menus.published == []
