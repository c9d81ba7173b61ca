import pytest

from moms.auth.profiles import PermissionDenied, ProfileNotFound, ProfileStore
from moms.models.identity import Role, User


@pytest.fixture
def store(sessions):
    return ProfileStore(sessions)


def _create(store, uid="u1", name="Asha"):
    return store.create(User(id=uid, phone="9876543210", name=name, role=Role.customer))


def test_subscribe_delivers_current_snapshot_then_updates(store):
    _create(store)
    seen = []

    subscription = store.subscribe("u1", seen.append)
    store.update("u1", {"name": "Asha K"})

    assert [u.name for u in seen] == ["Asha", "Asha K"]
    assert subscription.active
    assert store.subscriber_count("u1") == 1


def test_subscribe_to_missing_profile_delivers_none(store):
    seen = []
    store.subscribe("ghost", seen.append)
    assert seen == [None]


def test_cancel_stops_delivery(store):
    _create(store)
    seen = []
    subscription = store.subscribe("u1", seen.append)

    subscription.cancel()
    subscription.cancel()
    store.update("u1", {"name": "Changed"})

    assert len(seen) == 1
    assert not subscription.active
    assert store.subscriber_count("u1") == 0


def test_reader_mismatch_is_reported_as_permission_denied(store):
    _create(store)
    reader = {"uid": "u1"}
    seen, errors = [], []
    store.subscribe("u1", seen.append, errors.append, reader=lambda: reader["uid"])

    reader["uid"] = None
    store.update("u1", {"name": "After sign-out"})

    assert len(seen) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], PermissionDenied)
    assert errors[0].code == "permission-denied"


def test_listener_failure_goes_to_error_callback(store):
    _create(store)
    errors = []

    def boom(_):
        raise RuntimeError("listener broke")

    store.subscribe("u1", boom, errors.append)
    assert [str(e) for e in errors] == ["listener broke"]


def test_update_rejects_unknown_fields_and_missing_profiles(store):
    _create(store)
    with pytest.raises(ValueError):
        store.update("u1", {"phone": "1111111111"})
    with pytest.raises(ProfileNotFound):
        store.update("ghost", {"name": "x"})
