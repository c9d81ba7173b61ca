"""
Profile documents plus a live subscription hub.

Every write to a profile is pushed to the subscribers of that profile.
A subscription is an explicit handle: whoever holds it cancels it.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlmodel import Session

from moms.core.database import SessionFactory, session_factory
from moms.models.identity import User

logger = logging.getLogger(__name__)

ProfileListener = Callable[[Optional[User]], None]
ErrorListener = Callable[[Exception], None]

WRITABLE_FIELDS = frozenset(
    {"name", "email", "avatar_url", "role", "status", "agency_id", "house_id", "small_house_id"}
)


class ProfileNotFound(LookupError):
    pass


class PermissionDenied(Exception):
    code = "permission-denied"


def _detach(db: Session, user: User) -> User:
    db.refresh(user)
    db.expunge(user)
    return user


class Subscription:
    """Handle for one live profile listener."""

    def __init__(
        self,
        store: "ProfileStore",
        user_id: str,
        on_next: ProfileListener,
        on_error: Optional[ErrorListener],
        reader: Callable[[], Optional[str]],
    ):
        self._store = store
        self.user_id = user_id
        self._on_next = on_next
        self._on_error = on_error
        self._reader = reader
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._store._remove(self)

    def _deliver(self, snapshot: Optional[User]) -> None:
        if not self._active:
            return
        try:
            if self._reader() != self.user_id:
                raise PermissionDenied(f"reader may not access profile {self.user_id}")
            self._on_next(snapshot)
        except Exception as exc:
            self._fail(exc)

    def _fail(self, exc: Exception) -> None:
        if self._on_error is None:
            logger.error("profile listener failed user_id=%s error=%s", self.user_id, exc)
        else:
            self._on_error(exc)


class ProfileStore:
    def __init__(self, sessions: SessionFactory = session_factory):
        self._sessions = sessions
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = {}

    # -------------------- documents --------------------
    def get(self, user_id: str) -> Optional[User]:
        with self._sessions() as db:
            user = db.get(User, user_id)
            if user is None:
                return None
            db.expunge(user)
            return user

    def create(self, user: User) -> User:
        with self._sessions() as db:
            db.add(user)
            db.commit()
            created = _detach(db, user)
        self._publish(created.id)
        return created

    def update(self, user_id: str, fields: Mapping[str, Any]) -> User:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        with self._sessions() as db:
            user = db.get(User, user_id)
            if user is None:
                raise ProfileNotFound(user_id)
            for key, value in fields.items():
                setattr(user, key, value)
            user.updated_at = datetime.utcnow()
            db.add(user)
            db.commit()
            updated = _detach(db, user)
        self._publish(user_id)
        return updated

    # -------------------- subscriptions --------------------
    def subscribe(
        self,
        user_id: str,
        on_next: ProfileListener,
        on_error: Optional[ErrorListener] = None,
        reader: Optional[Callable[[], Optional[str]]] = None,
    ) -> Subscription:
        """Listen to a profile; the current snapshot is delivered right away."""
        subscription = Subscription(self, user_id, on_next, on_error, reader or (lambda: user_id))
        with self._lock:
            self._subscriptions.setdefault(user_id, []).append(subscription)
        try:
            snapshot = self.get(user_id)
        except Exception as exc:
            subscription._fail(exc)
        else:
            subscription._deliver(snapshot)
        return subscription

    def subscriber_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(user_id, []))

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._subscriptions.get(subscription.user_id, [])
            if subscription in listeners:
                listeners.remove(subscription)
            if not listeners:
                self._subscriptions.pop(subscription.user_id, None)

    def _publish(self, user_id: str) -> None:
        # deliver outside the lock: listeners may write back to the store
        with self._lock:
            listeners = list(self._subscriptions.get(user_id, []))
        if not listeners:
            return
        try:
            snapshot = self.get(user_id)
        except Exception as exc:
            for subscription in listeners:
                subscription._fail(exc)
            return
        for subscription in listeners:
            subscription._deliver(snapshot)
