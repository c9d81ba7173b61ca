"""
Credential store: phone-derived login identifiers with bcrypt password hashes.

Plays the part of the identity provider. It knows nothing about profiles,
houses or roles; those live in :mod:`moms.auth.profiles` and
:mod:`moms.auth.directory`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from moms.core.config import Settings, get_settings
from moms.core.database import SessionFactory, session_factory
from moms.models.identity import Credential

logger = logging.getLogger(__name__)


class CredentialError(Exception):
    """Failure reported by the credential store, tagged with a stable code."""

    INVALID_CREDENTIAL = "invalid-credential"
    TOO_MANY_REQUESTS = "too-many-requests"
    ALREADY_IN_USE = "identifier-already-in-use"
    WEAK_PASSWORD = "weak-password"
    NOT_FOUND = "user-not-found"

    def __init__(self, code: str, message: str | None = None):
        super().__init__(message or code)
        self.code = code


@dataclass(frozen=True)
class AuthUser:
    uid: str
    identifier: str


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except ValueError:
        # malformed stored hash
        return False


class CredentialStore:
    def __init__(
        self,
        sessions: SessionFactory = session_factory,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._sessions = sessions
        self._settings = settings or get_settings()
        self._clock = clock

    def create(self, identifier: str, password: str) -> AuthUser:
        if len(password or "") < self._settings.min_password_length:
            raise CredentialError(CredentialError.WEAK_PASSWORD)

        with self._sessions() as db:
            existing = db.exec(select(Credential).where(Credential.identifier == identifier)).first()
            if existing:
                raise CredentialError(CredentialError.ALREADY_IN_USE)
            credential = Credential(identifier=identifier, password_hash=hash_password(password))
            db.add(credential)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise CredentialError(CredentialError.ALREADY_IN_USE) from exc
            logger.info("credential created uid=%s", credential.uid)
            return AuthUser(uid=credential.uid, identifier=identifier)

    def verify(self, identifier: str, password: str) -> AuthUser:
        now = self._clock()
        with self._sessions() as db:
            credential = db.exec(select(Credential).where(Credential.identifier == identifier)).first()
            if credential is None:
                raise CredentialError(CredentialError.INVALID_CREDENTIAL)

            if credential.locked_until and credential.locked_until > now:
                raise CredentialError(CredentialError.TOO_MANY_REQUESTS)

            if not verify_password(password or "", credential.password_hash):
                credential.failed_attempts += 1
                locked = credential.failed_attempts >= self._settings.max_failed_logins
                if locked:
                    credential.locked_until = now + timedelta(minutes=self._settings.lockout_minutes)
                    credential.failed_attempts = 0
                db.add(credential)
                db.commit()
                if locked:
                    logger.warning("credential locked after repeated failures uid=%s", credential.uid)
                    raise CredentialError(CredentialError.TOO_MANY_REQUESTS)
                raise CredentialError(CredentialError.INVALID_CREDENTIAL)

            if credential.failed_attempts or credential.locked_until:
                credential.failed_attempts = 0
                credential.locked_until = None
                db.add(credential)
                db.commit()
            return AuthUser(uid=credential.uid, identifier=credential.identifier)

    def get(self, uid: str) -> Optional[AuthUser]:
        with self._sessions() as db:
            credential = db.get(Credential, uid)
            if credential is None:
                return None
            return AuthUser(uid=credential.uid, identifier=credential.identifier)

    def delete(self, uid: str) -> None:
        with self._sessions() as db:
            credential = db.get(Credential, uid)
            if credential is None:
                raise CredentialError(CredentialError.NOT_FOUND)
            db.delete(credential)
            db.commit()
            logger.info("credential deleted uid=%s", uid)
