"""
Authentication session: phone/password sign-in, pre-authorized registration
and a live mirror of the signed-in user's profile.

One ``AuthSession`` is built per client (see ``build_session``) and passed to
whatever needs the caller's identity. Every public operation resolves to an
``AuthResult``; nothing here raises into the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from moms.core.config import Settings, get_settings
from moms.core.database import SessionFactory, session_factory
from moms.models.identity import Role, User, UserStatus
from moms.utils.phone import normalize_phone, phone_to_identifier

from .credentials import AuthUser, CredentialError, CredentialStore
from .directory import HouseDirectory
from .profiles import PermissionDenied, ProfileStore, Subscription

logger = logging.getLogger(__name__)

NOT_AUTHORIZED = "NOT_AUTHORIZED"

LOGIN_MESSAGES = {
    CredentialError.INVALID_CREDENTIAL: "Invalid phone number or password",
    CredentialError.NOT_FOUND: "Invalid phone number or password",
    CredentialError.TOO_MANY_REQUESTS: "Too many failed attempts. Please try again later.",
}

REGISTER_MESSAGES = {
    CredentialError.ALREADY_IN_USE: "This phone number is already registered",
    CredentialError.WEAK_PASSWORD: "Password should be at least 6 characters",
}

NOT_AUTHORIZED_MESSAGE = (
    "This phone number is not linked to any house. Ask your house admin or agency to add it first."
)


class AuthState(str, Enum):
    anonymous = "anonymous"
    credential_pending = "credential_pending"
    authenticated_unregistered = "authenticated_unregistered"
    authenticated_registered = "authenticated_registered"


@dataclass
class AuthResult:
    success: bool
    user: Optional[User] = None
    error: Optional[str] = None
    code: Optional[str] = None
    house_name: Optional[str] = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class Notifier:
    """User-facing messages; the default just logs them."""

    def success(self, message: str) -> None:
        logger.info("notify success: %s", message)

    def error(self, message: str) -> None:
        logger.info("notify error: %s", message)


class AuthSession:
    def __init__(
        self,
        credentials: CredentialStore,
        profiles: ProfileStore,
        directory: HouseDirectory,
        settings: Settings | None = None,
        notifier: Notifier | None = None,
    ):
        self._credentials = credentials
        self._profiles = profiles
        self._directory = directory
        self._settings = settings or get_settings()
        self.notifier = notifier or Notifier()

        self.current_user: Optional[AuthUser] = None
        self.user_data: Optional[User] = None
        self._subscription: Optional[Subscription] = None
        self._pending = False

    # -------------------- state --------------------
    @property
    def state(self) -> AuthState:
        if self._pending:
            return AuthState.credential_pending
        if self.current_user is None:
            return AuthState.anonymous
        if self.user_data is None:
            return AuthState.authenticated_unregistered
        return AuthState.authenticated_registered

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @property
    def is_registered(self) -> bool:
        return self.user_data is not None

    @property
    def role(self) -> Optional[Role]:
        return self.user_data.role if self.user_data else None

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    # -------------------- operations --------------------
    def login(self, phone: str, password: str) -> AuthResult:
        normalized = normalize_phone(phone)
        identifier = phone_to_identifier(normalized, self._settings.credential_domain)
        self._pending = True
        try:
            auth_user = self._credentials.verify(identifier, password)
            if self._profiles.get(auth_user.uid) is None:
                # credential without profile: recreate a minimal one
                logger.warning("recreating missing profile uid=%s", auth_user.uid)
                self._profiles.create(
                    User(
                        id=auth_user.uid,
                        phone=normalized,
                        name="User",
                        role=Role.customer,
                        status=UserStatus.active,
                    )
                )
        except CredentialError as exc:
            message = LOGIN_MESSAGES.get(exc.code, "Login failed")
            logger.info("login refused code=%s", exc.code)
            self.notifier.error(message)
            return AuthResult(success=False, error=message, code=exc.code)
        except Exception:
            logger.exception("login failed")
            self.notifier.error("Login failed")
            return AuthResult(success=False, error="Login failed")
        finally:
            self._pending = False

        self._on_credential_changed(auth_user)
        self.notifier.success("Login successful!")
        return AuthResult(success=True, user=self.user_data)

    def resume(self, uid: str) -> AuthState:
        """Re-attach to an existing credential (persisted sign-in, bearer token)."""
        auth_user = self._credentials.get(uid)
        self._on_credential_changed(auth_user)
        return self.state

    def register(self, phone: str, password: str, name: str) -> AuthResult:
        normalized = normalize_phone(phone)
        self._pending = True
        try:
            return self._register(normalized, password, name)
        finally:
            self._pending = False

    def _register(self, phone: str, password: str, name: str) -> AuthResult:
        try:
            placement = self._directory.resolve_placement(phone)
        except Exception:
            logger.exception("house lookup failed during registration")
            self.notifier.error("Registration failed")
            return AuthResult(success=False, error="Registration failed")

        if placement is None:
            logger.info("registration refused for unknown phone")
            self.notifier.error(NOT_AUTHORIZED_MESSAGE)
            return AuthResult(success=False, error=NOT_AUTHORIZED_MESSAGE, code=NOT_AUTHORIZED)

        identifier = phone_to_identifier(phone, self._settings.credential_domain)
        try:
            auth_user = self._credentials.create(identifier, password)
        except CredentialError as exc:
            message = REGISTER_MESSAGES.get(exc.code, "Registration failed")
            self.notifier.error(message)
            return AuthResult(success=False, error=message, code=exc.code)
        except Exception:
            logger.exception("credential creation failed")
            self.notifier.error("Registration failed")
            return AuthResult(success=False, error="Registration failed")

        profile = User(
            id=auth_user.uid,
            phone=phone,
            name=name,
            role=placement.role,
            status=UserStatus.active,
            house_id=placement.house_id,
            agency_id=placement.agency_id,
            small_house_id=placement.small_house_id,
        )
        try:
            self._profiles.create(profile)
        except Exception:
            logger.exception("profile write failed, removing credential uid=%s", auth_user.uid)
            self._discard_credential(auth_user.uid)
            self.notifier.error("Registration failed")
            return AuthResult(success=False, error="Registration failed")

        self._on_credential_changed(auth_user)
        self.notifier.success("Registration successful! You've been linked to your house.")
        return AuthResult(success=True, user=self.user_data, house_name=placement.house_name)

    def _discard_credential(self, uid: str) -> None:
        try:
            self._credentials.delete(uid)
        except Exception:
            logger.exception("could not delete orphaned credential uid=%s", uid)

    def sign_out(self) -> AuthResult:
        # drop the listener before the credential so it never reads as a stranger
        self._cancel_subscription()
        self.current_user = None
        self.user_data = None
        self.notifier.success("Signed out successfully")
        return AuthResult(success=True)

    def close(self) -> None:
        """Release the profile listener without signing out."""
        self._cancel_subscription()

    def update_profile(self, data: Mapping[str, Any]) -> AuthResult:
        if self.current_user is None:
            self.notifier.error("User not authenticated")
            return AuthResult(success=False, error="User not authenticated")

        try:
            changes = ProfileUpdate.model_validate(dict(data)).model_dump(exclude_unset=True)
        except ValidationError as exc:
            message = "Invalid profile data"
            logger.info("profile update rejected: %s", exc.errors())
            self.notifier.error(message)
            return AuthResult(success=False, error=message)

        try:
            updated = self._profiles.update(self.current_user.uid, changes)
        except Exception as exc:
            logger.exception("profile update failed uid=%s", self.current_user.uid)
            message = str(exc) or "Failed to update profile"
            self.notifier.error(message)
            return AuthResult(success=False, error=message)

        self.user_data = updated
        self.notifier.success("Profile updated successfully")
        return AuthResult(success=True, user=updated)

    def refresh_user_data(self) -> Optional[User]:
        if self.current_user is None:
            return None
        try:
            profile = self._profiles.get(self.current_user.uid)
        except Exception:
            logger.exception("refreshing profile failed uid=%s", self.current_user.uid)
            return self.user_data
        if profile is not None:
            self.user_data = profile
        return self.user_data

    # -------------------- profile mirror --------------------
    def _on_credential_changed(self, auth_user: Optional[AuthUser]) -> None:
        self._cancel_subscription()
        self.current_user = auth_user
        self.user_data = None
        if auth_user is None:
            return
        self._subscription = self._profiles.subscribe(
            auth_user.uid,
            self._on_profile,
            self._on_profile_error,
            reader=self._reader_uid,
        )

    def _cancel_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()

    def _reader_uid(self) -> Optional[str]:
        return self.current_user.uid if self.current_user else None

    def _on_profile(self, profile: Optional[User]) -> None:
        if profile is not None and profile.role == Role.agency_owner and not profile.agency_id:
            try:
                agency_id = self._directory.find_agency_by_owner(profile.id)
                if agency_id:
                    profile.agency_id = agency_id
                    self._profiles.update(profile.id, {"agency_id": agency_id})
            except Exception:
                logger.exception("agency lookup failed uid=%s", profile.id)
        self.user_data = profile

    def _on_profile_error(self, exc: Exception) -> None:
        if isinstance(exc, PermissionDenied):
            logger.debug("profile listener denied during sign-out: %s", exc)
        else:
            logger.error("error fetching user data: %s", exc)
        self.user_data = None


def build_session(
    sessions: SessionFactory = session_factory,
    settings: Settings | None = None,
    notifier: Notifier | None = None,
    profiles: ProfileStore | None = None,
) -> AuthSession:
    """Wire a session; pass a shared ``profiles`` store so listeners see each other's writes."""
    settings = settings or get_settings()
    return AuthSession(
        credentials=CredentialStore(sessions, settings),
        profiles=profiles or ProfileStore(sessions),
        directory=HouseDirectory(sessions),
        settings=settings,
        notifier=notifier,
    )
