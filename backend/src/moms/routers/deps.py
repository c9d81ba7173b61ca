from __future__ import annotations

from typing import Iterator, Optional

from fastapi import Depends, Header, HTTPException, Request

from moms.auth.profiles import ProfileStore
from moms.auth.session import AuthSession, build_session
from moms.auth.tokens import TokenError, decode_access_token
from moms.core.config import get_settings
from moms.utils.clock import Clock, local_clock


def get_clock() -> Clock:
    return local_clock(get_settings().timezone)


def get_profile_store(request: Request) -> ProfileStore:
    store = getattr(request.app.state, "profiles", None)
    if store is None:
        store = ProfileStore()
        request.app.state.profiles = store
    return store


def get_auth_session(profiles: ProfileStore = Depends(get_profile_store)) -> Iterator[AuthSession]:
    session = build_session(profiles=profiles)
    try:
        yield session
    finally:
        session.close()


def optional_uid(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(401, "Invalid authorization header")
    try:
        return decode_access_token(token)
    except TokenError as exc:
        raise HTTPException(401, str(exc))


def require_uid(uid: Optional[str] = Depends(optional_uid)) -> str:
    if uid is None:
        raise HTTPException(401, "Not authenticated")
    return uid


def get_signed_in_session(
    uid: str = Depends(require_uid),
    session: AuthSession = Depends(get_auth_session),
) -> AuthSession:
    """Session resumed from the bearer token; 401 if the credential is gone."""
    session.resume(uid)
    if not session.is_authenticated:
        raise HTTPException(401, "Not authenticated")
    return session
