from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from moms.core.config import Settings, get_settings


class TokenError(Exception):
    pass


def create_access_token(uid: str, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": uid,
        "iat": now,
        "exp": now + timedelta(minutes=settings.token_ttl_minutes),
    }
    return jwt.encode(payload, settings.token_secret, algorithm=settings.token_algorithm)


def decode_access_token(token: str, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.token_secret, algorithms=[settings.token_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token expired") from exc
    except jwt.PyJWTError as exc:
        raise TokenError("Invalid token") from exc
    uid = payload.get("sub")
    if not uid:
        raise TokenError("Invalid token")
    return uid
