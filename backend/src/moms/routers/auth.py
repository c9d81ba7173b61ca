from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field

from moms.auth.credentials import CredentialError
from moms.auth.roles import dashboard_for
from moms.auth.session import NOT_AUTHORIZED, AuthResult, AuthSession
from moms.auth.tokens import create_access_token

from .deps import get_auth_session, get_signed_in_session

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    password: str


class RegisterRequest(LoginRequest):
    name: str = Field(..., min_length=1)


def _session_payload(session: AuthSession) -> Dict[str, Any]:
    profile = session.user_data
    return {
        "token": create_access_token(session.current_user.uid),
        "user": profile.to_dict() if profile else None,
        "dashboard": dashboard_for(profile.role).value if profile else None,
    }


def _fail(result: AuthResult, status: int):
    raise HTTPException(status, detail={"error": result.error, "code": result.code})


@router.post("/login")
def login(body: LoginRequest, session: AuthSession = Depends(get_auth_session)):
    result = session.login(body.phone, body.password)
    if not result.success:
        _fail(result, 429 if result.code == CredentialError.TOO_MANY_REQUESTS else 401)
    return _session_payload(session)


@router.post("/register", status_code=201)
def register(body: RegisterRequest, session: AuthSession = Depends(get_auth_session)):
    result = session.register(body.phone, body.password, body.name)
    if not result.success:
        if result.code == NOT_AUTHORIZED:
            _fail(result, 403)
        if result.code == CredentialError.ALREADY_IN_USE:
            _fail(result, 409)
        if result.code == CredentialError.WEAK_PASSWORD:
            _fail(result, 400)
        _fail(result, 500)
    payload = _session_payload(session)
    payload["houseName"] = result.house_name
    return payload


@router.get("/me")
def me(session: AuthSession = Depends(get_signed_in_session)):
    if not session.is_registered:
        raise HTTPException(403, detail={"error": "Registration required", "code": "NOT_REGISTERED"})
    return {
        "state": session.state.value,
        "user": session.user_data.to_dict(),
        "dashboard": dashboard_for(session.role).value,
    }


@router.patch("/me")
def update_me(data: Dict[str, Any] = Body(...), session: AuthSession = Depends(get_signed_in_session)):
    result = session.update_profile(data)
    if not result.success:
        _fail(result, 400 if result.error == "Invalid profile data" else 500)
    return {"user": result.user.to_dict()}


@router.post("/logout", status_code=204)
def logout(session: AuthSession = Depends(get_signed_in_session)):
    # tokens are stateless; this only tears down the server-side session
    session.sign_out()
    return
