"""
Named remote operations.

A function is registered under its remote name and called with a
``CallContext`` and a JSON payload. It returns JSON-serialisable data or
raises ``FunctionError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from sqlmodel import Session

from moms.models.identity import Role, User, UserStatus
from moms.models.organization import House
from moms.utils.clock import parse_day

logger = logging.getLogger(__name__)

Handler = Callable[["CallContext", Dict[str, Any]], Any]

FUNCTIONS: Dict[str, Handler] = {}


class FunctionError(Exception):
    HTTP_STATUS = {
        "invalid-argument": 400,
        "unauthenticated": 401,
        "permission-denied": 403,
        "not-found": 404,
        "already-exists": 409,
        "failed-precondition": 412,
        "internal": 500,
        "unavailable": 503,
    }

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def http_status(self) -> int:
        return self.HTTP_STATUS.get(self.code, 500)


@dataclass
class CallContext:
    db: Session
    caller: Optional[User]
    now: datetime

    @property
    def today(self) -> date:
        return self.now.date()

    def require_caller(self, *roles: Role) -> User:
        if self.caller is None:
            raise FunctionError("unauthenticated", "Sign in required")
        if self.caller.status == UserStatus.suspended:
            raise FunctionError("permission-denied", "Account suspended")
        if roles and self.caller.role not in roles and self.caller.role != Role.system_admin:
            raise FunctionError("permission-denied", "Not allowed for your role")
        return self.caller

    def require_agency_actor(self, agency_id: str) -> User:
        caller = self.require_caller(Role.agency_owner, Role.agency_helper)
        if caller.role != Role.system_admin and caller.agency_id != agency_id:
            raise FunctionError("permission-denied", "Not a member of this agency")
        return caller

    def require_house_access(self, house: House) -> User:
        caller = self.require_caller()
        if caller.role == Role.system_admin:
            return caller
        if caller.role in (Role.agency_owner, Role.agency_helper) and caller.agency_id == house.agency_id:
            return caller
        if caller.house_id == house.id:
            return caller
        raise FunctionError("permission-denied", "Not a member of this house")


def function(name: str) -> Callable[[Handler], Handler]:
    def register(handler: Handler) -> Handler:
        if name in FUNCTIONS:
            raise RuntimeError(f"Function {name!r} registered twice")
        FUNCTIONS[name] = handler
        return handler

    return register


def dispatch(name: str, ctx: CallContext, data: Optional[Mapping[str, Any]] = None) -> Any:
    handler = FUNCTIONS.get(name)
    if handler is None:
        raise FunctionError("not-found", f"Unknown function {name!r}")
    return handler(ctx, dict(data or {}))


# -------------------- payload helpers --------------------
def require_fields(data: Mapping[str, Any], *names: str) -> None:
    missing = [n for n in names if data.get(n) in (None, "")]
    if missing:
        raise FunctionError("invalid-argument", f"Missing required field(s): {', '.join(missing)}")


def day_arg(data: Mapping[str, Any], key: str = "date") -> date:
    require_fields(data, key)
    try:
        return parse_day(data[key])
    except (TypeError, ValueError) as exc:
        raise FunctionError("invalid-argument", f"Invalid date for {key!r}") from exc


def enum_arg(enum_cls, data: Mapping[str, Any], key: str):
    require_fields(data, key)
    try:
        return enum_cls(data[key])
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise FunctionError("invalid-argument", f"{key} must be one of: {allowed}") from exc


def get_or_404(db: Session, model, ident: Any, label: str):
    obj = db.get(model, ident) if ident else None
    if obj is None:
        raise FunctionError("not-found", f"{label} not found")
    return obj


def dump_all(rows: Iterable[Any]) -> list:
    return [row.to_dict() for row in rows]
