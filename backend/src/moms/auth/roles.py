"""
Role-driven dispatch: which dashboard a role lands on and whether a session
may enter a role-gated route.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable

from moms.models.identity import Role

if TYPE_CHECKING:
    from .session import AuthSession


class Dashboard(str, Enum):
    system_admin = "system_admin"
    agency = "agency"
    house_admin = "house_admin"
    customer = "customer"


DASHBOARDS: Dict[Role, Dashboard] = {
    Role.system_admin: Dashboard.system_admin,
    Role.agency_owner: Dashboard.agency,
    Role.agency_helper: Dashboard.agency,
    Role.house_admin: Dashboard.house_admin,
    Role.customer: Dashboard.customer,
}

_unmapped = set(Role) - set(DASHBOARDS)
if _unmapped:
    raise RuntimeError(f"Roles without a dashboard: {sorted(r.value for r in _unmapped)}")


def dashboard_for(role: Role | str) -> Dashboard:
    """Raises ``ValueError`` for a role name outside :class:`Role`."""
    return DASHBOARDS[Role(role)]


HOUSE_ROLES: FrozenSet[Role] = frozenset({Role.customer, Role.house_admin})
AGENCY_ROLES: FrozenSet[Role] = frozenset({Role.agency_owner, Role.agency_helper})

ROUTE_ROLES: Dict[str, FrozenSet[Role]] = {
    "/dashboard": frozenset(),
    "/profile": frozenset(),
    "/order": HOUSE_ROLES,
    "/my-orders": HOUSE_ROLES,
    "/my-bills": HOUSE_ROLES,
    "/chat": HOUSE_ROLES,
    "/house": frozenset({Role.house_admin}),
    "/house/members": frozenset({Role.house_admin}),
    "/house/orders": frozenset({Role.house_admin}),
    "/house/bills": frozenset({Role.house_admin}),
    "/agency": AGENCY_ROLES,
    "/agency/houses": AGENCY_ROLES,
    "/agency/menu": AGENCY_ROLES,
    "/agency/orders": AGENCY_ROLES,
    "/agency/bills": AGENCY_ROLES,
    "/agency/payments": AGENCY_ROLES,
    "/agency/settings": frozenset({Role.agency_owner}),
    "/admin": frozenset({Role.system_admin}),
    "/admin/agencies": frozenset({Role.system_admin}),
}


class GuardDecision(str, Enum):
    allow = "allow"
    login = "login"
    register = "register"
    dashboard = "dashboard"


def guard(session: "AuthSession", required_roles: Iterable[Role] = ()) -> GuardDecision:
    if not session.is_authenticated:
        return GuardDecision.login
    if not session.is_registered:
        return GuardDecision.register
    required = frozenset(required_roles)
    if required and session.role not in required:
        return GuardDecision.dashboard
    return GuardDecision.allow


def guard_route(session: "AuthSession", path: str) -> GuardDecision:
    """Unknown paths are treated as requiring nothing beyond registration."""
    return guard(session, ROUTE_ROLES.get(path, frozenset()))
