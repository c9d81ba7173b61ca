from .credentials import AuthUser, CredentialError, CredentialStore
from .directory import HouseDirectory, HousePlacement
from .profiles import PermissionDenied, ProfileStore, Subscription
from .roles import Dashboard, GuardDecision, dashboard_for, guard, guard_route
from .session import NOT_AUTHORIZED, AuthResult, AuthSession, AuthState, Notifier, build_session

__all__ = [
    "AuthResult",
    "AuthSession",
    "AuthState",
    "AuthUser",
    "CredentialError",
    "CredentialStore",
    "Dashboard",
    "GuardDecision",
    "HouseDirectory",
    "HousePlacement",
    "NOT_AUTHORIZED",
    "Notifier",
    "PermissionDenied",
    "ProfileStore",
    "Subscription",
    "build_session",
    "dashboard_for",
    "guard",
    "guard_route",
]
