"""
Caller side of the named remote operations.

``FunctionsClient.call`` never raises: every outcome is a ``CallResult``.
The transport decides where the function runs: in this process
(``LocalTransport``) or behind ``POST /functions/{name}`` (``HttpTransport``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from moms.core.config import get_settings
from moms.core.database import SessionFactory, session_factory
from moms.models.identity import User
from moms.utils.clock import Clock, local_clock

from .registry import CallContext, FunctionError, dispatch

logger = logging.getLogger(__name__)

Transport = Callable[[str, Dict[str, Any]], Any]


@dataclass
class CallResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None


class LocalTransport:
    """Run functions in-process against the database, as ``caller_id()``."""

    def __init__(
        self,
        caller_id: Callable[[], Optional[str]],
        sessions: SessionFactory = session_factory,
        clock: Clock | None = None,
    ):
        self._caller_id = caller_id
        self._sessions = sessions
        self._clock = clock or local_clock(get_settings().timezone)

    def __call__(self, name: str, data: Dict[str, Any]) -> Any:
        uid = self._caller_id()
        with self._sessions() as db:
            caller = db.get(User, uid) if uid else None
            ctx = CallContext(db=db, caller=caller, now=self._clock())
            try:
                return dispatch(name, ctx, data)
            except Exception:
                db.rollback()
                raise


class HttpTransport:
    def __init__(
        self,
        base_url: str,
        token: Callable[[], Optional[str]] = lambda: None,
        timeout: float = 10.0,
        http: requests.Session | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._http = http or requests.Session()
        self._http.headers.update({"Accept": "application/json", "User-Agent": "MOMS/0.1"})

    def __call__(self, name: str, data: Dict[str, Any]) -> Any:
        headers = {}
        token = self._token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = self._http.post(
                f"{self._base_url}/functions/{name}", json=data, headers=headers, timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise FunctionError("unavailable", f"Request error: {exc}") from exc
        try:
            body = resp.json()
        except ValueError as exc:
            raise FunctionError("internal", f"Invalid JSON from {name} (HTTP {resp.status_code})") from exc
        if not body.get("success"):
            raise FunctionError(body.get("code") or "internal", body.get("error") or "An error occurred")
        return body.get("data")


class FunctionsClient:
    def __init__(self, transport: Transport):
        self._transport = transport

    def call(self, name: str, data: Optional[Mapping[str, Any]] = None) -> CallResult:
        try:
            return CallResult(success=True, data=self._transport(name, dict(data or {})))
        except FunctionError as exc:
            logger.warning("function %s failed code=%s error=%s", name, exc.code, exc.message)
            return CallResult(success=False, error=exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("error calling %s", name)
            return CallResult(success=False, error=str(exc) or "An error occurred", code="internal")


class MenuApi:
    def __init__(self, client: FunctionsClient):
        self._client = client

    def get_items(self, agency_id: str) -> CallResult:
        return self._client.call("getMenuItems", {"agencyId": agency_id})

    def get_daily_menu(self, agency_id: str, day: str) -> CallResult:
        return self._client.call("getDailyMenu", {"agencyId": agency_id, "date": day})

    def publish_daily_menu(self, agency_id: str, day: str, meal_type: str, item_ids) -> CallResult:
        return self._client.call("publishDailyMenu", {
            "agencyId": agency_id,
            "date": day,
            "mealType": meal_type,
            "items": [{"id": item_id, "available": True} for item_id in item_ids],
        })

    def lock_menu(self, agency_id: str, day: str, meal_type: str) -> CallResult:
        return self._client.call("lockMenu", {"agencyId": agency_id, "date": day, "mealType": meal_type})

    def unlock_menu(self, agency_id: str, day: str, meal_type: str) -> CallResult:
        return self._client.call("unlockMenu", {"agencyId": agency_id, "date": day, "mealType": meal_type})

    def update_cutoff(self, agency_id: str, meal_type: str, cutoff_time: Optional[str]) -> CallResult:
        return self._client.call(
            "updateCutoffTime", {"agencyId": agency_id, "mealType": meal_type, "cutoffTime": cutoff_time}
        )


class OrderApi:
    def __init__(self, client: FunctionsClient):
        self._client = client

    def place(self, payload: Mapping[str, Any]) -> CallResult:
        return self._client.call("placeOrder", payload)

    def cancel(self, order_id: str, reason: Optional[str] = None) -> CallResult:
        return self._client.call("cancelOrder", {"orderId": order_id, "reason": reason})

    def get_my_orders(self, **filters: Any) -> CallResult:
        return self._client.call("getMyOrders", filters)
