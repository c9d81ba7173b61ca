from __future__ import annotations

# Importing the modules registers their functions.
from . import billing, chat, houses, menu, orders, stats  # noqa: F401
from .client import CallResult, FunctionsClient, HttpTransport, LocalTransport, MenuApi, OrderApi
from .registry import FUNCTIONS, CallContext, FunctionError, dispatch

__all__ = [
    "FUNCTIONS",
    "CallContext",
    "CallResult",
    "FunctionError",
    "FunctionsClient",
    "HttpTransport",
    "LocalTransport",
    "MenuApi",
    "OrderApi",
    "dispatch",
]
