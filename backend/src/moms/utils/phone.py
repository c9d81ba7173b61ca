from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_phone(phone: str | None) -> str:
    """Strip everything but digits: ``"+91 98765-43210"`` -> ``"919876543210"``."""
    return _NON_DIGITS.sub("", phone or "")


def phone_to_identifier(phone: str | None, domain: str) -> str:
    """Synthetic login identifier for a phone number, e.g. ``9876543210@moms.app``."""
    return f"{normalize_phone(phone)}@{domain}"


def is_valid_phone(phone: str | None) -> bool:
    digits = normalize_phone(phone)
    return 10 <= len(digits) <= 15 and not digits.startswith("0")


def format_phone(phone: str | None) -> str:
    """Display form ``XXX XXX XXXX`` for ten-digit numbers, else unchanged."""
    if not phone:
        return ""
    cleaned = re.sub(r"^\+91", "", phone)
    if len(cleaned) == 10 and cleaned.isdigit():
        return f"{cleaned[:3]} {cleaned[3:6]} {cleaned[6:]}"
    return phone
