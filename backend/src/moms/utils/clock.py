from __future__ import annotations

from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def local_clock(tz_name: str) -> Clock:
    zone = ZoneInfo(tz_name)
    return lambda: datetime.now(zone)


def parse_day(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)
