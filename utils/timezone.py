"""Canonical service calendar.

Every "today"/"yesterday" decision and every stored timestamp goes through
this module so that concurrent requests agree on the calendar day regardless
of the caller's clock.
"""
from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_config_value

DEFAULT_TIMEZONE = "Asia/Kolkata"


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def canonical_zone() -> ZoneInfo:
    return _zone(get_config_value("calendar", "timezone", DEFAULT_TIMEZONE))


def now() -> datetime:
    """Current wall-clock time in the canonical zone, as a naive datetime."""
    return datetime.now(canonical_zone()).replace(tzinfo=None)


def today() -> date:
    return now().date()


def now_iso() -> str:
    return now().isoformat(sep=" ", timespec="seconds")


def today_iso() -> str:
    return today().isoformat()


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def parse_date(value) -> Optional[date]:
    """Accept a date, a datetime or an ISO string (YYYY-MM-DD...). None stays None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
