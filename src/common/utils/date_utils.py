"""Utility functions for date manipulation."""

from datetime import datetime
from typing import Callable

import pytz

from src.common.config.settings import settings

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime. The default clock for services."""
    return datetime.now(pytz.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Treats naive datetimes as UTC (MySQL returns them naive) and converts aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def parse_iso_datetime(dt_str: str | None) -> datetime | None:
    """Parses an ISO datetime string (with 'Z' or an offset) into an aware UTC datetime."""
    if not dt_str:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(dt_str.replace("Z", "+00:00")))
    except (ValueError, TypeError):
        return None


def to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def format_datetime_for_db(dt: datetime | None) -> str | None:
    """Formats a datetime for a MySQL DATETIME column (UTC, no offset)."""
    if dt is None:
        return None
    return ensure_utc(dt).strftime("%Y-%m-%d %H:%M:%S")


def format_local(dt: datetime | None) -> str:
    """Renders a timestamp in the configured application timezone for logs and reports."""
    if dt is None:
        return "-"
    local_tz = pytz.timezone(settings.APP_TIMEZONE)
    return ensure_utc(dt).astimezone(local_tz).strftime("%Y-%m-%d %H:%M:%S %Z")
