"""
Timezone Utilities - Centralized timezone handling
"""
from datetime import date, datetime
from typing import Optional, Union
import pytz

from habitcoach.core.config import settings


# Application timezone, used for calendar-day arithmetic
APP_TZ = pytz.timezone(settings.APP_TIMEZONE)


def get_app_tz():
    """
    Get the application timezone object

    Returns:
        pytz timezone configured by APP_TIMEZONE
    """
    return APP_TZ


def utc_now() -> datetime:
    """
    Get current datetime in UTC

    Returns:
        Timezone-aware datetime object in UTC
    """
    return datetime.now(pytz.UTC)


def get_app_today_date() -> date:
    """
    Get today's date in the application timezone
    """
    return utc_now().astimezone(APP_TZ).date()


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a Postgres/ISO timestamp into an aware datetime

    Args:
        value: ISO-8601 string (Supabase returns these), datetime, or None

    Returns:
        Aware datetime in UTC, or None when the value is missing or unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value).astimezone(pytz.UTC)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # Postgres may return fractional seconds with more than 6 digits
        if "." not in text:
            return None
        head, _, tail = text.partition(".")
        digits = "".join(ch for ch in tail if ch.isdigit())
        offset = tail[len(digits):]
        try:
            parsed = datetime.fromisoformat(f"{head}.{digits[:6]}{offset}")
        except ValueError:
            return None
    return ensure_aware(parsed).astimezone(pytz.UTC)


def to_app_date(value: datetime) -> date:
    """Calendar date of an instant in the application timezone"""
    return ensure_aware(value).astimezone(APP_TZ).date()


def to_iso(value: datetime) -> str:
    """Serialize an instant for Supabase"""
    return ensure_aware(value).astimezone(pytz.UTC).isoformat()
