from datetime import date, datetime, timezone
from typing import Optional

import pytz

from fitquest.core.config import settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def challenge_today(tz_name: Optional[str] = None) -> date:
    """Today's date in the challenge timezone. Falls back to UTC on error."""
    try:
        tz = pytz.timezone(tz_name or settings.CHALLENGE_TIMEZONE or "UTC")
        return datetime.now(tz).date()
    except pytz.exceptions.UnknownTimeZoneError:
        return utc_now().date()


def parse_date(value) -> Optional[date]:
    """Accept date, datetime or ISO string (as returned by PostgREST)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
