"""Calendar helpers bound to the configured business time zone."""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


def now() -> datetime:
    """Current UTC timestamp."""
    return datetime.now(timezone.utc)


def today() -> date:
    """Current calendar day in the business time zone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()
