"""Resource-local time. Homestay calendars run in one fixed timezone."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from stayengine.config import settings


def resource_tz() -> ZoneInfo:
    return ZoneInfo(settings.resource_timezone)


def resource_now() -> datetime:
    return datetime.now(resource_tz())


def resource_today() -> date:
    return resource_now().date()


def check_in_moment(check_in: date) -> datetime:
    """Aware datetime at which a stay starting on ``check_in`` begins."""
    return datetime.combine(check_in, time(hour=settings.check_in_hour), tzinfo=resource_tz())
