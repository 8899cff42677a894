from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from app.core.config import settings


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def local_now() -> datetime:
    """Current time in the clinic's timezone."""
    return datetime.now(local_tz())


def localize(moment: datetime) -> datetime:
    """Attach the clinic's timezone to naive datetimes; aware ones are converted."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=local_tz())
    return moment.astimezone(local_tz())


def combine_local(day: date, at: time) -> datetime:
    return datetime.combine(day, at, tzinfo=local_tz())
