# clinic/services/scheduling/week_grid.py
"""Calendar grid arithmetic: weeks start on Monday, slots are 15 minutes from 09:00."""
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from clinic.config.settings import get_settings
from clinic.core.exceptions import ValidationException

settings = get_settings()

DAYS_PER_WEEK = 7
MAX_DAY_INDEX = 6
MAX_TIME_INDEX = 47


def week_start_of(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def ensure_week_start(day: date) -> date:
    if not isinstance(day, date):
        raise ValidationException("week_start must be a date", code="invalid_week_start")
    if isinstance(day, datetime):
        day = day.date()
    if day.weekday() != 0:
        raise ValidationException(
            f"week_start must be a Monday, got {day.isoformat()}",
            code="invalid_week_start",
            details={"week_start": day.isoformat()},
        )
    return day


def slot_time(time_index: int) -> time:
    minutes = settings.SLOT_START_HOUR * 60 + time_index * settings.SLOT_MINUTES
    return time(hour=(minutes // 60) % 24, minute=minutes % 60)


def slot_datetime(day: date, time_index: int) -> datetime:
    return datetime.combine(day, slot_time(time_index))


def day_in_week(any_day_of_week: date, day_index: int) -> date:
    return week_start_of(any_day_of_week) + timedelta(days=day_index)


def local_now() -> datetime:
    """Naive wall-clock time at the clinic; stored appointment dates are naive local."""
    return datetime.now(ZoneInfo(settings.CLINIC_TIMEZONE)).replace(tzinfo=None)
