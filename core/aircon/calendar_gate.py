"""
Calendar Gating

Pure date/time helpers deciding whether a tick may act at all, and the
week-of-month bucket used to key date overrides.

Every function here takes an already timezone-adjusted datetime. None of them
read the process clock.
"""

import logging
from collections.abc import Container, Iterable
from datetime import date, datetime, timedelta
from typing import Optional

import holidays

logger = logging.getLogger(__name__)

DEFAULT_WEEKEND_DAYS = (5, 6)  # Saturday, Sunday (date.weekday())
DEFAULT_START_HOUR = 7


def week_of_month(day: date) -> int:
    """Return the 1-based, Sunday-aligned week of the month containing ``day``.

    The first day of every month is always week 1; later weeks start on Sunday.
    """
    first = day.replace(day=1)
    offset = (first.weekday() + 1) % 7  # Sunday = 0
    return 1 + (day.day - 1 + offset) // 7


def format_date(day: date) -> str:
    """Canonical date key, ``YYYY-MM-DD``."""
    return day.strftime("%Y-%m-%d")


def format_year_month(day: date) -> str:
    """Month part of a date override key, ``YYYY-MM``."""
    return day.strftime("%Y-%m")


def week_buckets(start: date, days: int) -> list[tuple[str, int]]:
    """Distinct ``(YYYY-MM, week_of_month)`` buckets covering ``days`` days from ``start``.

    A week that spans a month boundary yields one bucket per month.
    """
    buckets: list[tuple[str, int]] = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        bucket = (format_year_month(day), week_of_month(day))
        if bucket not in buckets:
            buckets.append(bucket)
    return buckets


def is_weekend(weekday: int, weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS) -> bool:
    """Check a ``date.weekday()`` number against the weekend definition."""
    return weekday in tuple(weekend_days)


def is_banned_hour(hour: int, start_hour: int = DEFAULT_START_HOUR) -> bool:
    """Hours before the start of the day are never acted on."""
    return 0 <= hour < start_hour


class CalendarGate:
    """Decides whether a local timestamp is eligible for a tick."""

    def __init__(
        self,
        holiday_calendar: Optional[Container[date]] = None,
        weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS,
        start_hour: int = DEFAULT_START_HOUR,
    ):
        """Initialize the gate.

        Args:
            holiday_calendar: Anything supporting ``date in calendar``
                (e.g. ``holidays.country_holidays("JP")``). None disables holidays.
            weekend_days: Weekday numbers treated as weekend (Monday = 0)
            start_hour: First local hour of the day that may actuate
        """
        self.holiday_calendar = holiday_calendar
        self.weekend_days = tuple(weekend_days)
        self.start_hour = start_hour

    @classmethod
    def for_country(
        cls,
        country: str,
        weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS,
        start_hour: int = DEFAULT_START_HOUR,
    ) -> "CalendarGate":
        """Build a gate using the public holidays of ``country`` (ISO 3166 code)."""
        return cls(
            holiday_calendar=holidays.country_holidays(country),
            weekend_days=weekend_days,
            start_hour=start_hour,
        )

    def is_holiday(self, now_local: datetime) -> bool:
        if self.holiday_calendar is None:
            return False
        return now_local.date() in self.holiday_calendar

    def is_eligible(self, now_local: datetime) -> bool:
        """Return False on weekends, public holidays and banned hours."""
        if is_weekend(now_local.weekday(), self.weekend_days):
            logger.debug(f"{now_local:%Y-%m-%d} is a weekend day")
            return False
        if self.is_holiday(now_local):
            logger.debug(f"{now_local:%Y-%m-%d} is a public holiday")
            return False
        if is_banned_hour(now_local.hour, self.start_hour):
            logger.debug(f"Hour {now_local.hour} is before start hour {self.start_hour}")
            return False
        return True
