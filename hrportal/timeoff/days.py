"""Business-day arithmetic for time-off requests.

A business day is a weekday (Mon–Fri) that is not a company holiday.
Ranges are inclusive at both ends.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Union
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.common.exceptions import InvalidRangeException
from hrportal.config import settings
from hrportal.timeoff.models import CompanyHoliday

HolidayLike = Union[date, str]

# date.weekday(): 0=Mon … 6=Sun
WEEKEND_DAYS = frozenset({5, 6})


def today() -> date:
    """Current date in the portal's configured timezone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def _normalize_holidays(holidays: Iterable[HolidayLike]) -> set[date]:
    return {
        h if isinstance(h, date) else date.fromisoformat(h)
        for h in holidays
    }


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    """Yield every calendar day from *start_date* to *end_date* inclusive."""
    if end_date < start_date:
        raise InvalidRangeException(start_date, end_date)
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def count_business_days(
    start_date: date,
    end_date: date,
    holidays: Iterable[HolidayLike] = (),
) -> int:
    """Count weekdays in the inclusive range that are not in *holidays*.

    Holidays may be ``date`` objects or ISO ``YYYY-MM-DD`` strings.
    Raises ``InvalidRangeException`` when *end_date* precedes *start_date*.
    """
    off_days = _normalize_holidays(holidays)
    return sum(
        1
        for d in iter_days(start_date, end_date)
        if d.weekday() not in WEEKEND_DAYS and d not in off_days
    )


def count_calendar_days(start_date: date, end_date: date) -> int:
    """Inclusive calendar span of a request."""
    if end_date < start_date:
        raise InvalidRangeException(start_date, end_date)
    return (end_date - start_date).days + 1


async def get_holiday_dates(
    db: AsyncSession,
    start_date: date,
    end_date: date,
) -> set[date]:
    """Company holidays falling inside the inclusive range."""
    result = await db.execute(
        select(CompanyHoliday.holiday_date).where(
            CompanyHoliday.holiday_date >= start_date,
            CompanyHoliday.holiday_date <= end_date,
        )
    )
    return set(result.scalars().all())


async def list_holidays(db: AsyncSession, year: int) -> list[CompanyHoliday]:
    result = await db.execute(
        select(CompanyHoliday)
        .where(
            CompanyHoliday.holiday_date >= date(year, 1, 1),
            CompanyHoliday.holiday_date <= date(year, 12, 31),
        )
        .order_by(CompanyHoliday.holiday_date)
    )
    return list(result.scalars().all())
