from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings

UPCOMING_WINDOW_DAYS = 7


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_period(today: Optional[date] = None) -> Period:
    today = today or local_today()
    first = today.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return Period("this_month", first, next_month - date.resolution)


def upcoming_period(today: Optional[date] = None) -> Period:
    today = today or local_today()
    return Period("upcoming", today, today + timedelta(days=UPCOMING_WINDOW_DAYS))
