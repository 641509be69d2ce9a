"""
Period Resolver

Turns a period keyword (week / month / quarter / year) anchored at "now" into a
concrete half-open [start, end) range, and derives the range used for growth
comparisons.

The previous period is a rolling window of equal length ending where the
current one starts. For "month" that means the trailing N days before the
1st, not the prior calendar month.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from dateutil.relativedelta import relativedelta

from app.errors import ValidationError
from app.models.enums import PeriodKind


@dataclass(frozen=True)
class DateRange:
    """Half-open datetime range [start, end)"""
    start: datetime
    end: datetime

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def to_dict(self, kind: Optional[PeriodKind] = None) -> Dict[str, Any]:
        data = {
            "startDate": self.start.isoformat(),
            "endDate": self.end.isoformat(),
        }
        if kind is not None:
            data = {"type": kind.value, **data}
        return data


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def resolve_period(kind: PeriodKind, now: Optional[datetime] = None) -> DateRange:
    """Map a period keyword to its range ending at `now`."""
    now = now or datetime.utcnow()
    try:
        kind = PeriodKind(kind)
    except ValueError:
        raise ValidationError("period", kind, "expected week, month, quarter or year")

    if kind == PeriodKind.WEEK:
        start = now - timedelta(days=7)
    elif kind == PeriodKind.QUARTER:
        first_month = (now.month - 1) // 3 * 3 + 1
        start = _start_of_day(now.replace(month=first_month, day=1))
    elif kind == PeriodKind.YEAR:
        start = _start_of_day(now.replace(month=1, day=1))
    else:
        start = _start_of_day(now.replace(day=1))

    return DateRange(start=start, end=now)


def previous_period(current: DateRange) -> DateRange:
    """The equal-length window immediately before `current`."""
    return DateRange(start=current.start - current.length, end=current.start)


def current_month(now: Optional[datetime] = None) -> DateRange:
    """Whole calendar month containing `now` (default analytics window)."""
    now = now or datetime.utcnow()
    start = _start_of_day(now.replace(day=1))
    return DateRange(start=start, end=start + relativedelta(months=1))


def custom_range(start: datetime, end: datetime) -> DateRange:
    if end <= start:
        raise ValidationError("endDate", end.isoformat(), "must be after startDate")
    return DateRange(start=start, end=end)


def months_back(now: datetime, months: int) -> datetime:
    """Same moment `months` calendar months earlier (day clamped to month end)."""
    return now - relativedelta(months=months)
