"""
Inclusive date range used by funnel queries and period comparisons.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, Optional


def _start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def _end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Date range start {self.start.isoformat()} is after end {self.end.isoformat()}")

    @classmethod
    def last_days(cls, days: int, now: Optional[datetime] = None) -> "DateRange":
        now = now or datetime.now()
        return cls(_start_of_day((now - timedelta(days=days)).date()), _end_of_day(now.date()))

    @classmethod
    def today(cls, now: Optional[datetime] = None) -> "DateRange":
        today = (now or datetime.now()).date()
        return cls(_start_of_day(today), _end_of_day(today))

    @classmethod
    def yesterday(cls, now: Optional[datetime] = None) -> "DateRange":
        day = (now or datetime.now()).date() - timedelta(days=1)
        return cls(_start_of_day(day), _end_of_day(day))

    @classmethod
    def this_month(cls, now: Optional[datetime] = None) -> "DateRange":
        today = (now or datetime.now()).date()
        first = today.replace(day=1)
        next_first = (first + timedelta(days=32)).replace(day=1)
        return cls(_start_of_day(first), _end_of_day(next_first - timedelta(days=1)))

    @classmethod
    def from_strings(cls, start: str, end: str) -> "DateRange":
        """Accepts ISO dates or datetimes; both ends are widened to whole days."""
        return cls(
            _start_of_day(datetime.fromisoformat(start).date()),
            _end_of_day(datetime.fromisoformat(end).date()),
        )

    @property
    def days(self) -> int:
        return (self.end.date() - self.start.date()).days + 1

    @property
    def key(self) -> str:
        return f"{self.start.date().isoformat()}_{self.end.date().isoformat()}"

    def previous_period(self) -> "DateRange":
        """The range of the same number of days ending the day before this one starts."""
        start_day = self.start.date()
        return DateRange(
            _start_of_day(start_day - timedelta(days=self.days)),
            _end_of_day(start_day - timedelta(days=1)),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.date().isoformat(), "end": self.end.date().isoformat()}
