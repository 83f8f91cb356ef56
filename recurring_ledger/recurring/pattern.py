"""
Recurrence patterns: the schedule rule of a recurring transaction or transfer
and the calendar arithmetic that steps from one occurrence to the next.
"""
import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional

class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

class InvalidPatternError(ValueError):
    pass

def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]

def add_months(d: date, n: int, day: int) -> date:
    """Move n months from d and land on `day`, clamped to the month end."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    return date(year, month, min(day, days_in_month(year, month)))

def next_weekday(d: date, weekday: int) -> date:
    """First date strictly after d falling on weekday (0=Mon..6=Sun)."""
    ahead = (weekday - d.weekday()) % 7
    return d + timedelta(days=ahead or 7)

@dataclass(frozen=True)
class RecurrencePattern:
    """
    Immutable schedule rule. Build through the factory classmethods, which
    validate the fields each frequency needs:

    - daily: interval
    - weekly: interval, day_of_week (0=Monday .. 6=Sunday)
    - biweekly: day_of_week (interval is fixed at 2)
    - monthly: interval, day_of_month (1-31)
    - quarterly: day_of_month (interval is fixed at 3)
    - yearly: day_of_month, month_of_year (1-12)

    Days of month past the end of a shorter month are clamped to its last day.
    """
    frequency: Frequency
    interval: int = 1
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    month_of_year: Optional[int] = None

    def __post_init__(self):
        _validate_interval(self.interval)
        if self.frequency in (Frequency.WEEKLY, Frequency.BIWEEKLY):
            _validate_day_of_week(self.day_of_week)
        if self.frequency in (Frequency.MONTHLY, Frequency.QUARTERLY, Frequency.YEARLY):
            _validate_day_of_month(self.day_of_month)
        if self.frequency == Frequency.YEARLY:
            _validate_month_of_year(self.month_of_year)
        if self.frequency == Frequency.BIWEEKLY and self.interval != 2:
            raise InvalidPatternError("Bi-weekly patterns always repeat every 2 weeks.")
        if self.frequency == Frequency.QUARTERLY and self.interval != 3:
            raise InvalidPatternError("Quarterly patterns always repeat every 3 months.")
        if self.frequency == Frequency.YEARLY and self.interval != 1:
            raise InvalidPatternError("Yearly patterns repeat every year.")

    @classmethod
    def daily(cls, interval: int = 1) -> "RecurrencePattern":
        return cls(Frequency.DAILY, interval)

    @classmethod
    def weekly(cls, day_of_week: int, interval: int = 1) -> "RecurrencePattern":
        return cls(Frequency.WEEKLY, interval, day_of_week=day_of_week)

    @classmethod
    def biweekly(cls, day_of_week: int) -> "RecurrencePattern":
        return cls(Frequency.BIWEEKLY, 2, day_of_week=day_of_week)

    @classmethod
    def monthly(cls, day_of_month: int, interval: int = 1) -> "RecurrencePattern":
        return cls(Frequency.MONTHLY, interval, day_of_month=day_of_month)

    @classmethod
    def quarterly(cls, day_of_month: int) -> "RecurrencePattern":
        return cls(Frequency.QUARTERLY, 3, day_of_month=day_of_month)

    @classmethod
    def yearly(cls, day_of_month: int, month_of_year: int) -> "RecurrencePattern":
        return cls(Frequency.YEARLY, 1, day_of_month=day_of_month, month_of_year=month_of_year)

    def calculate_next_occurrence(self, from_date: date) -> date:
        """Next scheduled date, always strictly after from_date."""
        f = self.frequency
        if f == Frequency.DAILY:
            return from_date + timedelta(days=self.interval)
        if f == Frequency.WEEKLY:
            return next_weekday(from_date, self.day_of_week) + timedelta(weeks=self.interval - 1)
        if f == Frequency.BIWEEKLY:
            return next_weekday(from_date, self.day_of_week) + timedelta(weeks=1)
        if f in (Frequency.MONTHLY, Frequency.QUARTERLY):
            return add_months(from_date, self.interval, self.day_of_month)
        if f == Frequency.YEARLY:
            year = from_date.year
            while True:
                candidate = date(year, self.month_of_year,
                                 min(self.day_of_month, days_in_month(year, self.month_of_year)))
                if candidate > from_date:
                    return candidate
                year += 1
        raise InvalidPatternError(f"Unsupported frequency: {f}")

    def describe(self) -> str:
        f = self.frequency
        weekday = calendar.day_name[self.day_of_week] if self.day_of_week is not None else None
        if f == Frequency.DAILY:
            return "Daily" if self.interval == 1 else f"Every {self.interval} days"
        if f == Frequency.WEEKLY:
            if self.interval == 1:
                return f"Weekly on {weekday}"
            return f"Every {self.interval} weeks on {weekday}"
        if f == Frequency.BIWEEKLY:
            return f"Every 2 weeks on {weekday}"
        if f == Frequency.MONTHLY:
            if self.interval == 1:
                return f"Monthly on day {self.day_of_month}"
            return f"Every {self.interval} months on day {self.day_of_month}"
        if f == Frequency.QUARTERLY:
            return f"Quarterly on day {self.day_of_month}"
        return f"Yearly on {calendar.month_name[self.month_of_year]} {self.day_of_month}"

    def __str__(self):
        return self.describe()

    def to_dict(self):
        return {
            "frequency": self.frequency.value,
            "interval": self.interval,
            "day_of_month": self.day_of_month,
            "day_of_week": self.day_of_week,
            "month_of_year": self.month_of_year,
        }

    @classmethod
    def from_dict(cls, data) -> "RecurrencePattern":
        return cls(
            Frequency(data["frequency"]),
            data.get("interval") or 1,
            day_of_month=data.get("day_of_month"),
            day_of_week=data.get("day_of_week"),
            month_of_year=data.get("month_of_year"),
        )

def _validate_interval(interval: int):
    if not isinstance(interval, int) or interval < 1:
        raise InvalidPatternError("Interval must be at least 1.")

def _validate_day_of_week(day_of_week: Optional[int]):
    if day_of_week is None or not 0 <= day_of_week <= 6:
        raise InvalidPatternError("Day of week (0=Monday..6=Sunday) is required.")

def _validate_day_of_month(day_of_month: Optional[int]):
    if day_of_month is None or not 1 <= day_of_month <= 31:
        raise InvalidPatternError("Day of month must be between 1 and 31.")

def _validate_month_of_year(month_of_year: Optional[int]):
    if month_of_year is None or not 1 <= month_of_year <= 12:
        raise InvalidPatternError("Month of year must be between 1 and 12.")
