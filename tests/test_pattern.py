from datetime import date, timedelta

import pytest

from recurring_ledger.recurring.pattern import Frequency, InvalidPatternError, RecurrencePattern
from recurring_ledger.recurring.schedule import RecurringTransaction

def test_next_occurrence_is_always_later():
    patterns = [
        RecurrencePattern.daily(), RecurrencePattern.daily(3),
        RecurrencePattern.weekly(0), RecurrencePattern.weekly(4, interval=2),
        RecurrencePattern.biweekly(6),
        RecurrencePattern.monthly(31), RecurrencePattern.monthly(1, interval=2),
        RecurrencePattern.quarterly(30),
        RecurrencePattern.yearly(29, 2),
    ]
    start = date(2023, 12, 20)
    for p in patterns:
        for offset in range(0, 800, 7):
            d = start + timedelta(days=offset)
            assert p.calculate_next_occurrence(d) > d

def test_monthly_31_clamps_to_month_end():
    sched = RecurringTransaction.create("acct-1", "Rent", -1200.0, RecurrencePattern.monthly(31), date(2026, 1, 31))
    got = sched.get_occurrences_between(date(2026, 1, 1), date(2026, 4, 30))
    assert got == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)]

def test_monthly_31_in_leap_year():
    sched = RecurringTransaction.create("acct-1", "Rent", -1200.0, RecurrencePattern.monthly(31), date(2024, 1, 31))
    got = sched.get_occurrences_between(date(2024, 2, 1), date(2024, 3, 31))
    assert got == [date(2024, 2, 29), date(2024, 3, 31)]

def test_weekly_and_biweekly_steps():
    friday = date(2026, 1, 2)
    assert friday.weekday() == 4
    assert RecurrencePattern.weekly(4).calculate_next_occurrence(friday) == date(2026, 1, 9)
    assert RecurrencePattern.weekly(4, interval=2).calculate_next_occurrence(friday) == date(2026, 1, 16)
    assert RecurrencePattern.biweekly(4).calculate_next_occurrence(friday) == date(2026, 1, 16)
    # from a Monday the first matching Friday is the same week
    assert RecurrencePattern.weekly(4).calculate_next_occurrence(date(2026, 1, 5)) == date(2026, 1, 9)

def test_quarterly_and_yearly_steps():
    assert RecurrencePattern.quarterly(15).calculate_next_occurrence(date(2026, 1, 15)) == date(2026, 4, 15)
    assert RecurrencePattern.quarterly(31).calculate_next_occurrence(date(2026, 11, 30)) == date(2027, 2, 28)
    yearly = RecurrencePattern.yearly(31, 3)
    assert yearly.calculate_next_occurrence(date(2026, 1, 1)) == date(2026, 3, 31)
    assert yearly.calculate_next_occurrence(date(2026, 3, 31)) == date(2027, 3, 31)
    leap = RecurrencePattern.yearly(29, 2)
    assert leap.calculate_next_occurrence(date(2024, 2, 29)) == date(2025, 2, 28)

def test_daily_interval():
    assert RecurrencePattern.daily(3).calculate_next_occurrence(date(2026, 2, 27)) == date(2026, 3, 2)

def test_sequence_is_periodic():
    p = RecurrencePattern.monthly(15)
    d = date(2026, 1, 15)
    seen = []
    for _ in range(12):
        d = p.calculate_next_occurrence(d)
        seen.append(d)
    assert all(x.day == 15 for x in seen)
    assert seen == sorted(set(seen))

@pytest.mark.parametrize("build", [
    lambda: RecurrencePattern(Frequency.WEEKLY),
    lambda: RecurrencePattern(Frequency.MONTHLY),
    lambda: RecurrencePattern(Frequency.YEARLY, day_of_month=1),
    lambda: RecurrencePattern.monthly(0),
    lambda: RecurrencePattern.monthly(32),
    lambda: RecurrencePattern.weekly(7),
    lambda: RecurrencePattern.daily(0),
    lambda: RecurrencePattern.yearly(1, 13),
    lambda: RecurrencePattern(Frequency.BIWEEKLY, 1, day_of_week=1),
    lambda: RecurrencePattern(Frequency.QUARTERLY, 1, day_of_month=1),
])
def test_invalid_patterns_rejected(build):
    with pytest.raises(InvalidPatternError):
        build()

def test_describe():
    assert RecurrencePattern.daily().describe() == "Daily"
    assert RecurrencePattern.daily(2).describe() == "Every 2 days"
    assert str(RecurrencePattern.monthly(15)) == "Monthly on day 15"
    assert RecurrencePattern.biweekly(4).describe() == "Every 2 weeks on Friday"
    assert RecurrencePattern.weekly(0).describe() == "Weekly on Monday"
    assert RecurrencePattern.quarterly(1).describe() == "Quarterly on day 1"
    assert RecurrencePattern.yearly(31, 3).describe() == "Yearly on March 31"

def test_dict_form_rebuilds_pattern():
    p = RecurrencePattern.weekly(2, interval=3)
    assert RecurrencePattern.from_dict(p.to_dict()) == p
    assert p.to_dict()["frequency"] == "weekly"

def test_pattern_is_immutable():
    p = RecurrencePattern.monthly(15)
    with pytest.raises(Exception):
        p.day_of_month = 1
