from datetime import datetime, time

import pytest

from goal_engine.date_range import DateRange


def test_from_strings_covers_whole_days():
    r = DateRange.from_strings("2024-01-01", "2024-01-31")
    assert r.start == datetime(2024, 1, 1)
    assert r.end == datetime.combine(datetime(2024, 1, 31).date(), time.max)
    assert r.days == 31
    assert r.key == "2024-01-01_2024-01-31"
    assert r.to_dict() == {"start": "2024-01-01", "end": "2024-01-31"}


def test_previous_period_has_same_length():
    r = DateRange.from_strings("2024-01-10", "2024-01-19")
    prev = r.previous_period()
    assert prev.to_dict() == {"start": "2023-12-31", "end": "2024-01-09"}
    assert prev.days == r.days


def test_last_days_and_month_helpers():
    now = datetime(2024, 3, 15, 12, 30)
    assert DateRange.last_days(7, now=now).to_dict() == {"start": "2024-03-08", "end": "2024-03-15"}
    assert DateRange.this_month(now=datetime(2024, 2, 10)).to_dict() == {"start": "2024-02-01", "end": "2024-02-29"}
    assert DateRange.yesterday(now=now).days == 1
    assert DateRange.today(now=now).to_dict() == {"start": "2024-03-15", "end": "2024-03-15"}


def test_start_after_end_is_rejected():
    with pytest.raises(ValueError):
        DateRange.from_strings("2024-02-01", "2024-01-01")
