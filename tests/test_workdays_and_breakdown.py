from __future__ import annotations

from datetime import date, timedelta

from time_distribution import (
    EstimationInput,
    IssueRef,
    available_hours,
    breakdown_total,
    daily_breakdown,
    distribute,
    end_of_month,
    month_workdays,
    remaining_workdays,
    total_hours,
    workdays,
)

MONDAY = date(2026, 10, 19)
SATURDAY = date(2026, 10, 24)
SUNDAY = date(2026, 10, 25)


def test_full_week_yields_five_weekdays():
    days = workdays(MONDAY, SUNDAY)

    assert len(days) == 5
    assert all(d.weekday() < 5 for d in days)
    assert days == sorted(days)


def test_single_weekday_range():
    assert workdays(MONDAY, MONDAY) == [MONDAY]


def test_weekend_only_range_is_empty():
    assert workdays(SATURDAY, SUNDAY) == []


def test_reversed_range_is_empty():
    assert workdays(SUNDAY, MONDAY) == []


def test_range_spanning_months():
    days = workdays(date(2026, 10, 30), date(2026, 11, 3))

    assert days == [date(2026, 10, 30), date(2026, 11, 2), date(2026, 11, 3)]


def test_end_of_month_handles_february():
    assert end_of_month(date(2026, 2, 10)) == date(2026, 2, 28)
    assert end_of_month(date(2028, 2, 1)) == date(2028, 2, 29)


def test_month_workdays_from_today():
    days = month_workdays(MONDAY)

    assert days[0] == MONDAY
    assert days[-1] == date(2026, 10, 30)
    assert remaining_workdays(MONDAY) == 10
    assert available_hours(MONDAY) == 80.0
    assert available_hours(MONDAY, daily_cap=6) == 60.0


def _allocations():
    items = [
        EstimationInput(IssueRef(1, "API"), 10),
        EstimationInput(IssueRef(2, "Docs"), 3),
        EstimationInput(IssueRef(3, "Review"), 5.5),
    ]
    days = [MONDAY + timedelta(days=i) for i in range(3)]
    return distribute(items, days)


def test_daily_breakdown_groups_entries_by_date():
    breakdown = daily_breakdown(_allocations())

    assert list(breakdown) == [
        MONDAY, MONDAY + timedelta(days=1), MONDAY + timedelta(days=2)
    ]
    first = breakdown[MONDAY]
    assert first.total_hours == 8.0
    assert [(e.issue_id, e.hours) for e in first.entries] == [(1, 8.0)]

    second = breakdown[MONDAY + timedelta(days=1)]
    assert [(e.issue_id, e.hours) for e in second.entries] == [
        (1, 2.0), (3, 5.5), (2, 0.5)
    ]
    assert second.total_hours == 8.0


def test_daily_breakdown_keys_are_sorted_regardless_of_input_order():
    breakdown = daily_breakdown(list(reversed(_allocations())))

    assert list(breakdown) == sorted(breakdown)


def test_breakdown_preserves_total_hours():
    allocations = _allocations()

    assert total_hours(allocations) == 18.5
    assert breakdown_total(daily_breakdown(allocations)) == total_hours(allocations)


def test_empty_breakdown():
    assert daily_breakdown([]) == {}
    assert total_hours([]) == 0
