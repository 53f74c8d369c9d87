"""
Time Entry Distribution
=======================

Spreads estimated hours per issue across workdays as discrete time
entries, capped per day and rounded to quarter hours.

Every call builds its own day ledgers and throws them away on return,
so the functions here are safe to call repeatedly and from
independent callers.
"""

import math
import logging
import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

MAX_HOURS_PER_DAY = 8.0
MIN_HOURS_PER_ENTRY = 0.5
COMMENT_PREFIX = "Working on: "


class DistributionError(ValueError):
    """Raised when distribution parameters are invalid."""


# ============================================================================
# DATA MODEL
# ============================================================================

@dataclass(frozen=True)
class IssueRef:
    id: int
    subject: str


@dataclass(frozen=True)
class EstimationInput:
    issue: IssueRef
    estimated_hours: float


@dataclass(frozen=True)
class TimeEntryToCreate:
    date: date
    hours: float
    comments: str


@dataclass(frozen=True)
class TimeEntryAllocation:
    """All entries produced for one issue, plus its original estimate."""
    issue: IssueRef
    estimated_hours: float
    entries: Tuple[TimeEntryToCreate, ...]

    @property
    def allocated_hours(self) -> float:
        return sum(e.hours for e in self.entries)


@dataclass(frozen=True)
class DayEntry:
    issue_id: int
    hours: float
    comments: str


@dataclass(frozen=True)
class DayAllocation:
    date: date
    total_hours: float
    entries: Tuple[DayEntry, ...]


@dataclass(frozen=True)
class Shortfall:
    issue: IssueRef
    requested_hours: float
    allocated_hours: float

    @property
    def missing_hours(self) -> float:
        return self.requested_hours - self.allocated_hours


@dataclass
class _DayLedger:
    """Running total for one day while a distribution is in progress."""
    day: date
    total_hours: float = 0.0
    entries: List[DayEntry] = field(default_factory=list)

    def add(self, entry: DayEntry):
        self.total_hours += entry.hours
        self.entries.append(entry)

    def freeze(self) -> DayAllocation:
        return DayAllocation(self.day, self.total_hours, tuple(self.entries))


# ============================================================================
# WORKDAY CALENDAR
# ============================================================================

def workdays(start: date, end: date) -> List[date]:
    """
    List the weekdays (Mon-Fri) between start and end, inclusive.

    Returns an empty list when start is after end.
    """
    days = []
    current = start
    while current <= end:
        if current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    return days


def end_of_month(day: date) -> date:
    _, last = calendar.monthrange(day.year, day.month)
    return day.replace(day=last)


def month_workdays(today: Optional[date] = None) -> List[date]:
    """Workdays from today through the last day of the month."""
    today = today or date.today()
    return workdays(today, end_of_month(today))


def remaining_workdays(today: Optional[date] = None) -> int:
    return len(month_workdays(today))


def available_hours(today: Optional[date] = None,
                    daily_cap: float = MAX_HOURS_PER_DAY) -> float:
    return remaining_workdays(today) * daily_cap


# ============================================================================
# ALLOCATION ENGINE
# ============================================================================

def round_to_quarter(hours: float) -> float:
    """Round to the nearest 0.25h, halves rounding up."""
    return math.floor(hours * 4 + 0.5) / 4


def _validate(days: Sequence[date], daily_cap: float, min_entry: float):
    if daily_cap <= 0:
        raise DistributionError(
            f"daily_cap must be positive, got {daily_cap}"
        )
    if min_entry < 0:
        raise DistributionError(
            f"min_entry must not be negative, got {min_entry}"
        )
    for prev, cur in zip(days, days[1:]):
        if cur <= prev:
            raise DistributionError(
                f"Workdays must be strictly increasing: "
                f"{prev.isoformat()} is followed by {cur.isoformat()}"
            )


def allocate(items: Sequence[EstimationInput],
             days: Sequence[date],
             daily_cap: float = MAX_HOURS_PER_DAY,
             min_entry: float = MIN_HOURS_PER_ENTRY
             ) -> Tuple[List[TimeEntryAllocation], Dict[date, DayAllocation]]:
    """
    Distribute estimated hours over workdays.

    Issues are processed largest estimate first (stable for ties) and
    fill days in ascending order. A day is skipped for an issue when it
    has less than min_entry hours left, or when the fragment would round
    to 0h; those hours are tried again on later days and dropped if none
    has room.

    Args:
        items: Issues with their estimated hours
        days: Strictly increasing workdays
        daily_cap: Maximum hours per day
        min_entry: Smallest fragment worth logging

    Returns:
        (allocations, day ledgers) -- the ledgers hold unrounded totals
    """
    _validate(days, daily_cap, min_entry)

    ledgers = {d: _DayLedger(d) for d in days}
    ordered = sorted(items, key=lambda i: i.estimated_hours, reverse=True)

    allocations = []
    for item in ordered:
        issue = item.issue
        comment = f"{COMMENT_PREFIX}{issue.subject}"
        remaining = item.estimated_hours
        entries = []

        for day, ledger in ledgers.items():
            if remaining <= 0:
                break

            available = daily_cap - ledger.total_hours
            if available <= 0:
                continue

            hours = min(remaining, available)
            rounded = round_to_quarter(hours)
            if hours < min_entry or rounded <= 0:
                continue

            entries.append(TimeEntryToCreate(day, rounded, comment))
            ledger.add(DayEntry(issue.id, hours, comment))
            remaining -= hours

        if entries:
            allocations.append(
                TimeEntryAllocation(issue, item.estimated_hours,
                                    tuple(entries))
            )

    logger.debug(
        f"Distributed {len(allocations)}/{len(items)} issue(s) "
        f"over {len(days)} workday(s)"
    )
    return allocations, {d: l.freeze() for d, l in ledgers.items()}


def distribute(items: Sequence[EstimationInput],
               days: Sequence[date],
               daily_cap: float = MAX_HOURS_PER_DAY,
               min_entry: float = MIN_HOURS_PER_ENTRY
               ) -> List[TimeEntryAllocation]:
    """Same as allocate(), returning only the per-issue allocations."""
    allocations, _ = allocate(items, days, daily_cap, min_entry)
    return allocations


def find_shortfalls(items: Sequence[EstimationInput],
                    allocations: Sequence[TimeEntryAllocation],
                    tolerance: float = 0.125) -> List[Shortfall]:
    """
    Report issues that received less time than estimated.

    Over-capacity estimates and dropped fragments are truncated silently
    by the engine; this check lets callers surface them as warnings.
    """
    allocated = {}
    for a in allocations:
        allocated[a.issue.id] = allocated.get(a.issue.id, 0.0) + a.allocated_hours

    shortfalls = []
    for item in items:
        if item.estimated_hours <= 0:
            continue
        got = allocated.get(item.issue.id, 0.0)
        if item.estimated_hours - got > tolerance:
            shortfalls.append(Shortfall(item.issue, item.estimated_hours, got))
            logger.warning(
                f"Issue #{item.issue.id} under-allocated: "
                f"{got:.2f}h of {item.estimated_hours:.2f}h"
            )
    return shortfalls


# ============================================================================
# BREAKDOWN / AGGREGATION
# ============================================================================

def daily_breakdown(
        allocations: Sequence[TimeEntryAllocation]) -> Dict[date, DayAllocation]:
    """Group emitted entries by date, in ascending date order."""
    ledgers = {}
    for allocation in allocations:
        for entry in allocation.entries:
            ledger = ledgers.setdefault(entry.date, _DayLedger(entry.date))
            ledger.add(
                DayEntry(allocation.issue.id, entry.hours, entry.comments)
            )
    return {d: ledgers[d].freeze() for d in sorted(ledgers)}


def total_hours(allocations: Sequence[TimeEntryAllocation]) -> float:
    return sum(a.allocated_hours for a in allocations)


def breakdown_total(breakdown: Dict[date, DayAllocation]) -> float:
    return sum(day.total_hours for day in breakdown.values())
