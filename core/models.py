"""
Core Data Models for Schedule Store.
Defines the year -> month -> day -> task hierarchy and backup records.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class BackupKind(str, Enum):
    MANUAL = "manual"        # user requested
    MIGRATION = "migration"  # taken before a schema/provider migration


@dataclass
class Task:
    """A single todo item, owned by exactly one DaySchedule."""
    id: str
    title: str                     # <= 100 chars
    description: str = ""          # <= 500 chars
    point_value: int = 1           # 1..100
    is_completed: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None  # set iff is_completed


@dataclass
class DaySchedule:
    """Tasks for one calendar day, keyed by ISO date (YYYY-MM-DD)."""
    date: str
    total_point_value: int = 0
    total_completed_point_value: int = 0
    todo_items: List[Task] = field(default_factory=list)

    @property
    def completed_todo_items(self) -> List[Task]:
        return [t for t in self.todo_items if t.is_completed]

    @property
    def incomplete_todo_items(self) -> List[Task]:
        return [t for t in self.todo_items if not t.is_completed]


@dataclass
class MonthSchedule:
    """Day schedules for one month (YYYY-MM)."""
    date: str
    day_schedules: Dict[str, DaySchedule] = field(default_factory=dict)
    total_month_points: int = 0
    total_completed_month_points: int = 0


@dataclass
class YearSchedule:
    """Root aggregate; one instance is loaded/persisted per calendar year."""
    year: int
    month_schedules: Dict[str, MonthSchedule] = field(default_factory=dict)
    total_year_points: int = 0
    total_completed_year_points: int = 0


@dataclass
class BackupRecord:
    """A full-dataset export stored under a timestamped key."""
    key: str
    timestamp: int  # epoch millis
    kind: BackupKind


# --- Aggregation helpers ---

def empty_year_schedule(year: int) -> YearSchedule:
    return YearSchedule(year=year)


def build_day_schedule(date: str, items: List[Task]) -> DaySchedule:
    """Build a DaySchedule with totals computed from its items."""
    day = DaySchedule(date=date, todo_items=list(items))
    _rollup_day(day)
    return day


def _rollup_day(day: DaySchedule) -> None:
    day.total_point_value = sum(t.point_value for t in day.todo_items)
    day.total_completed_point_value = sum(
        t.point_value for t in day.todo_items if t.is_completed
    )


def _rollup_month(month: MonthSchedule) -> None:
    for day in month.day_schedules.values():
        _rollup_day(day)
    month.total_month_points = sum(d.total_point_value for d in month.day_schedules.values())
    month.total_completed_month_points = sum(
        d.total_completed_point_value for d in month.day_schedules.values()
    )


def rollup_totals(year_schedule: YearSchedule) -> YearSchedule:
    """Recompute every derived total bottom-up, in place."""
    for month in year_schedule.month_schedules.values():
        _rollup_month(month)
    year_schedule.total_year_points = sum(
        m.total_month_points for m in year_schedule.month_schedules.values()
    )
    year_schedule.total_completed_year_points = sum(
        m.total_completed_month_points for m in year_schedule.month_schedules.values()
    )
    return year_schedule


def put_day_schedule(year_schedule: YearSchedule, day: DaySchedule) -> YearSchedule:
    """
    Insert or replace a day in its month and roll the totals up.

    Raises:
        ValueError: if the day does not belong to this year.
    """
    if not day.date.startswith(f"{year_schedule.year:04d}-"):
        raise ValueError(f"Day {day.date} does not belong to year {year_schedule.year}")

    month_key = day.date[:7]
    month = year_schedule.month_schedules.get(month_key)
    if month is None:
        month = MonthSchedule(date=month_key)
        year_schedule.month_schedules[month_key] = month
    month.day_schedules[day.date] = day
    return rollup_totals(year_schedule)
