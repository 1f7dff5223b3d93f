"""
Record conversion for the Schedule Model.

The store only holds flat strings, so every entity is converted to a JSON
record (camelCase field names, ISO timestamps) before writing. Loading goes
through an explicit reviver that rebuilds each mapping level as a
Dict[str, <entity>] instead of leaving raw records in place.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from core.exceptions import CorruptedDataError
from core.models import DaySchedule, MonthSchedule, Task, YearSchedule


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any, where: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith(("Z", "z")):
        # fromisoformat only accepts a Z suffix from Python 3.11
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise CorruptedDataError(f"Invalid timestamp {value!r} in {where}")


def _require_mapping(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise CorruptedDataError(f"{where} must be an object, got {type(value).__name__}")
    return value


# --- entity -> record ---

def task_to_record(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "pointValue": task.point_value,
        "isCompleted": task.is_completed,
        "createdAt": _dt_to_str(task.created_at),
        "completedAt": _dt_to_str(task.completed_at),
    }


def day_to_record(day: DaySchedule) -> Dict[str, Any]:
    # The derived subsets are written out so exports stay readable on their own.
    return {
        "date": day.date,
        "totalPointValue": day.total_point_value,
        "totalCompletedPointValue": day.total_completed_point_value,
        "todoItems": [task_to_record(t) for t in day.todo_items],
        "completedTodoItems": [task_to_record(t) for t in day.completed_todo_items],
        "incompleteTodoItems": [task_to_record(t) for t in day.incomplete_todo_items],
    }


def month_to_record(month: MonthSchedule) -> Dict[str, Any]:
    return {
        "date": month.date,
        "daySchedules": {k: day_to_record(d) for k, d in month.day_schedules.items()},
        "totalMonthPoints": month.total_month_points,
        "totalCompletedMonthPoints": month.total_completed_month_points,
    }


def year_to_record(year_schedule: YearSchedule) -> Dict[str, Any]:
    return {
        "year": year_schedule.year,
        "monthSchedules": {
            k: month_to_record(m) for k, m in year_schedule.month_schedules.items()
        },
        "totalYearPoints": year_schedule.total_year_points,
        "totalCompletedYearPoints": year_schedule.total_completed_year_points,
    }


# --- record -> entity ---

def revive_task(record: Any, where: str = "task") -> Task:
    """
    Rebuild a Task. Scalar fields are revived leniently (missing values become
    empty defaults) so the integrity validator can report them.
    """
    data = _require_mapping(record, where)
    is_completed = bool(data.get("isCompleted", False))
    return Task(
        id=str(data.get("id") or ""),
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        point_value=data.get("pointValue"),
        is_completed=is_completed,
        created_at=_parse_dt(data.get("createdAt"), where),
        completed_at=_parse_dt(data.get("completedAt"), where),
    )


def revive_day_schedule(record: Any, where: str = "day schedule") -> DaySchedule:
    data = _require_mapping(record, where)
    if "date" not in data:
        raise CorruptedDataError(f"{where} has no date")
    date = str(data["date"])
    items = data.get("todoItems", [])
    if not isinstance(items, list):
        raise CorruptedDataError(f"todoItems for {date} must be a list")
    return DaySchedule(
        date=date,
        total_point_value=int(data.get("totalPointValue") or 0),
        total_completed_point_value=int(data.get("totalCompletedPointValue") or 0),
        todo_items=[revive_task(t, f"task in {date}") for t in items],
    )


def revive_month_schedule(record: Any, month_key: str) -> MonthSchedule:
    data = _require_mapping(record, f"month {month_key}")
    days = _require_mapping(data.get("daySchedules", {}), f"daySchedules for {month_key}")
    return MonthSchedule(
        date=str(data.get("date") or month_key),
        day_schedules={
            str(day_key): revive_day_schedule(day, f"day {day_key}")
            for day_key, day in days.items()
        },
        total_month_points=int(data.get("totalMonthPoints") or 0),
        total_completed_month_points=int(data.get("totalCompletedMonthPoints") or 0),
    )


def revive_year_schedule(record: Any) -> YearSchedule:
    data = _require_mapping(record, "year schedule")
    if "year" not in data:
        raise CorruptedDataError("year schedule has no year")
    months = _require_mapping(data.get("monthSchedules", {}), "monthSchedules")
    return YearSchedule(
        year=data["year"],
        month_schedules={
            str(month_key): revive_month_schedule(month, str(month_key))
            for month_key, month in months.items()
        },
        total_year_points=int(data.get("totalYearPoints") or 0),
        total_completed_year_points=int(data.get("totalCompletedYearPoints") or 0),
    )
