from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from core.bootstrap import Services
from core.exceptions import CorruptedDataError, QuotaExceededError
from core.models import Task, build_day_schedule, empty_year_schedule, put_day_schedule
from core.responses import ServiceError, StorageResponse
from core.serialization import day_to_record, revive_year_schedule, year_to_record

router = APIRouter()


class TaskPayload(BaseModel):
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=500)
    pointValue: int = Field(..., ge=1, le=100)
    isCompleted: bool = False
    createdAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None


class DayPayload(BaseModel):
    todoItems: List[TaskPayload] = Field(default_factory=list)


class ImportRequest(BaseModel):
    document: str


class BackupRequest(BaseModel):
    label: Optional[str] = None


class CleanRequest(BaseModel):
    keep: Optional[int] = Field(None, ge=0)


def _services(request: Request) -> Services:
    return request.app.state.services


def _status_code(error: ServiceError) -> int:
    cause = error.context
    while cause is not None:
        if isinstance(cause, QuotaExceededError):
            return 507
        if isinstance(cause, CorruptedDataError):
            return 422
        cause = getattr(cause, "__cause__", None)
    return 500


def _check_year(year: int) -> None:
    if not 1900 <= year <= 2100:
        raise HTTPException(status_code=400, detail="year must be between 1900 and 2100")


def _unwrap(response: StorageResponse) -> Any:
    if not response.success:
        raise HTTPException(status_code=_status_code(response.error), detail=response.error.to_dict())
    return response.data


@router.get("/status")
async def get_status(request: Request):
    services = _services(request)
    info = services.storage.get_storage_info()
    return {
        "available": services.storage.is_storage_available(),
        "storage": {"type": info.type, "used": info.used, "available": info.available},
        "current_version": services.migrations.get_current_version(),
        "stored_version": services.migrations.get_stored_version(),
        "version_history": services.migrations.get_version_history(),
        "backups": len(services.migrations.list_backups()),
    }


@router.get("/years/{year}")
async def get_year(year: int, request: Request):
    _check_year(year)
    loaded = _unwrap(_services(request).storage.load_year_schedule(year))
    if loaded is None:
        return year_to_record(empty_year_schedule(year))
    return year_to_record(loaded)


@router.put("/years/{year}")
async def put_year(year: int, payload: Dict[str, Any], request: Request):
    _check_year(year)
    try:
        year_schedule = revive_year_schedule(payload)
    except (CorruptedDataError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    if year_schedule.year != year:
        raise HTTPException(status_code=400, detail="year in body does not match path")
    saved = _unwrap(_services(request).storage.save_year_schedule(year_schedule))
    return year_to_record(saved)


@router.get("/days/{day}")
async def get_day(day: date, request: Request):
    loaded = _unwrap(_services(request).storage.load_day_schedule(day))
    if loaded is None:
        raise HTTPException(status_code=404, detail=f"No schedule stored for {day.isoformat()}")
    return day_to_record(loaded)


@router.put("/days/{day}")
async def put_day(day: date, payload: DayPayload, request: Request):
    """Save the day on its own, then fold it into its year and save the year."""
    storage = _services(request).storage
    tasks = [
        Task(
            id=item.id,
            title=item.title,
            description=item.description,
            point_value=item.pointValue,
            is_completed=item.isCompleted,
            created_at=item.createdAt or datetime.now(),
            completed_at=item.completedAt if item.isCompleted else None,
        )
        for item in payload.todoItems
    ]
    day_schedule = build_day_schedule(day.isoformat(), tasks)
    _unwrap(storage.save_day_schedule(day_schedule))

    year_schedule = _unwrap(storage.load_year_schedule(day.year)) or empty_year_schedule(day.year)
    _unwrap(storage.save_year_schedule(put_day_schedule(year_schedule, day_schedule)))
    return day_to_record(day_schedule)


@router.get("/export")
async def export_data(request: Request):
    return {"document": _unwrap(_services(request).storage.export_data())}


@router.post("/import")
async def import_data(payload: ImportRequest, request: Request):
    _unwrap(_services(request).migrations.import_with_backup(payload.document))
    return {"status": "imported"}


@router.get("/backups")
async def list_backups(request: Request):
    return [
        {"key": b.key, "timestamp": b.timestamp, "kind": b.kind.value}
        for b in _services(request).migrations.list_backups()
    ]


@router.post("/backups")
async def create_backup(payload: BackupRequest, request: Request):
    key = _unwrap(_services(request).migrations.create_backup(payload.label))
    return {"key": key}


@router.post("/backups/clean")
async def clean_backups(payload: CleanRequest, request: Request):
    deleted = _unwrap(_services(request).migrations.clean_old_backups(payload.keep))
    return {"deleted": deleted}


@router.post("/backups/{key}/restore")
async def restore_backup(key: str, request: Request):
    migrations = _services(request).migrations
    if key not in {b.key for b in migrations.list_backups()}:
        raise HTTPException(status_code=404, detail=f"Backup {key} not found")
    _unwrap(migrations.restore_from_backup(key))
    return {"status": "restored", "key": key}


@router.get("/integrity")
async def check_integrity(request: Request, year: Optional[int] = None):
    report = _unwrap(_services(request).migrations.validate_data_integrity(year))
    return {"is_valid": report.is_valid, "messages": report.messages}


@router.post("/migrate")
async def migrate(request: Request):
    migrations = _services(request).migrations
    _unwrap(migrations.check_and_migrate())
    return {"stored_version": migrations.get_stored_version()}
