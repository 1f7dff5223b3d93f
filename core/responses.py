"""
Result types returned by the storage and migration services.

Every public service operation returns a StorageResponse carrying either data
or a structured ServiceError, so callers get a typed outcome instead of an
exception to catch.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from core.exceptions import ScheduleStoreError

T = TypeVar("T")


class ErrorType(str, Enum):
    STORAGE = "STORAGE"
    VALIDATION = "VALIDATION"
    MIGRATION = "MIGRATION"


@dataclass
class ServiceError:
    type: ErrorType
    message: str
    timestamp: datetime
    recoverable: bool
    context: Optional[Any] = None  # underlying cause

    def get_user_message(self) -> str:
        if self.recoverable:
            return f"{self.message} (you can retry)"
        return self.message

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
        }


@dataclass
class StorageResponse(Generic[T]):
    data: Optional[T]
    success: bool
    error: Optional[ServiceError] = None

    @classmethod
    def ok(cls, data: Optional[T] = None, error: Optional[ServiceError] = None) -> "StorageResponse[T]":
        return cls(data=data, success=True, error=error)

    @classmethod
    def fail(cls, error: ServiceError, data: Optional[T] = None) -> "StorageResponse[T]":
        return cls(data=data, success=False, error=error)


@dataclass
class IntegrityReport:
    is_valid: bool
    messages: List[str] = field(default_factory=list)


@dataclass
class MigrationResult:
    """Outcome of moving a whole dataset between storage providers."""
    success: bool
    from_provider: str
    to_provider: str
    items_migrated: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: int = 0


@dataclass
class StorageInfo:
    used: int       # bytes
    available: int  # bytes left under the store capacity
    type: str


def service_error(
    error_type: ErrorType,
    error: BaseException,
    fallback_message: str,
    timestamp: datetime,
    recoverable: Optional[bool] = None,
) -> ServiceError:
    """
    Convert an exception caught at a service boundary into a ServiceError.

    Known errors keep their message and recoverable flag; anything else is
    prefixed with the fallback message and is not recoverable unless the
    caller says otherwise.
    """
    if isinstance(error, ScheduleStoreError):
        message = error.message
        flag = error.recoverable
    else:
        detail = str(error)
        message = f"{fallback_message}: {detail}" if detail else fallback_message
        flag = False
    return ServiceError(
        type=error_type,
        message=message,
        timestamp=timestamp,
        recoverable=flag if recoverable is None else recoverable,
        context=error,
    )
