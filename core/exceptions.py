"""
Schedule Store exception definitions.

Internal exception hierarchy. These are raised below the service boundary and
converted to a ServiceError by StorageService / MigrationService, so callers
never have to catch them:
- ScheduleStoreError: base for every known failure
- StorageError: read/write/serialize failure against the key-value store
- QuotaExceededError: the store is full (recoverable)
- CorruptedDataError: a stored value cannot be decoded or revived
- MigrationError: version transform or backup/restore failure
"""
from typing import Any, Optional


class ScheduleStoreError(Exception):
    """Base class for all known Schedule Store errors.

    Catching this handles every expected failure mode.
    """

    recoverable = False

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: error description
            hint: suggested action for the user
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """Return a user-facing message."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class StorageError(ScheduleStoreError):
    """Failure while talking to the key-value store."""

    def __init__(self, message: str, key: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message, hint)
        self.key = key


class QuotaExceededError(StorageError):
    """The store refused a write because its capacity is exhausted."""

    recoverable = True

    def __init__(
        self,
        key: Optional[str] = None,
        requested_bytes: Optional[int] = None,
        max_bytes: Optional[int] = None,
    ):
        message = "Storage quota exceeded"
        if requested_bytes is not None and max_bytes is not None:
            message = f"Storage quota exceeded ({requested_bytes} > {max_bytes} bytes)"
        super().__init__(message, key, hint="Free some space (delete old backups) and retry")
        self.requested_bytes = requested_bytes
        self.max_bytes = max_bytes


class CorruptedDataError(StorageError):
    """A stored value could not be decoded or revived."""

    def __init__(self, message: str, key: Optional[str] = None, raw: Optional[Any] = None):
        super().__init__(message, key, hint="The record is unusable; restore a backup or start empty")
        self.raw = raw


class MigrationError(ScheduleStoreError):
    """Version transform, backup, or restore failure."""

    recoverable = True

    def __init__(self, message: str, from_version: Optional[str] = None):
        super().__init__(message, hint="The migration will be retried on next start")
        self.from_version = from_version

