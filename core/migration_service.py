"""
Migration Service for Schedule Store.

Keeps persisted data at the schema version the running application expects:
- a single version marker key tracks the stored schema version
- a stale marker triggers backup -> version transform -> marker bump
- backups are full exports under timestamped keys, rotated to the newest N
- validate_data_integrity walks the current year and reports structural issues
"""
from numbers import Number
from typing import Callable, Dict, List, Optional, Tuple

from core.clock import SystemClock
from core.exceptions import MigrationError
from core.logger import get_logger
from core.models import (
    BackupKind,
    BackupRecord,
    DaySchedule,
    MonthSchedule,
    YearSchedule,
    build_day_schedule,
    rollup_totals,
)
from core.responses import (
    ErrorType,
    IntegrityReport,
    ServiceError,
    StorageResponse,
    service_error,
)
from core.storage_service import StorageService

logger = get_logger("migration")

CURRENT_SCHEMA_VERSION = "1.0.0"
VERSION_HISTORY = ["0.9.0", "1.0.0"]
DEFAULT_MAX_BACKUPS = 5

Transform = Callable[[StorageService], None]


# --- version transforms ---

def migrate_from_090_to_100(storage: StorageService) -> None:
    """
    0.9.0 stored totals that could drift from their items. Recompute every
    aggregate for each stored year and day.
    """
    for key in storage.entity_keys():
        kind = storage.entity_kind(key)
        if kind == "year":
            year = int(key.rsplit("_", 1)[-1])
            loaded = storage.load_year_schedule(year)
            if not loaded.success:
                raise MigrationError(f"Cannot read {key}: {loaded.error.message}", "0.9.0")
            if loaded.data is not None:
                saved = storage.save_year_schedule(rollup_totals(loaded.data))
                if not saved.success:
                    raise MigrationError(f"Cannot write {key}: {saved.error.message}", "0.9.0")
        elif kind == "day":
            loaded = storage.load_day_schedule(key.rsplit("_", 1)[-1])
            if not loaded.success:
                raise MigrationError(f"Cannot read {key}: {loaded.error.message}", "0.9.0")
            if loaded.data is not None:
                day = build_day_schedule(loaded.data.date, loaded.data.todo_items)
                saved = storage.save_day_schedule(day)
                if not saved.success:
                    raise MigrationError(f"Cannot write {key}: {saved.error.message}", "0.9.0")
    logger.info("Recomputed totals for 0.9.0 data")


MIGRATIONS: Dict[str, Transform] = {
    "0.9.0": migrate_from_090_to_100,
}


class MigrationService:
    """One coherent migration state per storage namespace."""

    def __init__(
        self,
        storage: StorageService,
        current_version: str = CURRENT_SCHEMA_VERSION,
        version_history: Optional[List[str]] = None,
        max_backups: int = DEFAULT_MAX_BACKUPS,
        migrations: Optional[Dict[str, Transform]] = None,
        clock: Optional[SystemClock] = None,
    ):
        self.storage = storage
        self.current_version = current_version
        self.version_history = list(version_history or VERSION_HISTORY)
        self.max_backups = max_backups
        self.migrations = dict(MIGRATIONS if migrations is None else migrations)
        self.clock = clock or storage.clock
        self._last_backup_ms = 0

    # --- keys ---

    @property
    def version_key(self) -> str:
        return f"{self.storage.prefix}_migration_version"

    @property
    def migration_backup_prefix(self) -> str:
        return f"{self.storage.prefix}_backup_"

    @property
    def manual_backup_prefix(self) -> str:
        return f"{self.storage.prefix}_manual_backup_"

    # --- versions ---

    def get_current_version(self) -> str:
        return self.current_version

    def get_stored_version(self) -> Optional[str]:
        return self.storage.read_raw(self.version_key)

    def get_version_history(self) -> List[str]:
        return list(self.version_history)

    def check_and_migrate(self) -> StorageResponse[None]:
        """
        Bring the stored data to the current schema version.

        No marker: fresh install, write the marker and stop. Stale marker: back
        up, transform, then bump the marker. A failure leaves the marker
        untouched so the next start retries the same migration.
        """
        try:
            stored = self.get_stored_version()
            if not stored:
                self.storage.write_raw(self.version_key, self.current_version)
                logger.info("Fresh install, schema version set to %s", self.current_version)
                return StorageResponse.ok(None)

            if stored == self.current_version:
                return StorageResponse.ok(None)

            result = self._perform_migration(stored, self.current_version)
            if result.success:
                self.storage.write_raw(self.version_key, self.current_version)
                logger.info("Schema version advanced %s -> %s", stored, self.current_version)
            return result
        except Exception as e:
            return self._failure(e, "Migration check failed")

    def _perform_migration(self, from_version: str, to_version: str) -> StorageResponse[None]:
        try:
            backup = self._write_backup(BackupKind.MIGRATION, from_version)
            if not backup.success:
                raise MigrationError(
                    f"Failed to create backup before migration: {backup.error.message}",
                    from_version,
                )

            transform = self.migrations.get(from_version)
            if transform is None:
                logger.warning("No migration path defined from %s to %s", from_version, to_version)
            else:
                logger.info("Migrating %s -> %s", from_version, to_version)
                transform(self.storage)

            return StorageResponse.ok(None)
        except Exception as e:
            return self._failure(e, "Migration failed")

    # --- backups ---

    def create_backup(self, label: Optional[str] = None) -> StorageResponse[str]:
        return self._write_backup(BackupKind.MANUAL, label or "manual")

    def write_backup(self, kind: BackupKind, label: str) -> StorageResponse[str]:
        """Write a backup of an arbitrary kind (used by provider migrations)."""
        return self._write_backup(kind, label)

    def _write_backup(self, kind: BackupKind, label: str) -> StorageResponse[str]:
        try:
            exported = self.storage.export_data()
            if not exported.success:
                raise MigrationError(f"Failed to export data for backup: {exported.error.message}")

            prefix = self.manual_backup_prefix if kind == BackupKind.MANUAL else self.migration_backup_prefix
            key = f"{prefix}{label}_{self._next_backup_ms()}"
            self.storage.write_raw(key, exported.data)
            logger.info("Created %s backup %s", kind.value, key)
            return StorageResponse.ok(key)
        except Exception as e:
            return self._failure(e, "Failed to create backup")

    def _next_backup_ms(self) -> int:
        # Strictly increasing so two backups in the same millisecond still sort.
        now = self.clock.epoch_millis()
        if now <= self._last_backup_ms:
            now = self._last_backup_ms + 1
        self._last_backup_ms = now
        return now

    def list_backups(self) -> List[BackupRecord]:
        """Every backup under the namespace, most recent first."""
        backups: List[BackupRecord] = []
        for key in self.storage.namespaced_keys():
            if key.startswith(self.manual_backup_prefix):
                kind = BackupKind.MANUAL
            elif key.startswith(self.migration_backup_prefix):
                kind = BackupKind.MIGRATION
            else:
                continue
            try:
                timestamp = int(key.rsplit("_", 1)[-1])
            except ValueError:
                logger.warning("Ignoring backup key without timestamp: %s", key)
                continue
            backups.append(BackupRecord(key=key, timestamp=timestamp, kind=kind))

        backups.sort(key=lambda b: b.timestamp, reverse=True)
        return backups

    def restore_from_backup(self, backup_key: str, backup_first: bool = True) -> StorageResponse[None]:
        """
        Import a backup document verbatim. By default the current data is
        backed up first ("pre-restore"), so a restore can itself be undone.
        """
        try:
            document = self.storage.read_raw(backup_key)
            if document is None:
                raise MigrationError(f"Backup {backup_key} not found")

            if backup_first:
                safety = self.create_backup("pre-restore")
                if not safety.success:
                    raise MigrationError(f"Cannot back up current data: {safety.error.message}")

            imported = self.storage.import_data(document)
            if not imported.success:
                raise MigrationError(f"Failed to restore from backup: {imported.error.message}")

            logger.info("Restored backup %s", backup_key)
            self._log_integrity()
            return StorageResponse.ok(None)
        except Exception as e:
            return self._failure(e, "Failed to restore from backup")

    def import_with_backup(self, document: str) -> StorageResponse[None]:
        """Import a document after taking a 'pre-import' backup of current data."""
        try:
            safety = self.create_backup("pre-import")
            if not safety.success:
                raise MigrationError(f"Cannot back up current data: {safety.error.message}")
        except Exception as e:
            return self._failure(e, "Failed to import data")

        imported = self.storage.import_data(document)
        if imported.success:
            self._log_integrity()
        return imported

    def clean_old_backups(self, keep: Optional[int] = None) -> StorageResponse[int]:
        """Keep the N most recent backups, delete the rest."""
        try:
            limit = self.max_backups if keep is None else keep
            to_delete = self.list_backups()[max(limit, 0):]
            for backup in to_delete:
                self.storage.remove_raw(backup.key)
            if to_delete:
                logger.info("Deleted %d old backups", len(to_delete))
            return StorageResponse.ok(len(to_delete))
        except Exception as e:
            return self._failure(e, "Failed to clean old backups")

    # --- integrity ---

    def validate_data_integrity(self, year: Optional[int] = None) -> StorageResponse[IntegrityReport]:
        """
        Structural check of the stored year (default: current year).

        Advisory: success stays True; problems are listed in the report and
        mirrored in a VALIDATION error.
        """
        try:
            expected_year = year if year is not None else self.clock.current_year()
            messages: List[str] = []

            if not self.storage.is_storage_available():
                messages.append("Storage is not available")

            loaded = self.storage.load_year_schedule(expected_year)
            if not loaded.success:
                messages.append(f"Year schedule {expected_year} could not be loaded: {loaded.error.message}")
            elif loaded.data is not None:
                _, year_messages = validate_year_schedule(loaded.data, expected_year)
                messages.extend(year_messages)

            report = IntegrityReport(is_valid=not messages, messages=messages)
            error = None
            if messages:
                error = ServiceError(
                    type=ErrorType.VALIDATION,
                    message="; ".join(messages),
                    timestamp=self.clock.now(),
                    recoverable=True,
                    context=list(messages),
                )
            return StorageResponse.ok(report, error=error)
        except Exception as e:
            return self._failure(e, "Data integrity validation failed")

    def _log_integrity(self) -> None:
        checked = self.validate_data_integrity()
        if checked.success and not checked.data.is_valid:
            logger.warning("Integrity issues after import: %s", "; ".join(checked.data.messages))

    def _failure(self, error: Exception, message: str) -> StorageResponse:
        err = service_error(ErrorType.MIGRATION, error, message, self.clock.now(), recoverable=True)
        logger.error("%s: %s", message, err.message)
        return StorageResponse.fail(err)


def validate_year_schedule(year_schedule: YearSchedule, expected_year: int) -> Tuple[bool, List[str]]:
    """
    Recursive structural check. Never mutates.

    Returns:
        (is_valid, messages); every message names the offending field.
    """
    messages: List[str] = []

    year = getattr(year_schedule, "year", None)
    if not isinstance(year, int) or isinstance(year, bool) or year != expected_year:
        messages.append(f"year should be {expected_year}, got {year!r}")

    months = getattr(year_schedule, "month_schedules", None)
    if not _is_mapping_of(months, MonthSchedule):
        messages.append(f"month_schedules for {expected_year} should map month keys to MonthSchedule")
        return False, messages

    for month_key, month in months.items():
        days = month.day_schedules
        if not _is_mapping_of(days, DaySchedule):
            messages.append(f"day_schedules for {month_key} should map dates to DaySchedule")
            continue

        for day_key, day in days.items():
            if not isinstance(day.todo_items, list):
                messages.append(f"todo_items for {day_key} should be a list")
                continue
            for index, task in enumerate(day.todo_items):
                if not getattr(task, "id", None):
                    messages.append(f"todo_items[{index}] in {day_key} has an empty id")
                if not getattr(task, "title", None):
                    messages.append(f"todo_items[{index}] in {day_key} has an empty title")
                point_value = getattr(task, "point_value", None)
                if not isinstance(point_value, Number) or isinstance(point_value, bool):
                    messages.append(f"todo_items[{index}] in {day_key} has a non-numeric point_value")

    return not messages, messages


def _is_mapping_of(value, entity_type) -> bool:
    # A raw JSON record (dict of dicts) is not a revived mapping.
    if not isinstance(value, dict):
        return False
    return all(isinstance(v, entity_type) for v in value.values())
