"""
Provider-to-provider migration.

Moves the whole dataset from one storage backend to another: export from the
source, import into the target, then optionally compare the two re-exports
byte for byte.
"""
import json
import time
from typing import List

from core.exceptions import MigrationError
from core.logger import get_logger
from core.migration_service import MigrationService
from core.models import BackupKind
from core.responses import ErrorType, MigrationResult, ServiceError, StorageResponse
from core.storage_service import StorageService

logger = get_logger("provider_migration")


class ProviderMigration:
    def __init__(self, source: StorageService, target: StorageService):
        self.source = source
        self.target = target

    @property
    def source_type(self) -> str:
        return self.source.store.provider_type

    @property
    def target_type(self) -> str:
        return self.target.store.provider_type

    def migrate_data(self) -> MigrationResult:
        start = time.monotonic()
        errors: List[str] = []
        items = 0
        logger.info("Starting migration from %s to %s", self.source_type, self.target_type)

        try:
            exported = self.source.export_data()
            if not exported.success:
                raise MigrationError(f"Failed to export from source: {exported.error.message}")

            items = len(json.loads(exported.data))

            imported = self.target.import_data(exported.data)
            if not imported.success:
                raise MigrationError(f"Failed to import to target: {imported.error.message}")
        except MigrationError as e:
            errors.append(e.message)
            logger.error("Provider migration failed: %s", e.message)
            return MigrationResult(
                success=False,
                from_provider=self.source_type,
                to_provider=self.target_type,
                items_migrated=0,
                errors=errors,
                duration_ms=_elapsed_ms(start),
            )

        logger.info("Migrated %d items from %s to %s", items, self.source_type, self.target_type)
        return MigrationResult(
            success=True,
            from_provider=self.source_type,
            to_provider=self.target_type,
            items_migrated=items,
            errors=errors,
            duration_ms=_elapsed_ms(start),
        )

    def validate_migration(self) -> StorageResponse[bool]:
        """True when source and target export to identical documents."""
        source_export = self.source.export_data()
        target_export = self.target.export_data()
        if not source_export.success or not target_export.success:
            return StorageResponse.fail(
                ServiceError(
                    type=ErrorType.MIGRATION,
                    message="Failed to export data for validation",
                    timestamp=self.source.clock.now(),
                    recoverable=True,
                    context=source_export.error or target_export.error,
                ),
                data=False,
            )
        return StorageResponse.ok(source_export.data == target_export.data)

    def create_migration_backup(self, label: str = "pre-migration") -> StorageResponse[str]:
        """Back up the source dataset into the source store."""
        backups = MigrationService(self.source)
        return backups.write_backup(BackupKind.MIGRATION, f"{self.source_type}-{label}")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
