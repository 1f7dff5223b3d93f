"""
Bootstrap module for Schedule Store.

Composition root (config -> store -> services) and the start-up sequence:
migrate, rotate backups, validate, then load the current year or start empty.
"""
from dataclasses import dataclass
from typing import Optional

from core.clock import SystemClock
from core.codec import get_codec
from core.config_manager import SystemConfig, config as default_config
from core.kv_store import KeyValueStore, create_store
from core.logger import get_logger
from core.migration_service import MigrationService
from core.models import YearSchedule, empty_year_schedule
from core.responses import IntegrityReport, ServiceError, StorageResponse
from core.storage_service import StorageService

logger = get_logger("bootstrap")


@dataclass
class Services:
    config: SystemConfig
    storage: StorageService
    migrations: MigrationService


@dataclass
class BootReport:
    year_schedule: YearSchedule
    migration: StorageResponse
    integrity: Optional[IntegrityReport] = None
    backups_deleted: int = 0
    load_error: Optional[ServiceError] = None


def build_services(
    cfg: Optional[SystemConfig] = None,
    store: Optional[KeyValueStore] = None,
    clock: Optional[SystemClock] = None,
) -> Services:
    """
    Wire the services from configuration.

    store and clock are injectable so tests and tools can swap them.
    """
    cfg = cfg or default_config
    clock = clock or SystemClock()
    if store is None:
        store = create_store(cfg.STORAGE_PROVIDER, cfg.store_path, max_bytes=cfg.STORAGE_MAX_BYTES)

    storage = StorageService(store, codec=get_codec(cfg.CODEC), prefix=cfg.STORAGE_PREFIX, clock=clock)
    migrations = MigrationService(
        storage,
        current_version=cfg.CURRENT_SCHEMA_VERSION,
        version_history=cfg.VERSION_HISTORY,
        max_backups=cfg.MAX_BACKUPS,
        clock=clock,
    )
    return Services(config=cfg, storage=storage, migrations=migrations)


def boot(services: Services, year: Optional[int] = None) -> BootReport:
    """
    Run the start-up sequence. Never raises for storage problems: a failed
    migration or an unreadable year is logged and the app starts with an
    empty schedule.
    """
    storage = services.storage
    migrations = services.migrations
    target_year = year if year is not None else storage.clock.current_year()

    migrated = migrations.check_and_migrate()
    if not migrated.success:
        logger.error("Migration failed, will retry next start: %s", migrated.error.message)

    deleted = 0
    cleaned = migrations.clean_old_backups()
    if cleaned.success:
        deleted = cleaned.data
    else:
        logger.warning("Backup rotation failed: %s", cleaned.error.message)

    integrity = None
    checked = migrations.validate_data_integrity(target_year)
    if checked.success:
        integrity = checked.data
        if not integrity.is_valid:
            logger.warning("Data integrity issues: %s", "; ".join(integrity.messages))

    loaded = storage.load_year_schedule(target_year)
    load_error = None
    if not loaded.success:
        load_error = loaded.error
        logger.error("Falling back to an empty %d schedule: %s", target_year, loaded.error.message)
        year_schedule = empty_year_schedule(target_year)
    elif loaded.data is None:
        logger.info("No schedule stored for %d, starting empty", target_year)
        year_schedule = empty_year_schedule(target_year)
    else:
        year_schedule = loaded.data

    return BootReport(
        year_schedule=year_schedule,
        migration=migrated,
        integrity=integrity,
        backups_deleted=deleted,
        load_error=load_error,
    )
