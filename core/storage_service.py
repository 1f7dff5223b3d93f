"""
Storage Service for Schedule Store.

Persists Schedule Model entities in a host key-value store:
- owns key naming (<prefix>_year_<YYYY>, <prefix>_day_<YYYY-MM-DD>)
- serializes entities through a pluggable codec
- exports/imports the whole dataset as one JSON document
- reports failures as StorageResponse errors instead of raising
"""
import json
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from core.clock import SystemClock
from core.codec import Codec, EscapeCodec
from core.exceptions import CorruptedDataError
from core.kv_store import KeyValueStore
from core.logger import get_logger, log_corruption
from core.models import DaySchedule, YearSchedule
from core.responses import ErrorType, StorageInfo, StorageResponse, service_error
from core.serialization import (
    day_to_record,
    revive_day_schedule,
    revive_year_schedule,
    year_to_record,
)

logger = get_logger("storage")

DEFAULT_PREFIX = "todo_app"
AVAILABILITY_PROBE_KEY = "__storage_test__"

YEAR = "year"
DAY = "day"


class StorageService:
    """Versionless persistence of YearSchedule / DaySchedule entities."""

    def __init__(
        self,
        store: KeyValueStore,
        codec: Optional[Codec] = None,
        prefix: str = DEFAULT_PREFIX,
        clock: Optional[SystemClock] = None,
    ):
        self.store = store
        self.codec = codec or EscapeCodec()
        self.prefix = prefix
        self.clock = clock or SystemClock()

    # --- key naming ---

    def storage_key(self, kind: str, identifier: str) -> str:
        return f"{self.prefix}_{kind}_{identifier}"

    def year_key(self, year: int) -> str:
        return self.storage_key(YEAR, str(year))

    def day_key(self, day: Union[str, date, datetime]) -> str:
        return self.storage_key(DAY, _iso_day(day))

    def namespaced_keys(self) -> List[str]:
        marker = f"{self.prefix}_"
        return [k for k in self.store.keys() if k.startswith(marker)]

    def entity_kind(self, key: str) -> Optional[str]:
        """Return 'year' / 'day' for entity keys, None for anything else."""
        for kind in (YEAR, DAY):
            if key.startswith(f"{self.prefix}_{kind}_"):
                return kind
        return None

    def entity_keys(self) -> List[str]:
        return [k for k in self.namespaced_keys() if self.entity_kind(k) is not None]

    # --- year / day ---

    def save_year_schedule(self, year_schedule: YearSchedule) -> StorageResponse[YearSchedule]:
        try:
            self._put(self.year_key(year_schedule.year), year_to_record(year_schedule))
            return StorageResponse.ok(year_schedule)
        except Exception as e:
            return self._failure(e, "Failed to save year schedule")

    def load_year_schedule(self, year: int) -> StorageResponse[Optional[YearSchedule]]:
        key = self.year_key(year)
        try:
            record = self._get(key)
            if record is None:
                return StorageResponse.ok(None)
            return StorageResponse.ok(self._revive(key, record, revive_year_schedule))
        except Exception as e:
            return self._failure(e, "Failed to load year schedule")

    def save_day_schedule(self, day_schedule: DaySchedule) -> StorageResponse[DaySchedule]:
        try:
            self._put(self.day_key(day_schedule.date), day_to_record(day_schedule))
            return StorageResponse.ok(day_schedule)
        except Exception as e:
            return self._failure(e, "Failed to save day schedule")

    def load_day_schedule(self, day: Union[str, date, datetime]) -> StorageResponse[Optional[DaySchedule]]:
        try:
            key = self.day_key(day)
            record = self._get(key)
            if record is None:
                return StorageResponse.ok(None)
            return StorageResponse.ok(self._revive(key, record, revive_day_schedule))
        except Exception as e:
            return self._failure(e, "Failed to load day schedule")

    # --- bulk ---

    def export_data(self) -> StorageResponse[str]:
        """
        Export every entity under the prefix as one JSON object.

        Values are normalised records (decoded, revived, re-serialized), never
        the store's encoded strings. The version marker and backup keys are
        left out, so a backup never contains earlier backups and import or
        clear leave them in place.
        """
        try:
            document: Dict[str, Any] = {}
            for key in sorted(self.entity_keys()):
                record = self._get(key)
                if record is None:
                    continue
                entity = self._revive(key, record, _REVIVERS[self.entity_kind(key)])
                document[key] = _RECORDERS[self.entity_kind(key)](entity)
            logger.info("Exported %d entries", len(document))
            return StorageResponse.ok(json.dumps(document, ensure_ascii=False, sort_keys=True))
        except Exception as e:
            return self._failure(e, "Failed to export data")

    def import_data(self, document: str) -> StorageResponse[None]:
        """
        Replace all entities with the contents of an export document.

        The whole document is parsed and revived before anything is touched.
        Writes after that are not transactional: a failure partway leaves a mix
        of old and new keys.
        """
        try:
            entries = self._parse_import(document)
        except Exception as e:
            return self._failure(e, "Failed to import data")

        cleared = self.clear_all_data()
        if not cleared.success:
            return cleared

        written = 0
        try:
            for key, record in entries:
                self._put(key, record)
                written += 1
        except Exception as e:
            logger.error("Import stopped after %d of %d entries", written, len(entries))
            return self._failure(e, "Failed to import data")

        logger.info("Imported %d entries", written)
        return StorageResponse.ok(None)

    def clear_all_data(self, include_metadata: bool = False) -> StorageResponse[None]:
        """
        Delete every entity key. With include_metadata, delete every namespaced
        key, including the version marker and backups.
        """
        try:
            keys = self.namespaced_keys() if include_metadata else self.entity_keys()
            for key in keys:
                self.store.remove_item(key)
            logger.info("Cleared %d keys (include_metadata=%s)", len(keys), include_metadata)
            return StorageResponse.ok(None)
        except Exception as e:
            return self._failure(e, "Failed to clear data")

    # --- utility ---

    def is_storage_available(self) -> bool:
        """Pre-flight probe. The store can still fail afterwards."""
        try:
            self.store.set_item(AVAILABILITY_PROBE_KEY, AVAILABILITY_PROBE_KEY)
            self.store.remove_item(AVAILABILITY_PROBE_KEY)
            return True
        except Exception:
            logger.warning("Storage availability probe failed", exc_info=True)
            return False

    def get_storage_info(self) -> StorageInfo:
        used = self.store.used_bytes()
        return StorageInfo(
            used=used,
            available=max(self.store.max_bytes - used, 0),
            type=self.store.provider_type,
        )

    # --- raw access for metadata (version marker, backups) ---

    def read_raw(self, key: str) -> Optional[str]:
        return self.store.get_item(key)

    def write_raw(self, key: str, value: str) -> None:
        self.store.set_item(key, value)

    def remove_raw(self, key: str) -> None:
        self.store.remove_item(key)

    # --- internals ---

    def _put(self, key: str, record: Dict[str, Any]) -> None:
        payload = self.codec.compress(json.dumps(record, ensure_ascii=False))
        self.store.set_item(key, payload)

    def _get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self.store.get_item(key)
        if raw is None:
            return None
        try:
            record = json.loads(self.codec.decompress(raw))
        except Exception as e:
            log_corruption(key, raw, f"cannot decode: {e}")
            raise CorruptedDataError(f"Stored value for {key} cannot be decoded", key=key, raw=raw) from e
        # None is reserved for an absent key; a stored null is corruption
        if not isinstance(record, dict):
            log_corruption(key, raw, f"expected a JSON object, got {type(record).__name__}")
            raise CorruptedDataError(f"Stored value for {key} is not a JSON object", key=key, raw=raw)
        return record

    def _revive(self, key: str, record: Any, reviver):
        try:
            return reviver(record)
        except CorruptedDataError as e:
            log_corruption(key, json.dumps(record, default=str), e.message)
            e.key = key
            raise
        except (TypeError, ValueError) as e:
            log_corruption(key, json.dumps(record, default=str), str(e))
            raise CorruptedDataError(f"Stored value for {key} is malformed: {e}", key=key) from e

    def _parse_import(self, document: str) -> List[Tuple[str, Dict[str, Any]]]:
        try:
            parsed = json.loads(document)
        except (TypeError, json.JSONDecodeError) as e:
            raise CorruptedDataError(f"Import document is not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise CorruptedDataError("Import document must be a JSON object")

        entries: List[Tuple[str, Dict[str, Any]]] = []
        for key, value in parsed.items():
            kind = self.entity_kind(key)
            if kind is None:
                logger.warning("Skipping non-schedule key in import: %s", key)
                continue
            try:
                entity = _REVIVERS[kind](value)
            except (TypeError, ValueError) as e:
                raise CorruptedDataError(f"Import entry {key} is malformed: {e}", key=key) from e
            expected = self.year_key(entity.year) if kind == YEAR else self.day_key(entity.date)
            if expected != key:
                raise CorruptedDataError(f"Import entry {key} holds data for {expected}", key=key)
            entries.append((key, _RECORDERS[kind](entity)))
        if parsed and not entries:
            raise CorruptedDataError(
                f"Import document has {len(parsed)} entries but none under {self.prefix}_year_ or {self.prefix}_day_"
            )
        return entries

    def _failure(self, error: Exception, message: str) -> StorageResponse:
        err = service_error(ErrorType.STORAGE, error, message, self.clock.now())
        if err.recoverable:
            logger.warning("%s: %s", message, err.message)
        else:
            logger.error("%s: %s", message, err.message)
        return StorageResponse.fail(err)


_REVIVERS = {YEAR: revive_year_schedule, DAY: revive_day_schedule}
_RECORDERS = {YEAR: year_to_record, DAY: day_to_record}


def _iso_day(day: Union[str, date, datetime]) -> str:
    if isinstance(day, datetime):
        return day.date().isoformat()
    if isinstance(day, date):
        return day.isoformat()
    return str(day)
