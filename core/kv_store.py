"""
Host key-value stores for Schedule Store.

A store is synchronous, holds only string values, and has a bounded capacity.
A write that would exceed the capacity raises QuotaExceededError and leaves the
store unchanged.
"""
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from core.exceptions import CorruptedDataError, QuotaExceededError, StorageError
from core.logger import get_logger

logger = get_logger("kv_store")

DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5MB, same order as a browser localStorage origin


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStore(ABC):
    """Base class for all key-value store providers."""

    provider_type = "abstract"

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES):
        self.max_bytes = max_bytes

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or None when the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Store a value.

        Raises:
            QuotaExceededError: the write would exceed max_bytes.
            StorageError: the provider failed to persist.
        """

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete a key; deleting an absent key is a no-op."""

    @abstractmethod
    def keys(self) -> List[str]:
        """Return every key currently stored."""

    def used_bytes(self) -> int:
        total = 0
        for key in self.keys():
            value = self.get_item(key)
            if value is not None:
                total += _entry_size(key, value)
        return total

    def _check_quota(self, key: str, value: str) -> None:
        current = self.get_item(key)
        freed = _entry_size(key, current) if current is not None else 0
        requested = self.used_bytes() - freed + _entry_size(key, value)
        if requested > self.max_bytes:
            raise QuotaExceededError(key=key, requested_bytes=requested, max_bytes=self.max_bytes)


class MemoryKeyValueStore(KeyValueStore):
    """Volatile store; data is lost when the process exits."""

    provider_type = "memory"

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES, initial: Optional[Dict[str, str]] = None):
        super().__init__(max_bytes)
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class FileKeyValueStore(KeyValueStore):
    """
    Durable store backed by a single JSON object on disk.

    Every mutation rewrites the file through a temp file + os.replace, so a
    crash leaves either the old or the new file, never a torn one.
    """

    provider_type = "file"

    def __init__(self, path: Path, max_bytes: int = DEFAULT_MAX_BYTES):
        super().__init__(max_bytes)
        self.path = Path(path)
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CorruptedDataError(f"Store file is not valid JSON: {e}", key=str(self.path)) from e
        except OSError as e:
            raise StorageError(f"Cannot read store file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CorruptedDataError("Store file must contain a JSON object", key=str(self.path))
        logger.debug("Loaded %d keys from %s", len(data), self.path)
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Cannot write store file {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        updated = dict(self._data)
        updated[key] = value
        self._flush(updated)
        self._data = updated

    def remove_item(self, key: str) -> None:
        if key not in self._data:
            return
        updated = dict(self._data)
        del updated[key]
        self._flush(updated)
        self._data = updated

    def keys(self) -> List[str]:
        return list(self._data.keys())


def create_store(provider: str, path: Optional[Path] = None, max_bytes: int = DEFAULT_MAX_BYTES) -> KeyValueStore:
    """Build a store for the configured provider name."""
    if provider == "memory":
        return MemoryKeyValueStore(max_bytes=max_bytes)
    if provider == "file":
        if path is None:
            raise ValueError("file provider requires a path")
        return FileKeyValueStore(path, max_bytes=max_bytes)
    raise ValueError(f"Unknown storage provider: {provider}")
