import sys
from datetime import datetime
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import core.logger as logger_module  # noqa: E402
from core.clock import SystemClock  # noqa: E402
from core.kv_store import MemoryKeyValueStore  # noqa: E402
from core.migration_service import MigrationService  # noqa: E402
from core.storage_service import StorageService  # noqa: E402


class FakeClock(SystemClock):
    """Fixed wall clock; epoch_millis advances by `step` on every call."""

    def __init__(self, now: datetime = datetime(2026, 3, 14, 9, 30), start_ms: int = 1_700_000_000_000, step: int = 1000):
        self._now = now
        self._ms = start_ms
        self.step = step

    def now(self) -> datetime:
        return self._now

    def epoch_millis(self) -> int:
        value = self._ms
        self._ms += self.step
        return value


@pytest.fixture(autouse=True)
def _isolated_logs(tmp_path, monkeypatch):
    # corruption dumps must not land in the project tree
    monkeypatch.setattr(logger_module, "LOGS_DIR", tmp_path / "logs")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def storage(store, clock):
    return StorageService(store, clock=clock)


@pytest.fixture
def migrations(storage, clock):
    return MigrationService(storage, clock=clock)
