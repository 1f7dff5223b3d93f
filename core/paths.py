"""
Filesystem locations: the durable store lives under the data dir, logs and
corruption dumps under the logs dir. Both can be redirected by environment.
"""
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent


def _env_path(name: str) -> Path:
    raw = os.getenv(name, "").strip()
    return Path(raw).expanduser() if raw else None


def get_data_dir() -> Path:
    """SCHEDULE_STORE_DATA_DIR, else <project_root>/data."""
    return _env_path("SCHEDULE_STORE_DATA_DIR") or PROJECT_ROOT / "data"


def get_logs_dir() -> Path:
    """SCHEDULE_STORE_LOG_DIR, else <project_root>/logs."""
    return _env_path("SCHEDULE_STORE_LOG_DIR") or PROJECT_ROOT / "logs"
