"""
Configuration Manager for Schedule Store.

Central place for storage and migration constants. Defaults live in
SystemConfig; config/runtime.yaml overrides them when present.

Usage:
    from core.config_manager import config
    prefix = config.STORAGE_PREFIX
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from core.paths import PROJECT_ROOT, get_data_dir

CONFIG_DIR = PROJECT_ROOT / "config"
RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass
class SystemConfig:
    """Runtime constants."""

    # === Storage ===

    # Namespace prefix for every key this service writes
    STORAGE_PREFIX: str = "todo_app"

    # "file" (durable JSON file) or "memory" (volatile)
    STORAGE_PROVIDER: str = "file"

    # Store capacity; writes beyond it fail with a recoverable quota error
    STORAGE_MAX_BYTES: int = 5 * 1024 * 1024

    # File name of the durable store inside the data directory
    STORE_FILENAME: str = "schedule_store.json"

    # Value codec: "identity", "escape" or "zlib"
    CODEC: str = "escape"

    # === Migration ===

    CURRENT_SCHEMA_VERSION: str = "1.0.0"
    VERSION_HISTORY: List[str] = field(default_factory=lambda: ["0.9.0", "1.0.0"])

    # Backups kept by rotation
    MAX_BACKUPS: int = 5

    # === Paths ===

    DATA_DIR: Optional[Path] = None

    def __post_init__(self):
        if self.DATA_DIR is None:
            self.DATA_DIR = get_data_dir()

    @property
    def store_path(self) -> Path:
        return Path(self.DATA_DIR) / self.STORE_FILENAME


def _load_runtime_config(path: Path = RUNTIME_CONFIG_PATH) -> dict:
    """Load runtime overrides if the file exists."""
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError):
        return {}


def get_config(path: Path = RUNTIME_CONFIG_PATH) -> SystemConfig:
    """
    Build the configuration.

    Priority: runtime.yaml > defaults
    """
    base = SystemConfig()
    overrides = _load_runtime_config(path)

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)
    if isinstance(base.DATA_DIR, str):
        base.DATA_DIR = Path(base.DATA_DIR).expanduser()

    return base


def get_server_settings() -> dict:
    """HTTP server settings from environment variables."""
    raw_origins = os.getenv("SCHEDULE_STORE_ALLOWED_ORIGINS", "*")
    return {
        "host": os.getenv("SCHEDULE_STORE_HOST", "127.0.0.1"),
        "port": int(os.getenv("SCHEDULE_STORE_PORT", "8010")),
        "allowed_origins": [o.strip() for o in raw_origins.split(",") if o.strip()],
    }


# global instance
config = get_config()
