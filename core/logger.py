"""
Schedule Store logging setup.

Log policy:
- logs/system.log: routine operations (INFO+)
- logs/error.log: stack traces (ERROR/CRITICAL)
- logs/corruption_dump.log: raw values that could not be decoded
- console: only what the user needs to see (WARNING+)

RotatingFileHandler keeps the files bounded.
"""
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from core.paths import get_logs_dir

LOGS_DIR = get_logs_dir()
ROOT_LOGGER_NAME = "schedule_store"

MAX_BYTES = 5 * 1024 * 1024  # 5MB
BACKUP_COUNT = 3
RAW_DUMP_CHARS = 500

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"


def _rotating_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    console_level: int = logging.WARNING,
    logs_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Initialise logging for the schedule_store namespace.

    Args:
        log_level: system.log level (default INFO)
        console_level: stderr level (default WARNING)
        logs_dir: override for the log directory

    Returns:
        The configured package root logger.
    """
    target_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)  # handlers do the filtering
    root.handlers.clear()  # setup_logging may run twice (app + tool)

    root.addHandler(_rotating_handler(target_dir / "system.log", log_level))
    root.addHandler(_rotating_handler(target_dir / "error.log", logging.ERROR))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Module logger under the package namespace.

    Args:
        name: module name, e.g. "storage", "migration"
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)


def log_corruption(key: str, raw_value: Optional[str], error_msg: str) -> None:
    """
    Append an unreadable store entry to corruption_dump.log.

    Args:
        key: store key of the corrupted entry
        raw_value: stored string, truncated in the dump
        error_msg: what went wrong
    """
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().isoformat()
    with open(LOGS_DIR / "corruption_dump.log", "a", encoding="utf-8") as f:
        f.write(f"[{stamp}] {key}: {error_msg}\n")
        f.write(f"  raw: {(raw_value or '')[:RAW_DUMP_CHARS]}\n")
        f.write("-" * 50 + "\n")

    get_logger("storage").warning("Corrupted entry %s: %s", key, error_msg)
