"""
Schedule Store data administration.

Usage:
    python tools/data_admin.py status
    python tools/data_admin.py migrate
    python tools/data_admin.py export --out backup.json
    python tools/data_admin.py import backup.json
    python tools/data_admin.py backup --label before-cleanup
    python tools/data_admin.py list-backups
    python tools/data_admin.py restore todo_app_manual_backup_x_1700000000000
    python tools/data_admin.py clean-backups --keep 5
    python tools/data_admin.py validate --year 2026
    python tools/data_admin.py reset --yes
    python tools/data_admin.py move-provider --dest /tmp/other_store.json --verify
"""
# ruff: noqa: E402
from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.bootstrap import Services, build_services
from core.config_manager import get_config
from core.kv_store import FileKeyValueStore
from core.logger import setup_logging
from core.provider_migration import ProviderMigration
from core.storage_service import StorageService


def _print_error(tag: str, response) -> int:
    print(f"[{tag}] failed: {response.error.message}")
    return 1


def cmd_status(services: Services) -> int:
    info = services.storage.get_storage_info()
    migrations = services.migrations
    print(f"[status] provider={info.type} used={info.used} available={info.available}")
    print(f"[status] storage_available={services.storage.is_storage_available()}")
    print(f"[status] stored_version={migrations.get_stored_version()} current_version={migrations.get_current_version()}")
    print(f"[status] entities={len(services.storage.entity_keys())} backups={len(migrations.list_backups())}")
    return 0


def cmd_migrate(services: Services) -> int:
    before = services.migrations.get_stored_version()
    result = services.migrations.check_and_migrate()
    if not result.success:
        return _print_error("migrate", result)
    print(f"[migrate] {before or 'uninitialized'} -> {services.migrations.get_stored_version()}")
    return 0


def cmd_export(services: Services, out: Optional[Path]) -> int:
    result = services.storage.export_data()
    if not result.success:
        return _print_error("export", result)
    if out is None:
        print(result.data)
        return 0
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(result.data, encoding="utf-8")
    print(f"[export] wrote {out}")
    return 0


def cmd_import(services: Services, src: Path) -> int:
    if not src.exists():
        print(f"[import] file not found: {src}")
        return 1
    result = services.migrations.import_with_backup(src.read_text(encoding="utf-8"))
    if not result.success:
        return _print_error("import", result)
    print(f"[import] imported {src}")
    return 0


def cmd_backup(services: Services, label: Optional[str]) -> int:
    result = services.migrations.create_backup(label)
    if not result.success:
        return _print_error("backup", result)
    print(f"[backup] {result.data}")
    return 0


def cmd_list_backups(services: Services) -> int:
    backups = services.migrations.list_backups()
    if not backups:
        print("[backups] none")
        return 0
    for b in backups:
        created = datetime.fromtimestamp(b.timestamp / 1000).isoformat(timespec="seconds")
        print(f"[backups] {created} {b.kind.value:<9} {b.key}")
    return 0


def cmd_restore(services: Services, key: str) -> int:
    result = services.migrations.restore_from_backup(key)
    if not result.success:
        return _print_error("restore", result)
    print(f"[restore] restored {key}")
    return 0


def cmd_clean_backups(services: Services, keep: Optional[int]) -> int:
    result = services.migrations.clean_old_backups(keep)
    if not result.success:
        return _print_error("clean", result)
    print(f"[clean] deleted {result.data} backup(s)")
    return 0


def cmd_validate(services: Services, year: Optional[int]) -> int:
    result = services.migrations.validate_data_integrity(year)
    if not result.success:
        return _print_error("validate", result)
    for message in result.data.messages:
        print(f"[validate] {message}")
    print(f"[validate] valid={result.data.is_valid}")
    return 0 if result.data.is_valid else 1


def cmd_reset(services: Services, confirmed: bool) -> int:
    if not confirmed:
        print("[reset] refusing to delete everything without --yes")
        return 1
    result = services.storage.clear_all_data(include_metadata=True)
    if not result.success:
        return _print_error("reset", result)
    print("[reset] all namespaced keys deleted")
    return 0


def cmd_move_provider(services: Services, dest: Path, verify: bool) -> int:
    target = StorageService(
        FileKeyValueStore(dest, max_bytes=services.config.STORAGE_MAX_BYTES),
        codec=services.storage.codec,
        prefix=services.storage.prefix,
        clock=services.storage.clock,
    )
    mover = ProviderMigration(services.storage, target)

    backup = mover.create_migration_backup()
    if not backup.success:
        return _print_error("move", backup)
    print(f"[backup] {backup.data}")

    result = mover.migrate_data()
    if not result.success:
        for error in result.errors:
            print(f"[move] error: {error}")
        return 1
    print(f"[move] {result.items_migrated} item(s) {result.from_provider} -> {dest} in {result.duration_ms}ms")

    if verify:
        check = mover.validate_migration()
        if not check.success:
            return _print_error("verify", check)
        print(f"[verify] identical={check.data}")
        return 0 if check.data else 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Schedule Store data administration.")
    parser.add_argument("--data-dir", type=Path, default=None, help="override the data directory")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="show storage and version status")
    sub.add_parser("migrate", help="run pending schema migrations")

    p = sub.add_parser("export", help="export all schedules as JSON")
    p.add_argument("--out", type=Path, default=None, help="output file (default: stdout)")

    p = sub.add_parser("import", help="replace all schedules from an export file")
    p.add_argument("file", type=Path)

    p = sub.add_parser("backup", help="create a manual backup")
    p.add_argument("--label", default=None)

    sub.add_parser("list-backups", help="list backups, most recent first")

    p = sub.add_parser("restore", help="restore a backup by key")
    p.add_argument("key")

    p = sub.add_parser("clean-backups", help="delete all but the most recent backups")
    p.add_argument("--keep", type=int, default=None)

    p = sub.add_parser("validate", help="check structural integrity of a year")
    p.add_argument("--year", type=int, default=None)

    p = sub.add_parser("reset", help="delete every namespaced key, including backups")
    p.add_argument("--yes", action="store_true", help="confirm the destructive reset")

    p = sub.add_parser("move-provider", help="copy the dataset into another store file")
    p.add_argument("--dest", type=Path, required=True)
    p.add_argument("--verify", action="store_true", help="compare both exports afterwards")

    return parser


def main(argv: Optional[List[str]] = None, services: Optional[Services] = None) -> int:
    args = build_parser().parse_args(argv)

    if services is None:
        setup_logging()
        cfg = get_config()
        if args.data_dir is not None:
            cfg.DATA_DIR = args.data_dir
        services = build_services(cfg)

    if args.command == "status":
        return cmd_status(services)
    if args.command == "migrate":
        return cmd_migrate(services)
    if args.command == "export":
        return cmd_export(services, args.out)
    if args.command == "import":
        return cmd_import(services, args.file)
    if args.command == "backup":
        return cmd_backup(services, args.label)
    if args.command == "list-backups":
        return cmd_list_backups(services)
    if args.command == "restore":
        return cmd_restore(services, args.key)
    if args.command == "clean-backups":
        return cmd_clean_backups(services, args.keep)
    if args.command == "validate":
        return cmd_validate(services, args.year)
    if args.command == "reset":
        return cmd_reset(services, args.yes)
    if args.command == "move-provider":
        return cmd_move_provider(services, args.dest, args.verify)
    return 2


if __name__ == "__main__":
    sys.exit(main())
