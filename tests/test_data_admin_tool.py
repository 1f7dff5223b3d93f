import json

import pytest

from core.bootstrap import build_services
from core.config_manager import SystemConfig
from core.kv_store import FileKeyValueStore, MemoryKeyValueStore
from core.models import Task, build_day_schedule, empty_year_schedule, put_day_schedule
from tools import data_admin


@pytest.fixture
def services(tmp_path, clock):
    cfg = SystemConfig(DATA_DIR=tmp_path, STORAGE_PROVIDER="memory")
    services = build_services(cfg, store=MemoryKeyValueStore(), clock=clock)
    schedule = put_day_schedule(
        empty_year_schedule(2026),
        build_day_schedule("2026-03-14", [Task(id="t1", title="Write", point_value=3)]),
    )
    services.storage.save_year_schedule(schedule)
    return services


def test_status(services, capsys):
    assert data_admin.main(["status"], services=services) == 0

    out = capsys.readouterr().out
    assert "[status] provider=memory" in out
    assert "stored_version=None current_version=1.0.0" in out
    assert "entities=1 backups=0" in out


def test_migrate(services, capsys):
    assert data_admin.main(["migrate"], services=services) == 0

    assert "[migrate] uninitialized -> 1.0.0" in capsys.readouterr().out


def test_export_to_file_and_import(services, tmp_path, capsys):
    out_file = tmp_path / "exports" / "dump.json"
    assert data_admin.main(["export", "--out", str(out_file)], services=services) == 0
    assert "todo_app_year_2026" in json.loads(out_file.read_text(encoding="utf-8"))

    services.storage.clear_all_data()
    assert data_admin.main(["import", str(out_file)], services=services) == 0
    assert services.storage.load_year_schedule(2026).data.total_year_points == 3
    assert "[import] imported" in capsys.readouterr().out


def test_import_missing_file(services, tmp_path, capsys):
    assert data_admin.main(["import", str(tmp_path / "nope.json")], services=services) == 1
    assert "file not found" in capsys.readouterr().out


def test_import_bad_document(services, tmp_path, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]", encoding="utf-8")

    assert data_admin.main(["import", str(bad)], services=services) == 1
    assert "[import] failed" in capsys.readouterr().out


def test_backup_list_restore_clean(services, capsys):
    assert data_admin.main(["backup", "--label", "cli"], services=services) == 0
    key = services.migrations.list_backups()[0].key

    assert data_admin.main(["list-backups"], services=services) == 0
    assert key in capsys.readouterr().out

    assert data_admin.main(["restore", key], services=services) == 0
    assert data_admin.main(["clean-backups", "--keep", "0"], services=services) == 0
    assert "[clean] deleted 2 backup(s)" in capsys.readouterr().out
    assert data_admin.main(["list-backups"], services=services) == 0
    assert "[backups] none" in capsys.readouterr().out


def test_restore_unknown_key(services, capsys):
    assert data_admin.main(["restore", "todo_app_manual_backup_x_1"], services=services) == 1
    assert "[restore] failed" in capsys.readouterr().out


def test_validate(services):
    assert data_admin.main(["validate", "--year", "2026"], services=services) == 0

    services.storage.write_raw("todo_app_year_2026", "garbage")
    assert data_admin.main(["validate", "--year", "2026"], services=services) == 1


def test_reset_requires_confirmation(services, capsys):
    services.migrations.check_and_migrate()
    services.migrations.create_backup()

    assert data_admin.main(["reset"], services=services) == 1
    assert len(services.storage.namespaced_keys()) == 3

    assert data_admin.main(["reset", "--yes"], services=services) == 0
    assert services.storage.namespaced_keys() == []


def test_move_provider_with_verify(services, tmp_path, capsys):
    dest = tmp_path / "moved" / "store.json"

    assert data_admin.main(["move-provider", "--dest", str(dest), "--verify"], services=services) == 0

    out = capsys.readouterr().out
    assert "[move] 1 item(s) memory ->" in out
    assert "[verify] identical=True" in out
    assert FileKeyValueStore(dest).keys() == ["todo_app_year_2026"]
    assert services.migrations.list_backups()[0].kind.value == "migration"
