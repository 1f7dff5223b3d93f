import json

import pytest
from fastapi.testclient import TestClient

from core.bootstrap import build_services
from core.config_manager import SystemConfig
from core.kv_store import MemoryKeyValueStore
from core.models import empty_year_schedule
from core.serialization import year_to_record
from web.backend.app import create_app

BASE = "/api/v1/data"


def _client(tmp_path, clock, store=None):
    cfg = SystemConfig(DATA_DIR=tmp_path, STORAGE_PROVIDER="memory")
    services = build_services(cfg, store=store or MemoryKeyValueStore(), clock=clock)
    return TestClient(create_app(services)), services


@pytest.fixture
def client(tmp_path, clock):
    test_client, _ = _client(tmp_path, clock)
    return test_client


def _day_payload() -> dict:
    return {
        "todoItems": [
            {"id": "t1", "title": "Write", "pointValue": 3, "isCompleted": True},
            {"id": "t2", "title": "Run", "description": "5k", "pointValue": 5},
        ]
    }


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_status(client):
    client.post(f"{BASE}/migrate")

    payload = client.get(f"{BASE}/status").json()

    assert payload["available"] is True
    assert payload["storage"]["type"] == "memory"
    assert payload["current_version"] == "1.0.0"
    assert payload["stored_version"] == "1.0.0"
    assert payload["version_history"] == ["0.9.0", "1.0.0"]
    assert payload["backups"] == 0


def test_missing_year_returns_empty_schedule(client):
    response = client.get(f"{BASE}/years/2026")

    assert response.status_code == 200
    assert response.json() == year_to_record(empty_year_schedule(2026))


def test_year_out_of_range(client):
    assert client.get(f"{BASE}/years/1800").status_code == 400


def test_put_day_updates_day_and_year(client):
    response = client.put(f"{BASE}/days/2026-03-14", json=_day_payload())

    assert response.status_code == 200
    day = response.json()
    assert day["totalPointValue"] == 8
    assert day["totalCompletedPointValue"] == 3
    assert day["todoItems"][0]["completedAt"] is None
    assert day["todoItems"][0]["createdAt"] is not None

    assert client.get(f"{BASE}/days/2026-03-14").json()["totalPointValue"] == 8
    year = client.get(f"{BASE}/years/2026").json()
    assert year["totalYearPoints"] == 8
    assert year["totalCompletedYearPoints"] == 3
    assert "2026-03-14" in year["monthSchedules"]["2026-03"]["daySchedules"]


def test_put_day_validates_payload(client):
    bad = {"todoItems": [{"id": "t1", "title": "x", "pointValue": 0}]}

    assert client.put(f"{BASE}/days/2026-03-14", json=bad).status_code == 422


def test_missing_day_is_404(client):
    assert client.get(f"{BASE}/days/2026-01-01").status_code == 404


def test_put_year(client):
    record = year_to_record(empty_year_schedule(2026))

    assert client.put(f"{BASE}/years/2026", json=record).status_code == 200
    assert client.put(f"{BASE}/years/2025", json=record).status_code == 400
    assert client.put(f"{BASE}/years/2026", json={"monthSchedules": {}}).status_code == 422


def test_put_year_out_of_range_is_not_stored(client):
    record = year_to_record(empty_year_schedule(3000))

    assert client.put(f"{BASE}/years/3000", json=record).status_code == 400
    assert "todo_app_year_3000" not in client.get(f"{BASE}/export").json()["document"]


def test_export_then_import(client):
    client.put(f"{BASE}/days/2026-03-14", json=_day_payload())
    document = client.get(f"{BASE}/export").json()["document"]
    assert set(json.loads(document)) == {"todo_app_day_2026-03-14", "todo_app_year_2026"}

    empty = json.dumps({})
    assert client.post(f"{BASE}/import", json={"document": empty}).status_code == 200
    assert client.get(f"{BASE}/days/2026-03-14").status_code == 404

    assert client.post(f"{BASE}/import", json={"document": document}).status_code == 200
    assert client.get(f"{BASE}/export").json()["document"] == document


def test_import_rejects_malformed_document(client):
    response = client.post(f"{BASE}/import", json={"document": "not json"})

    assert response.status_code == 422
    assert response.json()["detail"]["type"] == "STORAGE"
    assert response.json()["detail"]["recoverable"] is False


def test_backup_list_restore_and_clean(client):
    client.put(f"{BASE}/days/2026-03-14", json=_day_payload())
    key = client.post(f"{BASE}/backups", json={"label": "api"}).json()["key"]
    assert key.startswith("todo_app_manual_backup_api_")

    client.post(f"{BASE}/import", json={"document": "{}"})
    restored = client.post(f"{BASE}/backups/{key}/restore")
    assert restored.status_code == 200
    assert client.get(f"{BASE}/years/2026").json()["totalYearPoints"] == 8

    backups = client.get(f"{BASE}/backups").json()
    assert len(backups) == 3
    assert backups[0]["timestamp"] > backups[-1]["timestamp"]
    assert {b["kind"] for b in backups} == {"manual"}

    assert client.post(f"{BASE}/backups/clean", json={"keep": 1}).json() == {"deleted": 2}
    assert len(client.get(f"{BASE}/backups").json()) == 1


def test_restore_unknown_backup_is_404(client):
    assert client.post(f"{BASE}/backups/todo_app_manual_backup_x_1/restore").status_code == 404


def test_integrity_endpoint(client):
    client.put(f"{BASE}/days/2026-03-14", json=_day_payload())

    payload = client.get(f"{BASE}/integrity", params={"year": 2026}).json()

    assert payload == {"is_valid": True, "messages": []}


def test_corrupted_year_maps_to_422(tmp_path, clock):
    store = MemoryKeyValueStore(initial={"todo_app_year_2026": "{broken"})
    client, _ = _client(tmp_path, clock, store=store)

    response = client.get(f"{BASE}/years/2026")

    assert response.status_code == 422
    assert response.json()["detail"]["type"] == "STORAGE"


def test_quota_maps_to_507(tmp_path, clock):
    client, _ = _client(tmp_path, clock, store=MemoryKeyValueStore(max_bytes=200))

    response = client.put(f"{BASE}/days/2026-03-14", json=_day_payload())

    assert response.status_code == 507
    assert response.json()["detail"]["recoverable"] is True


def test_migrate_endpoint_runs_pending_migration(tmp_path, clock):
    client, services = _client(tmp_path, clock)
    services.storage.write_raw(services.migrations.version_key, "0.9.0")

    response = client.post(f"{BASE}/migrate")

    assert response.json() == {"stored_version": "1.0.0"}
    assert client.get(f"{BASE}/backups").json()[0]["kind"] == "migration"
