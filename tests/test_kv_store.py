import json

import pytest

from core.exceptions import CorruptedDataError, QuotaExceededError
from core.kv_store import FileKeyValueStore, MemoryKeyValueStore, create_store


def test_memory_store_basic_operations():
    store = MemoryKeyValueStore()
    store.set_item("k", "v")

    assert store.get_item("k") == "v"
    assert store.keys() == ["k"]
    assert store.used_bytes() == 2

    store.remove_item("k")
    store.remove_item("missing")
    assert store.get_item("k") is None


def test_quota_exceeded_leaves_store_unchanged():
    store = MemoryKeyValueStore(max_bytes=10)
    store.set_item("a", "12345")

    with pytest.raises(QuotaExceededError) as excinfo:
        store.set_item("b", "123456789")

    assert excinfo.value.recoverable is True
    assert store.keys() == ["a"]


def test_overwrite_counts_only_the_new_value():
    store = MemoryKeyValueStore(max_bytes=10)
    store.set_item("a", "123456789")
    store.set_item("a", "987654321")

    assert store.get_item("a") == "987654321"


def test_file_store_persists_between_instances(tmp_path):
    path = tmp_path / "nested" / "store.json"
    first = FileKeyValueStore(path)
    first.set_item("todo_app_year_2026", "{}")
    first.set_item("other", "x")
    first.remove_item("other")

    second = FileKeyValueStore(path)
    assert second.keys() == ["todo_app_year_2026"]
    assert json.loads(path.read_text(encoding="utf-8")) == {"todo_app_year_2026": "{}"}


def test_file_store_quota_does_not_touch_disk(tmp_path):
    path = tmp_path / "store.json"
    store = FileKeyValueStore(path, max_bytes=8)
    store.set_item("a", "1")

    with pytest.raises(QuotaExceededError):
        store.set_item("b", "too large value")

    assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}


def test_file_store_rejects_corrupted_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(CorruptedDataError):
        FileKeyValueStore(path)


def test_create_store_by_provider(tmp_path):
    assert create_store("memory").provider_type == "memory"
    assert create_store("file", tmp_path / "s.json").provider_type == "file"
    with pytest.raises(ValueError):
        create_store("file")
    with pytest.raises(ValueError):
        create_store("indexeddb")
