import json

import pytest

from grid_extractor import ColumnMapping, build_preview
from kv_store import MemoryStore
from monthly_snapshot import (
    SnapshotError,
    delete_month,
    list_months,
    load_month,
    load_month_facts,
    save_month,
)

MAPPING = ColumnMapping(name_column=1, date_start_column=3, date_end_column=5, start_row=6)


@pytest.fixture
def facts(table_grid, registry):
    return build_preview(table_grid, MAPPING, registry)


def test_save_and_load(facts, registry):
    store = MemoryStore()
    record = save_month(store, "2025-06", facts, registry, saved_at="2025-07-01T00:00:00.000Z")
    assert set(record) == {"month", "data", "savedAt", "totalRecords", "summary"}
    assert record["totalRecords"] == 5
    assert record["summary"]["totalCost"] == 1000

    assert json.loads(store.get("monthlyData_2025-06")) == record
    assert load_month(store, "2025-06") == record
    assert load_month_facts(store, "2025-06") == facts


def test_index_stays_sorted_and_unique(facts, registry):
    store = MemoryStore()
    for month in ("2025-06", "2024-12", "2025-01", "2025-06"):
        save_month(store, month, facts, registry)
    assert list_months(store) == ["2024-12", "2025-01", "2025-06"]
    assert json.loads(store.get("savedMonths")) == ["2024-12", "2025-01", "2025-06"]


def test_save_replaces_existing_month(facts, registry):
    store = MemoryStore()
    save_month(store, "2025-06", facts, registry)
    save_month(store, "2025-06", facts[:1], registry)
    assert load_month(store, "2025-06")["totalRecords"] == 1


@pytest.mark.parametrize("month", ["2025-6", "2025-13", "202506", "", None])
def test_bad_month_writes_nothing(facts, registry, month):
    store = MemoryStore()
    with pytest.raises(SnapshotError):
        save_month(store, month, facts, registry)
    assert store.keys() == []


def test_empty_data_rejected(registry):
    store = MemoryStore()
    with pytest.raises(SnapshotError):
        save_month(store, "2025-06", [], registry)
    assert store.keys() == []


def test_delete(facts, registry):
    store = MemoryStore()
    save_month(store, "2025-05", facts, registry)
    save_month(store, "2025-06", facts, registry)
    assert delete_month(store, "2025-05")
    assert list_months(store) == ["2025-06"]
    assert store.get("monthlyData_2025-05") is None
    assert not delete_month(store, "2025-05")


def test_missing_and_corrupt(registry):
    store = MemoryStore({"monthlyData_2025-06": "{oops", "savedMonths": "[]"})
    assert load_month(store, "2025-05") is None
    assert load_month_facts(store, "2025-05") == []
    with pytest.raises(SnapshotError):
        load_month(store, "2025-06")


def test_corrupt_index():
    with pytest.raises(SnapshotError):
        list_months(MemoryStore({"savedMonths": "{bad"}))
    with pytest.raises(SnapshotError):
        list_months(MemoryStore({"savedMonths": '{"a": 1}'}))
