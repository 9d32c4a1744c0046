"""
monthly_snapshot.py — Persist one month of matched facts plus its summary.

Store layout (string values, JSON encoded):
  monthlyData_<YYYY-MM>  -> {month, data, savedAt, totalRecords, summary}
  savedMonths            -> sorted ["YYYY-MM", ...]

Saving a month replaces any previous snapshot for it. The record is fully
built and serialized before the first write, so a bad input never leaves a
half-saved month behind.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from attendance_fact import AttendanceFact
from attendance_summary import summarize_facts
from registry import Registry

MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
INDEX_KEY = "savedMonths"
KEY_PREFIX = "monthlyData_"


class SnapshotError(ValueError):
    pass


def month_key(month: str) -> str:
    check_month(month)
    return f"{KEY_PREFIX}{month}"


def check_month(month: str) -> str:
    if not isinstance(month, str) or not MONTH_RE.match(month):
        raise SnapshotError(f"month must look like YYYY-MM, got {month!r}")
    return month


def list_months(store) -> list[str]:
    raw = store.get(INDEX_KEY)
    if not raw:
        return []
    try:
        months = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"{INDEX_KEY} is not valid JSON: {e}") from None
    if not isinstance(months, list):
        raise SnapshotError(f"{INDEX_KEY} must be a JSON array")
    return sorted(str(m) for m in months)


def build_record(month: str, facts: Iterable[AttendanceFact], registry: Registry,
                 saved_at: Optional[str] = None) -> dict:
    check_month(month)
    facts = list(facts)
    if not facts:
        raise SnapshotError(f"{month}: nothing to save")
    summary = summarize_facts(facts, registry)
    return {
        "month": month,
        "data": [f.to_dict() for f in facts],
        "savedAt": saved_at or datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "totalRecords": len(facts),
        "summary": summary,
    }


def save_month(store, month: str, facts: Iterable[AttendanceFact], registry: Registry,
               saved_at: Optional[str] = None) -> dict:
    record = build_record(month, facts, registry, saved_at)
    payload = json.dumps(record, ensure_ascii=False)
    months = list_months(store)
    if month not in months:
        months.append(month)
    index = json.dumps(sorted(months))

    store.set(month_key(month), payload)
    store.set(INDEX_KEY, index)
    return record


def load_month(store, month: str) -> Optional[dict]:
    raw = store.get(month_key(month))
    if raw is None:
        return None
    try:
        record = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"{month}: stored snapshot is not valid JSON: {e}") from None
    if not isinstance(record, dict) or not isinstance(record.get("data"), list):
        raise SnapshotError(f"{month}: stored snapshot has no data array")
    return record


def load_month_facts(store, month: str) -> list[AttendanceFact]:
    record = load_month(store, month)
    if record is None:
        return []
    return [AttendanceFact.from_dict(d) for d in record["data"]]


def delete_month(store, month: str) -> bool:
    key = month_key(month)
    existed = store.get(key) is not None
    months = list_months(store)
    store.remove(key)
    if month in months:
        months.remove(month)
        store.set(INDEX_KEY, json.dumps(months))
        existed = True
    return existed
