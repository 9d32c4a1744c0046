"""
export_writer.py — Tabular exports of a preview run.

Frames:
  - cost summary     名前 / 合計通勤費(円) / 出勤日数, highest cost first
  - preview detail   one row per fact, with cost and method text
  - pattern analysis one row per person from pattern_scoring

Writers:
  - write_csv_bom    UTF-8 with BOM so Excel opens Japanese text correctly
  - write_workbook   multi-sheet .xlsx (pandas ExcelWriter + openpyxl)
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

import pandas as pd
from openpyxl.utils import get_column_letter

from attendance_fact import AttendanceFact
from attendance_summary import fact_cost, fact_method, group_by_person
from pattern_scoring import PatternMatchResult
from registry import Registry

_ILLEGAL_XLSX_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")

SUMMARY_COLUMNS = ["名前", "合計通勤費(円)", "出勤日数"]
DETAIL_COLUMNS = ["行", "氏名", "日付", "曜日", "勤務", "出勤場所", "ステータス", "通勤費(円)", "通勤方法"]
PATTERN_COLUMNS = ["氏名", "ステータス", "一致度", "実勤務日数", "パターン名", "出勤場所", "電車通勤"]

SHEET_DETAIL = "明細"
SHEET_SUMMARY = "通勤費集計"
SHEET_PATTERNS = "パターン照合"


def sanitize_excel_strings(df: pd.DataFrame) -> pd.DataFrame:
    """Required to write .xlsx safely (not semantic cleaning)."""
    if df.empty:
        return df
    out = df.copy()
    for col in out.columns:
        if out[col].dtype == object:
            out[col] = out[col].apply(
                lambda v: _ILLEGAL_XLSX_RE.sub("", v) if isinstance(v, str) else v
            )
    return out


def _amount(x):
    return int(x) if float(x).is_integer() else x


def cost_summary_frame(facts: Iterable[AttendanceFact], registry: Registry) -> pd.DataFrame:
    people = group_by_person(facts, registry)
    rows = [[p.name, _amount(p.total_cost), p.work_days] for p in people]
    df = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    # stable sort keeps first-seen order among equal costs
    return df.sort_values("合計通勤費(円)", ascending=False, kind="mergesort").reset_index(drop=True)


def detail_frame(facts: Iterable[AttendanceFact], registry: Registry) -> pd.DataFrame:
    rows = []
    for f in facts:
        rows.append([
            f.source_row,
            f.name,
            f.date,
            f.day_of_week,
            f.original_value,
            f.location,
            f.status,
            _amount(fact_cost(f, registry)),
            fact_method(f, registry) if f.person is not None else "",
        ])
    return pd.DataFrame(rows, columns=DETAIL_COLUMNS)


def pattern_frame(results: Iterable[PatternMatchResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        best = r.best_pattern
        rows.append([
            r.person_name,
            r.message,
            f"{int(r.score * 100 + 0.5)}%",
            len(r.days),
            best.name if best else "",
            best.work_location if best else "",
            ("可能" if best.train_possible else "不可") if best else "",
        ])
    return pd.DataFrame(rows, columns=PATTERN_COLUMNS)


def write_csv_bom(df: pd.DataFrame, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8-sig")
    return path


def _fit_columns(ws, df: pd.DataFrame) -> None:
    # Deterministic column widths (sample first 200 rows)
    for c_idx, col_name in enumerate(df.columns.tolist(), start=1):
        letter = get_column_letter(c_idx)
        best = len(str(col_name))
        for v in df.iloc[:200, c_idx - 1].tolist():
            best = max(best, len(str(v)))
        ws.column_dimensions[letter].width = max(10, min(best + 2, 80))


def write_workbook(sheets: dict[str, pd.DataFrame], path: str | Path) -> Path:
    """Sheets are written in dict order; empty frames still get a header row."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as xw:
        for name, df in sheets.items():
            df = sanitize_excel_strings(df)
            df.to_excel(xw, sheet_name=name[:31], index=False)
            ws = xw.sheets[name[:31]]
            ws.freeze_panes = "A2"
            _fit_columns(ws, df)
    return path


def preview_sheets(facts: list[AttendanceFact], registry: Registry,
                   results: Iterable[PatternMatchResult] = ()) -> dict[str, pd.DataFrame]:
    sheets = {
        SHEET_DETAIL: detail_frame(facts, registry),
        SHEET_SUMMARY: cost_summary_frame(facts, registry),
    }
    results = list(results)
    if results:
        sheets[SHEET_PATTERNS] = pattern_frame(results)
    return sheets
