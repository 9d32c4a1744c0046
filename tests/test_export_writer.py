import openpyxl
import pandas as pd
import pytest

from export_writer import (
    SHEET_DETAIL,
    SHEET_PATTERNS,
    SHEET_SUMMARY,
    cost_summary_frame,
    detail_frame,
    pattern_frame,
    preview_sheets,
    sanitize_excel_strings,
    write_csv_bom,
    write_workbook,
)
from grid_extractor import ColumnMapping, build_preview
from pattern_scoring import match_with_patterns

MAPPING = ColumnMapping(name_column=1, date_start_column=3, date_end_column=5, start_row=6)


@pytest.fixture
def facts(table_grid, registry):
    return build_preview(table_grid, MAPPING, registry)


def test_cost_summary_sorted_by_cost(facts, registry):
    df = cost_summary_frame(facts, registry)
    assert list(df.columns) == ["名前", "合計通勤費(円)", "出勤日数"]
    assert df.values.tolist() == [["山田太郎", 760, 2], ["佐藤花子", 240, 2], ["田中", 0, 1]]


def test_csv_has_bom(facts, registry, tmp_path):
    out = write_csv_bom(cost_summary_frame(facts, registry), tmp_path / "out" / "summary.csv")
    raw = out.read_bytes()
    assert raw.startswith(b"\xef\xbb\xbf")
    assert raw.decode("utf-8-sig").splitlines()[:2] == ["名前,合計通勤費(円),出勤日数", "山田太郎,760,2"]


def test_detail_frame(facts, registry):
    df = detail_frame(facts, registry)
    first = df.iloc[0].tolist()
    assert first == [6, "山田太郎", "2025-06-02", "月", "早出", "富士山駅", "OK", 160,
                     "電車通勤往復 (最寄駅富士山駅まで8km)"]
    assert df.iloc[4]["通勤方法"] == ""


def test_pattern_frame(facts, registry):
    df = pattern_frame(match_with_patterns(facts, registry))
    assert list(df.columns) == ["氏名", "ステータス", "一致度", "実勤務日数", "パターン名", "出勤場所", "電車通勤"]
    yamada = df.iloc[0].tolist()
    assert yamada == ["山田太郎", "部分的一致 (50%)", "50%", 2, "早出", "河口湖駅", "可能"]
    tanaka = df.iloc[2].tolist()
    assert tanaka == ["田中", "照合不可", "0%", 1, "", "", ""]


def test_sanitize_strips_control_chars():
    df = pd.DataFrame({"a": ["ok\x01", 3]})
    assert sanitize_excel_strings(df)["a"].tolist() == ["ok", 3]


def test_workbook_sheets(facts, registry, tmp_path):
    sheets = preview_sheets(facts, registry, match_with_patterns(facts, registry))
    path = write_workbook(sheets, tmp_path / "preview.xlsx")
    wb = openpyxl.load_workbook(path)
    assert wb.sheetnames == [SHEET_DETAIL, SHEET_SUMMARY, SHEET_PATTERNS]
    ws = wb[SHEET_SUMMARY]
    assert ws.freeze_panes == "A2"
    assert [c.value for c in ws[1]] == ["名前", "合計通勤費(円)", "出勤日数"]
    assert ws["A2"].value == "山田太郎"
    assert ws.column_dimensions["A"].width >= 10


def test_preview_sheets_without_patterns(facts, registry):
    assert list(preview_sheets(facts, registry)) == [SHEET_DETAIL, SHEET_SUMMARY]
