from datetime import datetime

import openpyxl
import pytest

from workbook_reader import WorkbookReadError, list_sheets, read_sheet_as_grid


@pytest.fixture
def xlsx(tmp_path):
    path = tmp_path / "shift.xlsx"
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "6月"
    ws.append(["勤務表", None, None])
    ws.append([None, None, None])
    ws.append(["", "氏名", datetime(2025, 6, 2)])
    ws.append([None, "山田太郎", "早出"])
    ws.append([None, "佐藤花子", 45811])
    wb.create_sheet("7月").append(["x"])
    wb.save(path)
    return path


def test_list_sheets(xlsx):
    assert list_sheets(xlsx) == ["6月", "7月"]


def test_read_grid_drops_blank_rows_and_fills_empty(xlsx):
    grid = read_sheet_as_grid(xlsx, "6月")
    assert len(grid) == 4
    assert grid[0] == ["勤務表", "", ""]
    assert grid[1][2] == datetime(2025, 6, 2)
    assert grid[2] == ["", "山田太郎", "早出"]
    assert grid[3][2] == 45811


def test_default_sheet_is_first(xlsx):
    assert read_sheet_as_grid(xlsx)[0][0] == "勤務表"


def test_unknown_sheet(xlsx):
    with pytest.raises(WorkbookReadError):
        read_sheet_as_grid(xlsx, "8月")


def test_csv(tmp_path):
    path = tmp_path / "shift.csv"
    path.write_text("氏名,2025-06-02\n,\n山田太郎,早出\n", encoding="utf-8-sig")
    assert list_sheets(path) == ["shift"]
    assert read_sheet_as_grid(path) == [["氏名", "2025-06-02"], ["山田太郎", "早出"]]


def test_unreadable_inputs(tmp_path):
    with pytest.raises(WorkbookReadError):
        read_sheet_as_grid(tmp_path / "missing.xlsx")
    txt = tmp_path / "shift.txt"
    txt.write_text("x", encoding="utf-8")
    with pytest.raises(WorkbookReadError):
        list_sheets(txt)
    junk = tmp_path / "junk.xlsx"
    junk.write_bytes(b"not a zip")
    with pytest.raises(WorkbookReadError):
        list_sheets(junk)


def test_csv_shift_jis(tmp_path):
    path = tmp_path / "shift.csv"
    path.write_bytes("氏名,45800\n山田太郎,早出\n".encode("cp932"))
    assert read_sheet_as_grid(path) == [["氏名", "45800"], ["山田太郎", "早出"]]


@pytest.mark.parametrize("raw", [b"", "氏名,勤務\n山田太郎,早出,余分\n".encode("cp932")])
def test_bad_csv_raises_read_error(tmp_path, raw):
    path = tmp_path / "shift.csv"
    path.write_bytes(raw)
    with pytest.raises(WorkbookReadError):
        read_sheet_as_grid(path)
