"""
workbook_reader.py — Load an attendance sheet as a plain 2-D grid.

  .xlsx / .xlsm  openpyxl, values only (cached formula results), read-only
  .csv           pandas, every cell as object, NaN -> ''

Empty cells come back as '' and fully blank rows are dropped, so the grid
row index matches what the user sees only up to the first blank row. Date
cells are returned as datetime objects; numbers stay numbers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import openpyxl
import pandas as pd

from commute_common import is_blank

WORKBOOK_SUFFIXES = (".xlsx", ".xlsm")
CSV_SUFFIXES = (".csv",)
CSV_ENCODINGS = ("utf-8-sig", "cp932")


class WorkbookReadError(Exception):
    pass


def _check_path(path: Path) -> str:
    if not path.exists():
        raise WorkbookReadError(f"file not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in WORKBOOK_SUFFIXES + CSV_SUFFIXES:
        raise WorkbookReadError(f"unsupported file type {suffix or '(none)'}: {path.name}")
    return suffix


def _open_workbook(path: Path):
    try:
        return openpyxl.load_workbook(path, read_only=True, data_only=True)
    except Exception as e:
        raise WorkbookReadError(f"cannot read workbook {path.name}: {e}") from e


def list_sheets(path: str | Path) -> list[str]:
    path = Path(path)
    if _check_path(path) in CSV_SUFFIXES:
        return [path.stem]
    wb = _open_workbook(path)
    try:
        return list(wb.sheetnames)
    finally:
        wb.close()


def _clean_rows(rows) -> list[list]:
    grid = []
    for row in rows:
        cells = ["" if v is None else v for v in row]
        if all(is_blank(v) for v in cells):
            continue
        grid.append(cells)
    return grid


def _read_csv(path: Path) -> pd.DataFrame:
    """UTF-8 first, then Shift_JIS (Windows Excel exports)."""
    for encoding in CSV_ENCODINGS:
        try:
            return pd.read_csv(path, header=None, dtype=object, encoding=encoding, skip_blank_lines=False)
        except UnicodeDecodeError:
            continue
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise WorkbookReadError(f"cannot read {path.name}: {e}") from e
    raise WorkbookReadError(f"cannot decode {path.name} as {' or '.join(CSV_ENCODINGS)}")


def read_sheet_as_grid(path: str | Path, sheet: Optional[str] = None) -> list[list]:
    """Sheet defaults to the first one."""
    path = Path(path)
    suffix = _check_path(path)

    if suffix in CSV_SUFFIXES:
        return _clean_rows(_read_csv(path).fillna("").values.tolist())

    wb = _open_workbook(path)
    try:
        name = sheet or wb.sheetnames[0]
        if name not in wb.sheetnames:
            raise WorkbookReadError(f"{path.name}: no sheet named {name!r} (have: {', '.join(wb.sheetnames)})")
        ws = wb[name]
        return _clean_rows(ws.iter_rows(values_only=True))
    finally:
        wb.close()
