"""
grid_extractor.py — Turn a raw sheet grid into draft AttendanceFacts.

Two layouts:

  table   names down one column, dates across columns.
          Row 4 (index 3) holds the date headers, row 5 (index 4) an optional
          weekday hint. One fact per non-blank (name row, date column) cell.

  row     one fact per row. The date column doubles as the work-code column
          (the source sheets put the shift code in the same cell), so the
          location is estimated from that cell too.

Mapping indices are 0-based columns; start_row is 1-based as typed by the
user. The effective start row is clamped past the detected header row.

Rows whose name is the header sentinel 氏名 are skipped. In the table layout
blank work cells are "no attendance" and produce nothing; in the row layout a
named row with a blank code is still one fact, with an empty location.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from openpyxl.utils import column_index_from_string, get_column_letter

from attendance_fact import AttendanceFact
from commute_common import (
    HEADER_DATE_ROW,
    HEADER_DOW_ROW,
    NAME_HEADER_SENTINEL,
    cell_text,
    is_blank,
)
from date_resolver import resolve_date
from location_estimator import estimate_location
from matcher import find_person, find_work_pattern, match_facts
from name_normalizer import normalize_name
from registry import Registry

LAYOUT_TABLE = "table"
LAYOUT_ROW = "row"
LAYOUTS = (LAYOUT_TABLE, LAYOUT_ROW)

Grid = Sequence[Sequence]


class ExtractionError(ValueError):
    """Column mapping or grid shape makes extraction impossible."""


@dataclass(frozen=True)
class ColumnMapping:
    name_column: int
    date_start_column: int
    start_row: int  # 1-based
    date_end_column: Optional[int] = None

    @property
    def end_column(self) -> int:
        return self.date_start_column if self.date_end_column is None else self.date_end_column

    def validate(self, layout: str = LAYOUT_TABLE) -> None:
        if self.name_column is None or self.name_column < 0:
            raise ExtractionError("name column is not mapped")
        if self.date_start_column is None or self.date_start_column < 0:
            raise ExtractionError("date start column is not mapped")
        if self.start_row is None or self.start_row < 1:
            raise ExtractionError("start row must be 1 or greater")
        if layout == LAYOUT_TABLE and self.date_start_column > self.end_column:
            raise ExtractionError(
                f"date start column {get_column_letter(self.date_start_column + 1)} "
                f"is after end column {get_column_letter(self.end_column + 1)}"
            )


def column_index(label) -> int:
    """'A' -> 0, 'AH' -> 33, '3' / 3 -> 3 (already 0-based)."""
    if isinstance(label, int):
        return label
    text = str(label).strip()
    if text.isdigit():
        return int(text)
    try:
        return column_index_from_string(text.upper()) - 1
    except ValueError:
        raise ExtractionError(f"not a column: {label!r}") from None


def detect_header_row(grid: Grid) -> int:
    """
    Sheets with more than 4 rows: index 4 (the weekday row under the dates).
    Shorter sheets: first non-blank row among the first 5.
    """
    if len(grid) > HEADER_DOW_ROW:
        return HEADER_DOW_ROW
    for i, row in enumerate(grid[:5]):
        if any(not is_blank(c) for c in row):
            return i
    return 0


def describe_columns(grid: Grid, header_row: Optional[int] = None, min_columns: int = 40) -> list[str]:
    """Labels like 'D列 (2025-06-02)' for choosing a column mapping."""
    if header_row is None:
        header_row = detect_header_row(grid)
    headers = list(grid[header_row]) if len(grid) > header_row else []
    labels = []
    for idx in range(max(len(headers), min_columns)):
        head = cell_text(headers[idx]).strip() if idx < len(headers) else ""
        labels.append(f"{get_column_letter(idx + 1)}列 ({head or '空欄'})")
    return labels


def _cell(row: Sequence, idx: int):
    return row[idx] if 0 <= idx < len(row) else ""


def _effective_start(grid: Grid, mapping: ColumnMapping, header_row: Optional[int]) -> int:
    if header_row is None:
        header_row = detect_header_row(grid)
    return max(mapping.start_row - 1, header_row + 1)


def extract_table_format(
    grid: Grid,
    mapping: ColumnMapping,
    registry: Registry,
    header_row: Optional[int] = None,
    today: Optional[date] = None,
) -> list[AttendanceFact]:
    mapping.validate(LAYOUT_TABLE)
    if len(grid) <= HEADER_DATE_ROW:
        raise ExtractionError(f"sheet has no date header row (row {HEADER_DATE_ROW + 1})")

    date_row = grid[HEADER_DATE_ROW]
    dow_row = grid[HEADER_DOW_ROW] if len(grid) > HEADER_DOW_ROW else []
    columns = range(mapping.date_start_column, mapping.end_column + 1)

    start = _effective_start(grid, mapping, header_row)
    facts: list[AttendanceFact] = []

    for r in range(start, len(grid)):
        row = grid[r]
        raw_name = _cell(row, mapping.name_column)
        if is_blank(raw_name):
            continue
        name_text = cell_text(raw_name).strip()
        if name_text == NAME_HEADER_SENTINEL:
            continue
        name = normalize_name(name_text)

        for c in columns:
            value = _cell(row, c)
            if is_blank(value):
                continue
            location = estimate_location(value, registry, name)
            if location is None:
                continue
            resolved = resolve_date(_cell(date_row, c), _cell(dow_row, c), today=today)
            facts.append(AttendanceFact(
                name=name,
                date=resolved.iso_date,
                day_of_week=resolved.day_of_week,
                location=location,
                original_value=cell_text(value).strip(),
                source_row=r + 1,
                original_name=name,
            ))

    return facts


def extract_row_format(
    grid: Grid,
    mapping: ColumnMapping,
    registry: Registry,
    header_row: Optional[int] = None,
    today: Optional[date] = None,
) -> list[AttendanceFact]:
    mapping.validate(LAYOUT_ROW)
    date_col = mapping.date_start_column  # end column ignored in this layout

    start = _effective_start(grid, mapping, header_row)
    facts: list[AttendanceFact] = []

    for r in range(start, len(grid)):
        row = grid[r]
        raw_name = _cell(row, mapping.name_column)
        raw_date = _cell(row, date_col)
        if is_blank(raw_name) and is_blank(raw_date):
            continue
        name_text = cell_text(raw_name).strip()
        if name_text == NAME_HEADER_SENTINEL:
            continue
        name = normalize_name(name_text)

        # a blank work code still yields a fact, with no location
        location = estimate_location(raw_date, registry, name) or ""

        code = cell_text(raw_date).strip()
        person = find_person(registry, name)
        if location and person is not None and person.nearest_station:
            pattern = find_work_pattern(registry, location, code)
            if pattern is not None and pattern.train_possible:
                location = person.nearest_station

        resolved = resolve_date(raw_date, today=today)
        facts.append(AttendanceFact(
            name=name,
            date=resolved.iso_date,
            day_of_week=resolved.day_of_week,
            location=location,
            original_value=code,
            source_row=r + 1,
            original_name=name,
        ))

    return facts


def build_preview(
    grid: Grid,
    mapping: ColumnMapping,
    registry: Registry,
    layout: str = LAYOUT_TABLE,
    today: Optional[date] = None,
) -> list[AttendanceFact]:
    """
    Extract + match in one pass against a snapshot of the registry, so a
    registry edit mid-run cannot mix old and new entries.
    """
    if layout not in LAYOUTS:
        raise ExtractionError(f"unknown layout {layout!r} (expected one of {', '.join(LAYOUTS)})")
    if not grid:
        raise ExtractionError("sheet has no data")

    snapshot = registry.copy()
    header_row = detect_header_row(grid)
    if layout == LAYOUT_TABLE:
        drafts = extract_table_format(grid, mapping, snapshot, header_row, today)
    else:
        drafts = extract_row_format(grid, mapping, snapshot, header_row, today)
    return match_facts(drafts, snapshot)
