"""
Date header resolution for attendance sheets.

A date header cell can arrive as:
  - a spreadsheet date serial (number, or its digits as text from a CSV)
  - a native date / datetime (openpyxl date-formatted cell)
  - an ISO string "YYYY-MM-DD"
  - another parseable date string ("2025/06/02", "2025年6月2日", ...)
  - a bare day of month ("2日", "2") meaning that day in the current month

An optional day-of-week header ("月", "(火)", "Wed") overrides the computed
weekday when present. The header is not cross-checked against the date.

Never raises: an unresolvable cell comes back as its raw text with an empty
day_of_week.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from commute_common import DAY_NAMES, cell_text, day_name

# Spreadsheet serial 25569 == 1970-01-01 (serial 0 == 1899-12-30)
_SERIAL_UNIX_EPOCH = 25569
_UNIX_EPOCH = datetime(1970, 1, 1)

_RE_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
_RE_SERIAL_TEXT = re.compile(r"\d{3,}(?:\.\d+)?")  # serial read back as text (CSV)
_RE_DAY_OF_MONTH = re.compile(r"(\d{1,2})\s*日?")
_RE_DAY_CHAR = re.compile(r"[日月火水木金土]")

_GENERIC_FORMATS = (
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y.%m.%d",
    "%Y年%m月%d日",
    "%m/%d/%Y",
    "%d %b %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)

_ENGLISH_DAYS = {
    "sun": "日",
    "mon": "月",
    "tue": "火",
    "wed": "水",
    "thu": "木",
    "fri": "金",
    "sat": "土",
}


@dataclass(frozen=True)
class ResolvedDate:
    iso_date: str
    day_of_week: str  # one of DAY_NAMES, or "" when unknown


def serial_to_date(serial: float) -> date:
    return (_UNIX_EPOCH + timedelta(days=serial - _SERIAL_UNIX_EPOCH)).date()


def day_of_week_from_header(header) -> Optional[str]:
    """Japanese weekday character first, then English 3-letter abbreviations."""
    text = cell_text(header).strip()
    if not text:
        return None
    m = _RE_DAY_CHAR.search(text)
    if m:
        return m.group(0)
    low = text.lower()
    for eng, jp in _ENGLISH_DAYS.items():
        if eng in low:
            return jp
    return None


def _weekday_of_iso(iso: str) -> str:
    try:
        return day_name(date.fromisoformat(iso))
    except ValueError:
        return ""


def _parse_generic(text: str) -> Optional[date]:
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _GENERIC_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _parse_day_of_month(text: str, today: date) -> Optional[date]:
    m = _RE_DAY_OF_MONTH.fullmatch(text)
    if not m:
        return None
    day = int(m.group(1))
    # Out-of-range days roll into the neighbouring month
    return today.replace(day=1) + timedelta(days=day - 1)


def _from_serial(serial, raw) -> ResolvedDate:
    try:
        d = serial_to_date(serial)
    except (ValueError, OverflowError):  # NaN / out of calendar range
        return ResolvedDate(cell_text(raw), "")
    return ResolvedDate(d.isoformat(), day_name(d))


def _resolve_cell(cell, today: date) -> ResolvedDate:
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        return _from_serial(cell, cell)

    if isinstance(cell, datetime):
        d = cell.date()
        return ResolvedDate(d.isoformat(), day_name(d))
    if isinstance(cell, date):
        return ResolvedDate(cell.isoformat(), day_name(cell))

    text = cell_text(cell).strip()

    if _RE_ISO_DATE.fullmatch(text):
        return ResolvedDate(text, _weekday_of_iso(text))

    if _RE_SERIAL_TEXT.fullmatch(text):
        return _from_serial(float(text), text)

    d = _parse_generic(text) if text else None
    if d is None and text:
        d = _parse_day_of_month(text, today)
    if d is not None:
        return ResolvedDate(d.isoformat(), day_name(d))

    return ResolvedDate(text, "")


def resolve_date(cell, day_header=None, today: Optional[date] = None) -> ResolvedDate:
    """
    Resolve a date header cell (plus optional weekday header) to
    (ISO date, weekday). `today` anchors the day-of-month fallback.
    """
    if today is None:
        today = date.today()

    resolved = _resolve_cell(cell, today)

    if day_header is not None:
        header_day = day_of_week_from_header(day_header)
        if header_day:
            resolved = ResolvedDate(resolved.iso_date, header_day)

    return resolved


def weekday_index(iso: str) -> Optional[int]:
    """0=Sunday .. 6=Saturday, or None for non-ISO values."""
    wd = _weekday_of_iso(iso)
    return DAY_NAMES.index(wd) if wd else None
