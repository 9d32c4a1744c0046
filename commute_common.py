from __future__ import annotations
from datetime import date, datetime
from pathlib import Path
import sys

ROOT = Path(".")
OUT = ROOT / "out"
DEFAULT_STORE = ROOT / "data" / "commute_store.json"

DEFAULT_UNIT_RATE = 10

# Canonical work locations, in form order
STATIONS = (
    "大月駅",
    "都留文科大学前駅",
    "下吉田駅",
    "富士山駅",
    "ハイランド駅",
    "河口湖駅",
    "鉄道技術所",
)

# Order matters: first containing match wins.
ABBREVIATIONS = {
    "大月": "大月駅",
    "都留": "都留文科大学前駅",
    "下吉": "下吉田駅",
    "富士": "富士山駅",
    "HL": "ハイランド駅",
    "ハイ": "ハイランド駅",
    "河口": "河口湖駅",
    # legacy shift codes
    "指明": "大月駅",
    "指泊": "河口湖駅",
    "組": "大月駅",
}

LOCATION_SHORT = {
    "大月駅": "大月",
    "都留文科大学前駅": "都留",
    "下吉田駅": "下吉",
    "富士山駅": "富士",
    "ハイランド駅": "HL",
    "河口湖駅": "河口",
}

# Old registry payloads keyed distances by form field id
LEGACY_DISTANCE_KEYS = {
    "distanceOtsuki": "大月駅",
    "distanceTsuru": "都留文科大学前駅",
    "distanceShimoyoshida": "下吉田駅",
    "distanceFujisan": "富士山駅",
    "distanceHighland": "ハイランド駅",
    "distanceKawaguchiko": "河口湖駅",
    "distanceRailwayTech": "鉄道技術所",
}

JOB_TYPE_STATIONS = {
    "管理駅": STATIONS[:6],
    "乗務員区": ("大月駅", "河口湖駅"),
    "運転指令": ("河口湖駅",),
    "技術所": ("鉄道技術所",),
}

DAY_NAMES = ("日", "月", "火", "水", "木", "金", "土")  # Sunday first

NAME_HEADER_SENTINEL = "氏名"

HEADER_DATE_ROW = 3
HEADER_DOW_ROW = 4

MAX_DISTANCE_KM = 50


def day_name(d: date) -> str:
    # date.weekday() is Monday=0
    return DAY_NAMES[(d.weekday() + 1) % 7]


def is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def cell_text(value) -> str:
    """String form of a grid cell, with integral floats shown without '.0'."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def ensure_dirs(out_dir: Path = OUT) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)


def info(msg: str) -> None:
    print(f"INFO: {msg}", file=sys.stderr)


def warn(msg: str) -> None:
    print(f"WARN: {msg}", file=sys.stderr)


def ok(msg: str = "OK") -> None:
    print(msg)
