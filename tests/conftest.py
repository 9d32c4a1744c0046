from __future__ import annotations

from datetime import date

import pytest

from registry import Registry

TODAY = date(2025, 6, 15)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def registry():
    """
    山田太郎  nearest 富士山駅 8km, car to 河口湖駅 20km / 大月駅 30km
    佐藤花子  nearest 大月駅 12km, no car
    鈴木一郎  no nearest station, car to 河口湖駅 15km
    Patterns: 早出 (河口湖駅, train), 日勤 (大月駅, no train), 泊 (河口湖駅, no train, oneway)
    """
    reg = Registry()
    reg.add_person(
        "山田太郎", ["管理駅"],
        nearest_station="富士山駅", nearest_station_distance=8,
        has_private_car=True, distances={"河口湖駅": 20, "大月駅": 30},
    )
    reg.add_person(
        "佐藤花子", ["管理駅"],
        nearest_station="大月駅", nearest_station_distance=12,
    )
    reg.add_person(
        "鈴木一郎", ["乗務員区"],
        has_private_car=True, distances={"河口湖駅": 15},
    )
    reg.add_pattern("早出", "河口湖駅", "possible")
    reg.add_pattern("日勤", "大月駅", "impossible")
    reg.add_pattern("泊", "河口湖駅", "impossible", "oneway")
    return reg


@pytest.fixture
def table_grid():
    """Dates across row 4 (index 3), weekdays on row 5, data from row 6."""
    return [
        ["勤務表", "", "", "", "", ""],
        ["", "", "", "", "", ""],
        ["", "", "", "", "", ""],
        ["", "", "", "2025-06-02", "2025-06-03", "2025-06-04"],
        ["", "氏名", "", "月", "火", "水"],
        ["", "山田太郎", "", "早出", "日勤", ""],
        ["", " 佐藤花子 ", "", "", "大月", "公休"],
        ["", "田中", "", "出張", "", ""],
    ]
