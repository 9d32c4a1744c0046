"""
location_estimator.py — Map a raw work-code cell to a canonical work location.

Cascade (first match wins):
  1. cell == canonical station name
  2. cell == registered pattern name
  3. cell is a substring of a pattern name, or contains one
  4. cell contains a station name (without 駅), or is contained in one
  5. cell contains an abbreviation (ABBREVIATIONS, in table order)
  6. the trimmed cell text itself

Train-eligible patterns (trainCommute == "possible") in steps 2-3 redirect
to the person's nearest station when the person resolves and has one.

Empty / whitespace cells return None ("no attendance that day").
"""

from __future__ import annotations

from typing import Optional

from commute_common import ABBREVIATIONS, STATIONS, cell_text, is_blank
from matcher import find_person
from registry import Registry, WorkPattern


def _pattern_location(pattern: WorkPattern, registry: Registry, person_name: Optional[str]) -> str:
    if pattern.train_possible and person_name:
        person = find_person(registry, person_name)
        if person is not None and person.nearest_station:
            return person.nearest_station
    return pattern.work_location


def estimate_location(cell_value, registry: Registry, person_name: Optional[str] = None) -> Optional[str]:
    if is_blank(cell_value):
        return None
    cell = cell_text(cell_value).strip()

    if cell in STATIONS:
        return cell

    for pattern in registry.patterns:
        if cell == pattern.name:
            return _pattern_location(pattern, registry, person_name)

    for pattern in registry.patterns:
        if pattern.name in cell or cell in pattern.name:
            return _pattern_location(pattern, registry, person_name)

    for station in STATIONS:
        if station.replace("駅", "") in cell or cell in station:
            return station

    for short, full in ABBREVIATIONS.items():
        if short in cell:
            return full

    return cell
