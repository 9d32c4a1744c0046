"""
cost_resolver.py — Commute cost for one attendance fact.

Strict priority:
  1. train       pattern is train-eligible and person has a positive
                 nearest-station distance; honours tripType
                 (none -> 0, oneway -> x1, otherwise x2)
  2. station     location is the person's nearest station and the distance
                 is positive; always round trip (tripType NOT consulted)
  3. car         person has a private car and a distance for the location;
                 tripType none -> 0, oneway -> x1, otherwise/no pattern -> x2
  4. none        0

amount = km * multiplier * unit_rate

transport_cost() and transport_method() both go through resolve_cost(), so
the explanation can never describe a different branch than the amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from registry import Person, WorkPattern

BRANCH_TRAIN = "train"
BRANCH_STATION = "station"
BRANCH_CAR = "car"
BRANCH_NONE = "none"

_TRIP_LABELS = {1: "片道", 2: "往復", 0: "なし"}

UNCOMPUTABLE = "計算不可"


@dataclass(frozen=True)
class CostResult:
    amount: float
    branch: str
    distance_km: Optional[float] = None
    multiplier: int = 0
    location: str = ""
    method: str = UNCOMPUTABLE


def _positive_km(v) -> Optional[float]:
    try:
        km = float(v)
    except (TypeError, ValueError):
        return None
    return km if km > 0 else None


def _pattern_multiplier(pattern: Optional[WorkPattern]) -> int:
    if pattern is None:
        return 2
    if pattern.trip_type == "none":
        return 0
    if pattern.trip_type == "oneway":
        return 1
    return 2


def resolve_cost(
    person: Optional[Person],
    work_location: Optional[str],
    pattern: Optional[WorkPattern],
    unit_rate: float,
) -> CostResult:
    if person is None or not work_location:
        return CostResult(0, BRANCH_NONE)

    station_km = _positive_km(person.nearest_station_distance)

    if pattern is not None and pattern.train_possible and station_km is not None:
        mult = _pattern_multiplier(pattern)
        return CostResult(
            amount=station_km * mult * unit_rate,
            branch=BRANCH_TRAIN,
            distance_km=station_km,
            multiplier=mult,
            location=person.nearest_station or "",
            method=f"電車通勤{_TRIP_LABELS[mult]} (最寄駅{person.nearest_station}まで{station_km:g}km)",
        )

    if work_location == person.nearest_station and station_km is not None:
        return CostResult(
            amount=station_km * 2 * unit_rate,
            branch=BRANCH_STATION,
            distance_km=station_km,
            multiplier=2,
            location=work_location,
            method=f"電車通勤往復 (最寄駅{person.nearest_station}まで{station_km:g}km)",
        )

    if person.has_private_car and person.distances and work_location in person.distances:
        km = float(person.distances[work_location])
        mult = _pattern_multiplier(pattern)
        return CostResult(
            amount=km * mult * unit_rate,
            branch=BRANCH_CAR,
            distance_km=km,
            multiplier=mult,
            location=work_location,
            method=f"自家用車{_TRIP_LABELS[mult]} ({work_location}まで{km:g}km)",
        )

    return CostResult(0, BRANCH_NONE)


def transport_cost(person, work_location, pattern, unit_rate: float) -> float:
    return resolve_cost(person, work_location, pattern, unit_rate).amount


def transport_method(person, work_location, pattern, unit_rate: float = 0) -> str:
    return resolve_cost(person, work_location, pattern, unit_rate).method
