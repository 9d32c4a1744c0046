"""
registry.py — People, work patterns and the unit rate.

The Registry is an explicit object handed to every pipeline function; there is
no module-level instance. It is only mutated through the CRUD methods below,
each of which validates first and then commits (all-or-nothing).

Persisted layout (one JSON string per key in a key-value store):
  people    -> [Person.to_dict(), ...]
  patterns  -> [WorkPattern.to_dict(), ...]
  settings  -> {"unitRate": 10}

Defaults applied once, at this boundary:
  - WorkPattern.tripType missing/blank -> "roundtrip"
  - distances keyed by legacy form ids (distanceOtsuki, ...) -> station names
  - hasPrivateCar false -> distances None

Name uniqueness is an exact raw-string check. "山田 太郎" and "山田　太郎"
can both be registered even though matching treats them as the same key;
see find_person() in matcher.py.
"""

from __future__ import annotations

import copy
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from commute_common import (
    DEFAULT_UNIT_RATE,
    JOB_TYPE_STATIONS,
    LEGACY_DISTANCE_KEYS,
    MAX_DISTANCE_KM,
    STATIONS,
)

TRAIN_COMMUTE_VALUES = ("possible", "impossible")
TRIP_TYPES = ("roundtrip", "oneway", "none")
DEFAULT_TRIP_TYPE = "roundtrip"

PEOPLE_KEY = "people"
PATTERNS_KEY = "patterns"
SETTINGS_KEY = "settings"


class ValidationError(ValueError):
    """A create/update was rejected; nothing was committed."""


class RegistryFormatError(ValueError):
    """Stored or imported registry JSON could not be understood."""


@dataclass
class Person:
    name: str
    job_types: list[str] = field(default_factory=list)
    nearest_station: Optional[str] = None
    nearest_station_distance: Optional[float] = None
    has_private_car: bool = False
    distances: Optional[dict[str, float]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "jobTypes": list(self.job_types),
            "nearestStation": self.nearest_station,
            "nearestStationDistance": self.nearest_station_distance,
            "hasPrivateCar": self.has_private_car,
            "distances": dict(self.distances) if self.distances is not None else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Person":
        if not isinstance(d, dict) or not str(d.get("name") or "").strip():
            raise RegistryFormatError(f"person record without a name: {d!r}")
        has_car = bool(d.get("hasPrivateCar"))
        distances = _coerce_distances(d.get("distances")) if has_car else None
        return cls(
            id=str(d.get("id") or uuid.uuid4()),
            name=str(d["name"]),
            job_types=[str(j) for j in (d.get("jobTypes") or [])],
            nearest_station=d.get("nearestStation") or None,
            nearest_station_distance=_coerce_km(d.get("nearestStationDistance")),
            has_private_car=has_car,
            distances=distances,
        )


@dataclass
class WorkPattern:
    name: str
    work_location: str
    train_commute: Optional[str] = None
    trip_type: str = DEFAULT_TRIP_TYPE
    created_at: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def train_possible(self) -> bool:
        return self.train_commute == "possible"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "workLocation": self.work_location,
            "trainCommute": self.train_commute,
            "tripType": self.trip_type,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "WorkPattern":
        if not isinstance(d, dict) or not str(d.get("name") or "").strip():
            raise RegistryFormatError(f"pattern record without a name: {d!r}")
        trip = d.get("tripType") or DEFAULT_TRIP_TYPE
        if trip not in TRIP_TYPES:
            trip = DEFAULT_TRIP_TYPE
        return cls(
            id=str(d.get("id") or uuid.uuid4()),
            name=str(d["name"]),
            work_location=str(d.get("workLocation") or ""),
            train_commute=d.get("trainCommute") or None,
            trip_type=trip,
            created_at=str(d.get("createdAt") or ""),
        )


@dataclass
class Settings:
    unit_rate: float = DEFAULT_UNIT_RATE

    def to_dict(self) -> dict:
        return {"unitRate": self.unit_rate}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _valid_rate(value: float) -> bool:
    return value == value and value >= 0  # NaN != NaN


def _coerce_km(v) -> Optional[float]:
    if v is None or v == "":
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        raise RegistryFormatError(f"not a distance: {v!r}") from None


def _coerce_distances(raw) -> Optional[dict[str, float]]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise RegistryFormatError(f"distances must be an object, got {raw!r}")
    out: dict[str, float] = {}
    for key, km in raw.items():
        station = LEGACY_DISTANCE_KEYS.get(key, key)
        km = _coerce_km(km)
        if km is None:
            continue
        out[station] = km
    return out


def allowed_distance_stations(job_types: Iterable[str]) -> set[str]:
    allowed: set[str] = set()
    for jt in job_types:
        allowed.update(JOB_TYPE_STATIONS.get(jt, ()))
    return allowed


def _check_km(km, label: str) -> float:
    try:
        value = float(km)
    except (TypeError, ValueError):
        raise ValidationError(f"{label}: not a number ({km!r})") from None
    if not (0 <= value <= MAX_DISTANCE_KM):
        raise ValidationError(f"{label}: distance must be within 0-{MAX_DISTANCE_KM} km (got {value})")
    return value


def build_person(
    name: str,
    job_types: Iterable[str],
    nearest_station: Optional[str] = None,
    nearest_station_distance=None,
    has_private_car: bool = False,
    distances: Optional[dict] = None,
    person_id: Optional[str] = None,
) -> Person:
    """Validate form input and return a Person (not yet registered)."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    job_types = [str(j) for j in (job_types or [])]
    if not job_types:
        raise ValidationError(f"{name}: at least one job type is required")
    unknown_jobs = [j for j in job_types if j not in JOB_TYPE_STATIONS]
    if unknown_jobs:
        raise ValidationError(f"{name}: unknown job type(s): {', '.join(unknown_jobs)}")

    nearest_station = nearest_station or None
    station_km: Optional[float] = None
    if nearest_station is not None:
        if nearest_station not in STATIONS:
            raise ValidationError(f"{name}: unknown nearest station {nearest_station!r}")
        if nearest_station_distance is None or nearest_station_distance == "":
            raise ValidationError(f"{name}: distance to nearest station is required")
        station_km = _check_km(nearest_station_distance, f"{name} nearest station")
    elif nearest_station_distance not in (None, ""):
        raise ValidationError(f"{name}: nearest station distance given without a nearest station")

    clean_distances: Optional[dict[str, float]] = None
    if has_private_car:
        allowed = allowed_distance_stations(job_types)
        clean_distances = {}
        for key, km in (distances or {}).items():
            if km is None or km == "":
                continue
            station = LEGACY_DISTANCE_KEYS.get(key, key)
            if station not in STATIONS:
                raise ValidationError(f"{name}: unknown station {key!r} in distances")
            if station not in allowed:
                raise ValidationError(
                    f"{name}: {station} is not a commute destination for job type(s) {', '.join(job_types)}"
                )
            clean_distances[station] = _check_km(km, f"{name} -> {station}")
        if not clean_distances:
            raise ValidationError(f"{name}: private car users need at least one station distance")

    return Person(
        id=person_id or str(uuid.uuid4()),
        name=name,
        job_types=job_types,
        nearest_station=nearest_station,
        nearest_station_distance=station_km,
        has_private_car=bool(has_private_car),
        distances=clean_distances,
    )


def build_pattern(
    name: str,
    work_location: str,
    train_commute: Optional[str],
    trip_type: Optional[str] = DEFAULT_TRIP_TYPE,
    created_at: Optional[str] = None,
    pattern_id: Optional[str] = None,
) -> WorkPattern:
    name = (name or "").strip()
    if not name:
        raise ValidationError("pattern name is required")
    if work_location not in STATIONS:
        raise ValidationError(f"{name}: unknown work location {work_location!r}")
    if train_commute not in TRAIN_COMMUTE_VALUES:
        raise ValidationError(f"{name}: train commute must be one of {', '.join(TRAIN_COMMUTE_VALUES)}")
    trip_type = trip_type or DEFAULT_TRIP_TYPE
    if trip_type not in TRIP_TYPES:
        raise ValidationError(f"{name}: trip type must be one of {', '.join(TRIP_TYPES)}")
    return WorkPattern(
        id=pattern_id or str(uuid.uuid4()),
        name=name,
        work_location=work_location,
        train_commute=train_commute,
        trip_type=trip_type,
        created_at=created_at or _now_iso(),
    )


class Registry:
    def __init__(
        self,
        people: Optional[list[Person]] = None,
        patterns: Optional[list[WorkPattern]] = None,
        settings: Optional[Settings] = None,
    ):
        self.people: list[Person] = list(people or [])
        self.patterns: list[WorkPattern] = list(patterns or [])
        self.settings: Settings = settings or Settings()

    @property
    def unit_rate(self) -> float:
        return self.settings.unit_rate

    def copy(self) -> "Registry":
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    def get_person(self, person_id: str) -> Optional[Person]:
        return next((p for p in self.people if p.id == person_id), None)

    def person_by_name(self, name: str) -> Optional[Person]:
        """Exact raw-string lookup (the uniqueness key)."""
        return next((p for p in self.people if p.name == name), None)

    def add_person(self, name: str, job_types: Iterable[str], **fields) -> Person:
        person = build_person(name, job_types, **fields)
        if self.person_by_name(person.name) is not None:
            raise ValidationError(f"a person named {person.name!r} is already registered")
        self.people.append(person)
        return person

    def update_person(self, person_id: str, name: str, job_types: Iterable[str], **fields) -> Person:
        idx = next((i for i, p in enumerate(self.people) if p.id == person_id), None)
        if idx is None:
            raise ValidationError(f"no person with id {person_id}")
        person = build_person(name, job_types, person_id=person_id, **fields)
        if any(p.name == person.name and p.id != person_id for p in self.people):
            raise ValidationError(f"a person named {person.name!r} is already registered")
        self.people[idx] = person
        return person

    def delete_person(self, person_id: str) -> bool:
        before = len(self.people)
        self.people = [p for p in self.people if p.id != person_id]
        return len(self.people) != before

    # ------------------------------------------------------------------
    # Work patterns
    # ------------------------------------------------------------------

    def get_pattern(self, pattern_id: str) -> Optional[WorkPattern]:
        return next((p for p in self.patterns if p.id == pattern_id), None)

    def pattern_by_key(self, name: str, work_location: str) -> Optional[WorkPattern]:
        return next(
            (p for p in self.patterns if p.name == name and p.work_location == work_location),
            None,
        )

    def add_pattern(self, name: str, work_location: str, train_commute: Optional[str],
                    trip_type: Optional[str] = DEFAULT_TRIP_TYPE) -> WorkPattern:
        pattern = build_pattern(name, work_location, train_commute, trip_type)
        if self.pattern_by_key(pattern.name, pattern.work_location) is not None:
            raise ValidationError(
                f"pattern {pattern.name!r} at {pattern.work_location} is already registered"
            )
        self.patterns.append(pattern)
        return pattern

    def update_pattern(self, pattern_id: str, name: str, work_location: str,
                       train_commute: Optional[str], trip_type: Optional[str] = DEFAULT_TRIP_TYPE) -> WorkPattern:
        idx = next((i for i, p in enumerate(self.patterns) if p.id == pattern_id), None)
        if idx is None:
            raise ValidationError(f"no pattern with id {pattern_id}")
        pattern = build_pattern(
            name, work_location, train_commute, trip_type,
            created_at=self.patterns[idx].created_at,
            pattern_id=pattern_id,
        )
        clash = any(
            p.name == pattern.name and p.work_location == pattern.work_location and p.id != pattern_id
            for p in self.patterns
        )
        if clash:
            raise ValidationError(
                f"pattern {pattern.name!r} at {pattern.work_location} is already registered"
            )
        self.patterns[idx] = pattern
        return pattern

    def delete_pattern(self, pattern_id: str) -> bool:
        before = len(self.patterns)
        self.patterns = [p for p in self.patterns if p.id != pattern_id]
        return len(self.patterns) != before

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_unit_rate(self, rate) -> None:
        try:
            value = float(rate)
        except (TypeError, ValueError):
            raise ValidationError(f"unit rate must be a number, got {rate!r}") from None
        if not _valid_rate(value):
            raise ValidationError(f"unit rate must be >= 0, got {rate!r}")
        self.settings.unit_rate = value

    def clear_all(self) -> None:
        self.people = []
        self.patterns = []
        self.settings = Settings()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            PEOPLE_KEY: [p.to_dict() for p in self.people],
            PATTERNS_KEY: [p.to_dict() for p in self.patterns],
            SETTINGS_KEY: self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "Registry":
        if not isinstance(payload, dict):
            raise RegistryFormatError("registry payload must be a JSON object")
        people_raw = payload.get(PEOPLE_KEY) or []
        patterns_raw = payload.get(PATTERNS_KEY) or []
        if not isinstance(people_raw, list) or not isinstance(patterns_raw, list):
            raise RegistryFormatError("people/patterns must be JSON arrays")
        settings_raw = payload.get(SETTINGS_KEY) or {}
        if not isinstance(settings_raw, dict):
            raise RegistryFormatError("settings must be a JSON object")
        rate = settings_raw.get("unitRate", DEFAULT_UNIT_RATE)
        try:
            rate = float(rate)
        except (TypeError, ValueError):
            raise RegistryFormatError(f"unitRate is not a number: {rate!r}") from None
        if not _valid_rate(rate):
            raise RegistryFormatError(f"unitRate must be >= 0, got {rate!r}")
        return cls(
            people=[Person.from_dict(d) for d in people_raw],
            patterns=[WorkPattern.from_dict(d) for d in patterns_raw],
            settings=Settings(unit_rate=rate),
        )

    def export_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    def import_json(self, text: str) -> None:
        """
        Overwrite the sections present in `text` (people / patterns / settings).
        Raises RegistryFormatError and leaves self untouched on bad input.
        """
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise RegistryFormatError(f"import file is not valid JSON: {e}") from None
        if not isinstance(payload, dict):
            raise RegistryFormatError("import file must contain a JSON object")

        merged = self.to_dict()
        merged.update({k: v for k, v in payload.items() if k in (PEOPLE_KEY, PATTERNS_KEY, SETTINGS_KEY)})
        fresh = Registry.from_dict(merged)

        self.people = fresh.people
        self.patterns = fresh.patterns
        self.settings = fresh.settings

    def save(self, store) -> None:
        data = self.to_dict()
        encoded = {k: json.dumps(v, ensure_ascii=False) for k, v in data.items()}
        for key, value in encoded.items():
            store.set(key, value)

    @classmethod
    def load(cls, store) -> "Registry":
        payload = {}
        for key in (PEOPLE_KEY, PATTERNS_KEY, SETTINGS_KEY):
            raw = store.get(key)
            if raw is None:
                continue
            try:
                payload[key] = json.loads(raw)
            except json.JSONDecodeError as e:
                raise RegistryFormatError(f"stored {key!r} is not valid JSON: {e}") from None
        return cls.from_dict(payload)

    def summary(self) -> dict:
        return {
            "people": len(self.people),
            "patterns": len(self.patterns),
            "unit_rate": self.unit_rate,
            "with_private_car": sum(1 for p in self.people if p.has_private_car),
        }
