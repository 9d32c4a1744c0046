"""
matcher.py — Resolve spreadsheet names to registered people and raw work
codes to registered work patterns.

Person cascade (first hit wins, registration order within each step):
  1. raw candidate          == registered name
  2. normalized candidate   == registered name
  3. normalized candidate   == normalized registered name
Step 3 tolerates registry entries stored with odd spacing.

Pattern lookup (find_work_pattern):
  1. raw code present -> exact pattern name, else substring either direction
  2. pattern.work_location == location
  3. None
Ties go to registration order; there is no scoring here.

Misses are outcomes, not errors: an unmatched name gets status 未登録.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from attendance_fact import AttendanceFact
from name_normalizer import normalize_name
from registry import Person, Registry, WorkPattern


class MatchStatus(str, Enum):
    OK = "OK"
    NO_CAR = "自家用車なし"
    UNREGISTERED = "未登録"


def find_person(registry: Registry, candidate) -> Optional[Person]:
    if candidate is None:
        return None
    raw = str(candidate)
    people = registry.people

    hit = next((p for p in people if p.name == raw), None)
    if hit is not None:
        return hit

    norm = normalize_name(raw)
    hit = next((p for p in people if p.name == norm), None)
    if hit is not None:
        return hit

    return next((p for p in people if normalize_name(p.name) == norm), None)


def match_status(person: Optional[Person]) -> MatchStatus:
    """Coarse display tag; a no-car person can still have a train cost."""
    if person is None:
        return MatchStatus.UNREGISTERED
    return MatchStatus.OK if person.has_private_car else MatchStatus.NO_CAR


def match_fact(fact: AttendanceFact, registry: Registry) -> AttendanceFact:
    person = find_person(registry, fact.name)
    return fact.with_changes(person=person, status=match_status(person).value)


def match_facts(facts: Iterable[AttendanceFact], registry: Registry) -> list[AttendanceFact]:
    return [match_fact(f, registry) for f in facts]


def rename_fact(fact: AttendanceFact, new_name: str, registry: Registry) -> AttendanceFact:
    """
    Manual name correction for a single fact. Matching is re-run for this
    fact only; name_modified tracks whether it now differs from the sheet.
    """
    original = fact.original_name or fact.name
    name = (new_name or "").strip()
    corrected = fact.with_changes(
        name=name,
        original_name=original,
        name_modified=name != original,
    )
    return match_fact(corrected, registry)


def reset_fact_name(fact: AttendanceFact, registry: Registry) -> AttendanceFact:
    return rename_fact(fact, fact.original_name or fact.name, registry)


def find_work_pattern(registry: Registry, work_location: Optional[str], original_code=None) -> Optional[WorkPattern]:
    patterns = registry.patterns

    if original_code is not None and str(original_code).strip():
        code = str(original_code).strip()
        for pattern in patterns:
            name = pattern.name.strip()
            if name == code or name in code or code in name:
                return pattern

    if work_location:
        return next((p for p in patterns if p.work_location == work_location), None)

    return None
