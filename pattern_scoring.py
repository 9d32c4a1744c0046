"""
pattern_scoring.py — Bulk reconciliation of each person's observed days
against every registered work pattern.

Per-day score against one pattern:
  1.0  raw code == pattern name
  0.8  raw code and pattern name contain one another
  0.6  location == pattern location
  0.4  location and pattern location contain one another
  0.0  otherwise
Empty raw codes skip the code checks.

Pattern score = mean day score. The best pattern (strictly greater wins, so
the earliest registered pattern keeps a tie) is classified:
  >= 0.8 matched | >= 0.5 partial-match | else no-match
Unregistered people, or people with no observed days: no-registration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from attendance_fact import AttendanceFact
from date_resolver import weekday_index
from matcher import find_person
from registry import Person, Registry, WorkPattern

MATCHED = "matched"
PARTIAL_MATCH = "partial-match"
NO_MATCH = "no-match"
NO_REGISTRATION = "no-registration"

MATCHED_THRESHOLD = 0.8
PARTIAL_THRESHOLD = 0.5


@dataclass(frozen=True)
class ObservedDay:
    date: str
    location: str
    original_code: str = ""

    @property
    def weekday(self) -> Optional[int]:
        return weekday_index(self.date)


@dataclass
class PatternMatchResult:
    person_name: str
    person: Optional[Person]
    status: str
    score: float
    days: list[ObservedDay] = field(default_factory=list)
    scores: list[tuple[WorkPattern, float]] = field(default_factory=list)
    best_pattern: Optional[WorkPattern] = None

    @property
    def message(self) -> str:
        return match_message(self.status, self.score)


def day_score(day: ObservedDay, pattern: WorkPattern) -> float:
    code = day.original_code
    if code:
        if code == pattern.name:
            return 1.0
        if code in pattern.name or pattern.name in code:
            return 0.8
    if day.location == pattern.work_location:
        return 0.6
    if day.location and pattern.work_location and (
        day.location in pattern.work_location or pattern.work_location in day.location
    ):
        return 0.4
    return 0.0


def pattern_score(days: list[ObservedDay], pattern: WorkPattern) -> float:
    if not days:
        return 0.0
    return sum(day_score(d, pattern) for d in days) / len(days)


def classify(score: float) -> str:
    if score >= MATCHED_THRESHOLD:
        return MATCHED
    if score >= PARTIAL_THRESHOLD:
        return PARTIAL_MATCH
    return NO_MATCH


def match_message(status: str, score: float) -> str:
    pct = int(score * 100 + 0.5)  # half-up, not banker's rounding
    if status == MATCHED:
        return f"高い一致度 ({pct}%)"
    if status == PARTIAL_MATCH:
        return f"部分的一致 ({pct}%)"
    if status == NO_MATCH:
        return f"パターン不一致 ({pct}%)"
    return "照合不可"


def match_person(person_name: str, days: list[ObservedDay], registry: Registry) -> PatternMatchResult:
    person = find_person(registry, person_name)
    if person is None or not days:
        return PatternMatchResult(person_name, person, NO_REGISTRATION, 0.0, days)

    scored = [(p, pattern_score(days, p)) for p in registry.patterns]

    best: Optional[WorkPattern] = None
    best_score = 0.0
    for pattern, score in scored:
        if score > best_score:
            best, best_score = pattern, score

    return PatternMatchResult(
        person_name=person_name,
        person=person,
        status=classify(best_score),
        score=best_score,
        days=days,
        scores=sorted(scored, key=lambda ps: -ps[1]),
        best_pattern=best,
    )


def match_with_patterns(facts: Iterable[AttendanceFact], registry: Registry) -> list[PatternMatchResult]:
    """One result per distinct fact name, in first-seen order."""
    by_name: dict[str, list[ObservedDay]] = {}
    for f in facts:
        by_name.setdefault(f.name, []).append(
            ObservedDay(date=f.date, location=f.location, original_code=f.original_value or "")
        )
    return [match_person(name, days, registry) for name, days in by_name.items()]
