"""
attendance_summary.py — Statistics over matched AttendanceFacts.

Everything here is a read-only consumer of matcher output:
  - fact_cost / fact_method       per-fact cost via find_work_pattern + resolve_cost
  - summarize_facts               the summary block stored with a monthly snapshot
  - filter_facts                  person / status filters for the preview
  - analyze_work_patterns         per-person breakdown + monthly calendar grid
  - bulk_analyze                  per-person totals and overall counts

Costs are computed for every fact that resolved to a person. The status tag
is not a gate: a 自家用車なし person can still have a nearest-station cost.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from attendance_fact import AttendanceFact
from commute_common import LOCATION_SHORT
from cost_resolver import resolve_cost
from matcher import MatchStatus, find_work_pattern
from registry import Person, Registry


def fact_cost(fact: AttendanceFact, registry: Registry) -> float:
    if fact.person is None:
        return 0
    pattern = find_work_pattern(registry, fact.location, fact.original_value)
    return resolve_cost(fact.person, fact.location, pattern, registry.unit_rate).amount


def fact_method(fact: AttendanceFact, registry: Registry) -> str:
    pattern = find_work_pattern(registry, fact.location, fact.original_value)
    return resolve_cost(fact.person, fact.location, pattern, registry.unit_rate).method


def _json_number(x: float):
    """Integral floats as int so stored summaries read 240, not 240.0."""
    if isinstance(x, float) and x.is_integer():
        return int(x)
    return x


def summarize_facts(facts: Iterable[AttendanceFact], registry: Registry) -> dict:
    facts = list(facts)
    status_counts = Counter(f.status for f in facts)

    people_stats: dict[str, dict] = {}
    location_stats: Counter = Counter()
    work_pattern_stats: Counter = Counter()
    total_cost = 0.0

    for f in facts:
        stats = people_stats.setdefault(f.name, {"workDays": 0, "totalCost": 0.0, "status": f.status})
        cost = fact_cost(f, registry)
        stats["workDays"] += 1
        stats["totalCost"] += cost
        total_cost += cost
        if f.location:
            location_stats[f.location] += 1
        if f.original_value:
            work_pattern_stats[f.original_value.strip()] += 1

    for stats in people_stats.values():
        stats["totalCost"] = _json_number(stats["totalCost"])

    return {
        "totalRecords": len(facts),
        "registeredCount": status_counts[MatchStatus.OK.value],
        "unregisteredCount": status_counts[MatchStatus.UNREGISTERED.value],
        "noCarCount": status_counts[MatchStatus.NO_CAR.value],
        "totalCost": _json_number(total_cost),
        "peopleStats": people_stats,
        "locationStats": dict(location_stats.most_common()),
        "workPatternStats": dict(work_pattern_stats.most_common()),
    }


def filter_facts(
    facts: Iterable[AttendanceFact],
    name: Optional[str] = None,
    status: Optional[str] = None,
) -> list[AttendanceFact]:
    out = []
    for f in facts:
        if name and f.name != name:
            continue
        if status and f.status != status:
            continue
        out.append(f)
    return out


# ----------------------------
# Per-person analysis
# ----------------------------

@dataclass
class PersonAnalysis:
    name: str
    status: str
    person: Optional[Person]
    days: list[AttendanceFact] = field(default_factory=list)
    locations: dict[str, int] = field(default_factory=dict)
    total_cost: float = 0

    @property
    def work_days(self) -> int:
        return len(self.days)

    @property
    def most_frequent_location(self) -> Optional[tuple[str, int]]:
        """Highest count; ties keep first-seen order."""
        if not self.locations:
            return None
        return max(self.locations.items(), key=lambda kv: kv[1])

    def location_breakdown(self) -> list[tuple[str, int]]:
        return sorted(self.locations.items(), key=lambda kv: -kv[1])


def group_by_person(facts: Iterable[AttendanceFact], registry: Registry) -> list[PersonAnalysis]:
    """One entry per distinct name in first-seen order; status comes from the first fact."""
    by_name: dict[str, PersonAnalysis] = {}
    for f in facts:
        pa = by_name.get(f.name)
        if pa is None:
            pa = by_name[f.name] = PersonAnalysis(name=f.name, status=f.status, person=f.person)
        pa.days.append(f)
        if f.location:
            pa.locations[f.location] = pa.locations.get(f.location, 0) + 1
        pa.total_cost += fact_cost(f, registry)
    return list(by_name.values())


def analyze_work_patterns(facts: Iterable[AttendanceFact], registry: Registry) -> list[PersonAnalysis]:
    return group_by_person(facts, registry)


def location_short(location: str) -> str:
    return LOCATION_SHORT.get(location, location[:2])


@dataclass(frozen=True)
class CalendarCell:
    day: date
    in_month: bool
    location: Optional[str] = None

    @property
    def label(self) -> str:
        return location_short(self.location) if self.location else ""


@dataclass(frozen=True)
class MonthCalendar:
    year: int
    month: int
    weeks: tuple[tuple[CalendarCell, ...], ...]

    @property
    def title(self) -> str:
        return f"{self.year}年{self.month}月 勤務カレンダー"

    def render(self) -> str:
        lines = [self.title, " ".join(f"{d:>4}" for d in "日月火水木金土")]
        for week in self.weeks:
            cells = []
            for c in week:
                text = f"{c.day.day}{c.label}" if c.in_month else "."
                cells.append(f"{text:>4}")
            lines.append(" ".join(cells))
        return "\n".join(lines)


def monthly_calendar(days: list[AttendanceFact]) -> Optional[MonthCalendar]:
    """
    6 x 7 grid (Sunday first) for the month of the first work day.
    Returns None when there are no days or the first date is not ISO.
    """
    if not days:
        return None
    try:
        first = date.fromisoformat(days[0].date)
    except ValueError:
        return None

    month_start = first.replace(day=1)
    # date.weekday(): Monday=0; shift to Sunday=0
    start = month_start - timedelta(days=(month_start.weekday() + 1) % 7)
    by_date = {d.date: d.location for d in days}

    weeks = []
    cur = start
    for _ in range(6):
        week = []
        for _ in range(7):
            week.append(CalendarCell(
                day=cur,
                in_month=cur.month == first.month,
                location=by_date.get(cur.isoformat()),
            ))
            cur += timedelta(days=1)
        weeks.append(tuple(week))
    return MonthCalendar(first.year, first.month, tuple(weeks))


# ----------------------------
# Bulk analysis
# ----------------------------

@dataclass
class BulkSummary:
    people: list[PersonAnalysis]
    total_people: int
    registered: int
    unregistered: int
    no_car: int
    total_work_days: int
    total_cost: float

    @property
    def registered_people(self) -> list[PersonAnalysis]:
        return [p for p in self.people if p.status == MatchStatus.OK.value]

    @property
    def other_people(self) -> list[PersonAnalysis]:
        return [p for p in self.people if p.status != MatchStatus.OK.value]


def bulk_analyze(facts: Iterable[AttendanceFact], registry: Registry) -> BulkSummary:
    people = group_by_person(facts, registry)
    return BulkSummary(
        people=people,
        total_people=len(people),
        registered=sum(1 for p in people if p.status == MatchStatus.OK.value),
        unregistered=sum(1 for p in people if p.status == MatchStatus.UNREGISTERED.value),
        no_car=sum(1 for p in people if p.status == MatchStatus.NO_CAR.value),
        total_work_days=sum(p.work_days for p in people),
        total_cost=sum(p.total_cost for p in people),
    )
