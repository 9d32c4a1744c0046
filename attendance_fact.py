from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from registry import Person


@dataclass
class AttendanceFact:
    """
    One (person, date, location) observation pulled from an attendance sheet.

    Drafts come out of grid_extractor with person=None and status="";
    matcher.match_fact() fills both in. original_value is the raw work-code
    text of the source cell, kept for pattern lookup and manual review.
    """
    name: str
    date: str
    day_of_week: str
    location: str
    original_value: str
    source_row: int
    person: Optional[Person] = None
    status: str = ""
    name_modified: bool = False
    original_name: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "date": self.date,
            "dayOfWeek": self.day_of_week,
            "location": self.location,
            "originalValue": self.original_value,
            "sourceRow": self.source_row,
            "person": self.person.to_dict() if self.person is not None else None,
            "status": self.status,
            "nameModified": self.name_modified,
            "originalName": self.original_name,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "AttendanceFact":
        person = d.get("person")
        return cls(
            name=str(d.get("name") or ""),
            date=str(d.get("date") or ""),
            day_of_week=str(d.get("dayOfWeek") or ""),
            location=str(d.get("location") or ""),
            original_value=str(d.get("originalValue") or d.get("originalCell") or ""),
            source_row=int(d.get("sourceRow") or d.get("originalRow") or 0),
            person=Person.from_dict(person) if person else None,
            status=str(d.get("status") or ""),
            name_modified=bool(d.get("nameModified")),
            original_name=str(d.get("originalName") or d.get("name") or ""),
        )

    def with_changes(self, **changes) -> "AttendanceFact":
        return replace(self, **changes)
