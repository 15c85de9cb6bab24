"""
Task records and their instance ledger.

A ``TaskRecord`` is the in-memory form of one task file.  When
``recurrence`` is set the record is a series template and the ledger fields
(``active_instances``, ``complete_instances``, ``skipped_instances`` and
``rescheduled_instances``) track what has happened to each occurrence.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from .recurrence import RecurrenceRule, rrule_to_recurrence, recurrence_to_rrule
from .shared import is_date_key, is_time_key

PRIORITIES = ("none", "low", "normal", "high")


@dataclass
class TimeEntry:
    date: str
    minutes: int
    note: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "TimeEntry":
        minutes = data.get("minutes", 0)
        return cls(
            date=str(data.get("date") or ""),
            minutes=minutes if isinstance(minutes, (int, float)) else 0,
            note=data.get("note") or None,
        )

    def to_dict(self) -> dict:
        return {"date": self.date, "minutes": self.minutes, "note": self.note}


@dataclass
class TaskRecord:
    key: str
    recurrence: RecurrenceRule | str | None = None
    scheduled: str | None = None
    due: str | None = None
    start_time: str | None = None  # HH:MM
    planned_duration: int | None = None  # minutes
    priority: str = "none"
    status: str = "open"
    completed_at: str | None = None
    tags: list[str] = field(default_factory=list)
    contexts: list[str] = field(default_factory=list)
    projects: list[str] = field(default_factory=list)
    active_instances: list[str] = field(default_factory=list)
    complete_instances: list[str] = field(default_factory=list)
    skipped_instances: list[str] = field(default_factory=list)
    rescheduled_instances: dict[str, str] = field(default_factory=dict)
    time_entries: list[TimeEntry] = field(default_factory=list)
    date_modified: str | None = None

    @property
    def title(self) -> str:
        return self.key[:-3] if self.key.endswith(".md") else self.key

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurrence)

    @property
    def is_done(self) -> bool:
        return self.status == "done"

    def rule(self) -> Optional[RecurrenceRule]:
        """
        The parsed recurrence rule.  Rule strings are parsed on demand so
        that a malformed rule raises ValueError for this task alone.
        """
        if not self.recurrence:
            return None
        if isinstance(self.recurrence, RecurrenceRule):
            return self.recurrence
        return rrule_to_recurrence(self.recurrence)

    def touch(self) -> None:
        self.date_modified = datetime.now().isoformat(timespec="seconds")

    @classmethod
    def from_dict(cls, key: str, data: dict) -> "TaskRecord":
        """
        Build a record from frontmatter style data.  Unknown keys are ignored
        and malformed dates and start times are dropped rather than rejected.
        """

        def _date(value):
            value = str(value) if value is not None else None
            return value if is_date_key(value) else None

        def _strings(value):
            if not isinstance(value, list):
                return []
            return [str(v) for v in value if isinstance(v, str) and v.strip()]

        def _dates(value):
            return [str(v) for v in value or [] if is_date_key(str(v))]

        priority = data.get("priority") or "none"
        status = "done" if data.get("status") == "done" else "open"
        planned = data.get("plannedDuration")
        start_time = data.get("startTime")

        return cls(
            key=key,
            recurrence=data.get("recurrence") or None,
            scheduled=_date(data.get("scheduled")),
            due=_date(data.get("due")),
            start_time=start_time if is_time_key(start_time) else None,
            planned_duration=planned if isinstance(planned, int) and planned > 0 else None,
            priority=str(priority),
            status=status,
            completed_at=data.get("completedAt") or None,
            tags=_strings(data.get("tags")),
            contexts=_strings(data.get("contexts")),
            projects=_strings(data.get("projects")),
            active_instances=sorted(set(_dates(data.get("active_instances")))),
            complete_instances=_dates(data.get("complete_instances")),
            skipped_instances=_dates(data.get("skipped_instances")),
            rescheduled_instances={
                str(k): str(v)
                for k, v in (data.get("rescheduled_instances") or {}).items()
                if is_date_key(str(k)) and is_date_key(str(v))
            },
            time_entries=[
                TimeEntry.from_dict(e)
                for e in data.get("timeEntries") or []
                if isinstance(e, dict)
            ],
            date_modified=data.get("dateModified") or None,
        )

    def to_dict(self) -> dict:
        recurrence = self.recurrence
        if isinstance(recurrence, RecurrenceRule):
            recurrence = recurrence_to_rrule(recurrence)
        return {
            "status": self.status,
            "priority": self.priority,
            "scheduled": self.scheduled,
            "due": self.due,
            "startTime": self.start_time,
            "plannedDuration": self.planned_duration,
            "tags": list(self.tags),
            "contexts": list(self.contexts),
            "projects": list(self.projects),
            "recurrence": recurrence,
            "active_instances": list(self.active_instances),
            "complete_instances": list(self.complete_instances),
            "skipped_instances": list(self.skipped_instances),
            "rescheduled_instances": dict(self.rescheduled_instances),
            "timeEntries": [e.to_dict() for e in self.time_entries],
            "completedAt": self.completed_at,
            "dateModified": self.date_modified,
        }


# ─── Time entries ──────────────────────────────────────────────


def total_minutes(entries: Iterable[TimeEntry]) -> int:
    return sum(e.minutes or 0 for e in entries)


def minutes_on_date(entries: Iterable[TimeEntry], date: str) -> int:
    return sum(e.minutes or 0 for e in entries if e.date == date)


def minutes_in_range(entries: Iterable[TimeEntry], start: str, end: str) -> int:
    return sum(e.minutes or 0 for e in entries if start <= e.date <= end)
