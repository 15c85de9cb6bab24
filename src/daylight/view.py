"""
View rows for task lists, calendars and reports.

``create_view_rows`` expands tasks into rows: one per open non-recurring
task, and for a recurring task one per outstanding occurrence up to today
(a missed daily habit shows once for every missed day) or else a single
placeholder row.  The helpers below group, sort, filter and aggregate those
rows for the list, week/month grid and report screens.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, Mapping, Optional

from .daylight_env import DaylightEnvironment
from .groups import DateGroup, get_task_date_group
from .instances import (
    effective_date,
    has_past_uncompleted_instances,
    is_active_today,
    is_resolved,
    process_recurring_instances,
)
from .shared import WEEKDAYS, date_range, fmt_date, is_time_key, to_date, today_key
from .task import TaskRecord, minutes_in_range, minutes_on_date, total_minutes
from .urgency import UrgencyComputer


@dataclass
class ViewRow:
    key: str
    task: TaskRecord
    date_group: DateGroup
    urgency_score: float
    is_active_today: bool = False
    has_past_uncompleted: bool = False
    total_minutes: int = 0
    minutes_today: int = 0
    # the occurrence this row stands for; None for single and placeholder rows
    instance_date: str | None = None
    effective_date: str | None = None

    @property
    def title(self) -> str:
        return self.task.title

    @property
    def placement_date(self) -> str | None:
        """Date used to place the row on a calendar or planner grid."""
        return self.effective_date or self.instance_date or self.task.scheduled


@dataclass
class GroupedView:
    past: list[ViewRow] = field(default_factory=list)
    now: list[ViewRow] = field(default_factory=list)
    upcoming: list[ViewRow] = field(default_factory=list)
    wrapped: list[ViewRow] = field(default_factory=list)

    def sections(self) -> list[tuple[DateGroup, list[ViewRow]]]:
        return [
            (DateGroup.PAST, self.past),
            (DateGroup.NOW, self.now),
            (DateGroup.UPCOMING, self.upcoming),
            (DateGroup.WRAPPED, self.wrapped),
        ]


def _tasks(tasks) -> list[TaskRecord]:
    if isinstance(tasks, Mapping):
        return list(tasks.values())
    return list(tasks)


def _instances_to_show(task: TaskRecord, today: str) -> list[str]:
    # a series moved past today only shows per-instance overrides
    series_moved = bool(task.scheduled and task.scheduled > today)
    shown = []
    for date in task.active_instances:
        if is_resolved(task, date):
            continue
        if effective_date(task, date) > today:
            continue
        if series_moved and date not in task.rescheduled_instances:
            continue
        shown.append(date)
    return shown


def _instance_row(
    task: TaskRecord, instance: str, today: str, urgency: UrgencyComputer
) -> ViewRow:
    effective = effective_date(task, instance)
    if effective < today:
        group = DateGroup.PAST
    elif effective == today:
        group = DateGroup.NOW
    else:
        group = DateGroup.UPCOMING
    return ViewRow(
        key=task.key,
        task=task,
        date_group=group,
        urgency_score=urgency.instance_score(task, effective, today),
        is_active_today=effective == today,
        has_past_uncompleted=effective < today,
        total_minutes=minutes_on_date(task.time_entries, instance),
        minutes_today=minutes_on_date(task.time_entries, today),
        instance_date=instance,
        effective_date=effective,
    )


def create_view_rows(
    tasks: Mapping[str, TaskRecord] | Iterable[TaskRecord],
    today: str | None = None,
    urgency: Optional[UrgencyComputer] = None,
) -> list[ViewRow]:
    today = fmt_date(today) if today else today_key()
    urgency = urgency or UrgencyComputer()
    rows: list[ViewRow] = []

    for task in _tasks(tasks):
        entries = task.time_entries
        if not task.recurrence:
            rows.append(
                ViewRow(
                    key=task.key,
                    task=task,
                    date_group=get_task_date_group(task, today),
                    urgency_score=urgency.score(task, today),
                    is_active_today=is_active_today(task, today),
                    has_past_uncompleted=has_past_uncompleted_instances(task, today),
                    total_minutes=total_minutes(entries),
                    minutes_today=minutes_on_date(entries, today),
                    effective_date=task.scheduled or task.due,
                )
            )
            continue

        shown = _instances_to_show(task, today)
        for instance in shown:
            rows.append(_instance_row(task, instance, today, urgency))
        if not shown:
            rows.append(
                ViewRow(
                    key=task.key,
                    task=task,
                    date_group=get_task_date_group(task, today),
                    urgency_score=urgency.score(task, today),
                    total_minutes=total_minutes(entries),
                    minutes_today=minutes_on_date(entries, today),
                )
            )
    return rows


# ─── Grouping and sorting ──────────────────────────────────────


def group_by_date_group(rows: Iterable[ViewRow]) -> GroupedView:
    grouped = GroupedView()
    buckets = {
        DateGroup.PAST: grouped.past,
        DateGroup.NOW: grouped.now,
        DateGroup.UPCOMING: grouped.upcoming,
        DateGroup.WRAPPED: grouped.wrapped,
    }
    for row in rows:
        buckets[row.date_group].append(row)
    return grouped


def sort_by_urgency(rows: Iterable[ViewRow]) -> list[ViewRow]:
    """Highest score first; ties keep their order."""
    return sorted(rows, key=lambda r: r.urgency_score, reverse=True)


def sort_by_scheduled_date(rows: Iterable[ViewRow]) -> list[ViewRow]:
    """Earliest scheduled first, unscheduled last."""
    return sorted(rows, key=lambda r: r.task.scheduled or "9999-12-31")


def get_default_task_list_view(
    tasks: Mapping[str, TaskRecord] | Iterable[TaskRecord],
    today: str | None = None,
    env: Optional[DaylightEnvironment] = None,
) -> GroupedView:
    """
    Materialize due instances, then build the grouped list view with each
    group sorted by urgency.
    """
    env = env or DaylightEnvironment()
    today = fmt_date(today) if today else today_key()
    tasks = _tasks(tasks)
    process_recurring_instances(tasks, today, env=env)
    grouped = group_by_date_group(
        create_view_rows(tasks, today, urgency=UrgencyComputer(env))
    )
    grouped.past = sort_by_urgency(grouped.past)
    grouped.now = sort_by_urgency(grouped.now)
    grouped.upcoming = sort_by_urgency(grouped.upcoming)
    grouped.wrapped = sort_by_urgency(grouped.wrapped)
    return grouped


# ─── Calendar placement ────────────────────────────────────────


def _open_instances_on(task: TaskRecord, date: str) -> list[str]:
    return [
        d
        for d in task.active_instances
        if not is_resolved(task, d) and effective_date(task, d) == date
    ]


def get_tasks_in_date_range(
    rows: Iterable[ViewRow],
    start: str,
    end: str,
    today: str | None = None,
    urgency: Optional[UrgencyComputer] = None,
) -> dict[str, list[ViewRow]]:
    """
    Map every date in [start, end] to the rows that fall on it.

    Instance rows go on their effective date and single tasks on their
    scheduled and due dates.  Open instances of a recurring task that fall
    after ``today`` have no row of their own, so one is built for each of
    them and the grid also shows what is coming.
    """
    rows = list(rows)
    today = fmt_date(today) if today else today_key()
    by_date: dict[str, list[ViewRow]] = {d: [] for d in date_range(start, end)}
    placed: dict[str, set[tuple[str, str | None]]] = defaultdict(set)

    def _place(date: str, row: ViewRow, instance: str | None) -> None:
        if date not in by_date or (row.key, instance) in placed[date]:
            return
        placed[date].add((row.key, instance))
        by_date[date].append(row)

    for row in rows:
        task = row.task
        if row.instance_date:
            _place(row.placement_date, row, row.instance_date)
            continue
        if task.scheduled:
            _place(task.scheduled, row, None)
        if task.due and task.due != task.scheduled:
            _place(task.due, row, None)

    for row in deduplicate_by_key(r for r in rows if r.task.recurrence):
        task = row.task
        for instance in task.active_instances:
            effective = effective_date(task, instance)
            if is_resolved(task, instance) or effective <= today:
                continue
            if effective not in by_date or (task.key, instance) in placed[effective]:
                continue
            urgency = urgency or UrgencyComputer()
            _place(effective, _instance_row(task, instance, today, urgency), instance)
    return by_date


def get_tasks_for_date(
    rows: Iterable[ViewRow], date: str, today: str | None = None
) -> list[ViewRow]:
    return get_tasks_in_date_range(rows, date, date, today)[date]


def week_dates(anchor: str, week_start: str | None = None) -> list[str]:
    """The seven dates of the week containing ``anchor``."""
    if week_start is None:
        week_start = DaylightEnvironment().config.ui.week_start
    day = to_date(anchor)
    offset = (day.isoweekday() % 7 - WEEKDAYS.index(week_start)) % 7
    first = day - timedelta(days=offset)
    return [fmt_date(first + timedelta(days=i)) for i in range(7)]


def month_grid_dates(year: int, month: int, week_start: str | None = None) -> list[list[str]]:
    """
    Whole weeks covering the month, padded with days from the neighbouring
    months, as rows of seven dates.
    """
    first = fmt_date(f"{year:04d}-{month:02d}-01")
    weeks = []
    week = week_dates(first, week_start)
    while True:
        weeks.append(week)
        following = fmt_date(to_date(week[-1]) + timedelta(days=1))
        nxt = to_date(following)
        if (nxt.year, nxt.month) != (year, month):
            break
        week = week_dates(following, week_start)
    return weeks


def get_completed_tasks_for_date(rows: Iterable[ViewRow], date: str) -> list[ViewRow]:
    """One row per task finished on ``date``, or whose occurrence for it was done."""
    matches = []
    for row in deduplicate_by_key(rows):
        task = row.task
        if task.is_done and task.completed_at:
            if task.completed_at.split("T")[0] == date:
                matches.append(row)
        elif task.recurrence and date in task.complete_instances:
            matches.append(row)
    return matches


def get_overdue_tasks(rows: Iterable[ViewRow], today: str) -> list[ViewRow]:
    matches = []
    for row in rows:
        task = row.task
        if task.is_done:
            continue
        if task.recurrence:
            if row.has_past_uncompleted:
                matches.append(row)
        elif (task.scheduled and task.scheduled < today) or (task.due and task.due < today):
            matches.append(row)
    return matches


def _falls_on(row: ViewRow, date: str) -> bool:
    if row.instance_date:
        return row.placement_date == date
    if row.task.scheduled == date:
        return True
    return bool(row.task.recurrence and _open_instances_on(row.task, date))


def filter_scheduled_for_date(rows: Iterable[ViewRow], date: str) -> list[ViewRow]:
    return [row for row in rows if _falls_on(row, date)]


def get_backlog_tasks(rows: Iterable[ViewRow]) -> list[ViewRow]:
    """Open single tasks with neither a scheduled nor a due date."""
    return [
        row
        for row in rows
        if row.task.status == "open"
        and not row.task.recurrence
        and not row.task.scheduled
        and not row.task.due
    ]


# ─── Tags, contexts, projects ──────────────────────────────────


def get_all_tags(rows: Iterable[ViewRow]) -> list[str]:
    return sorted({t.lower() for row in rows for t in row.task.tags if t.lower() != "task"})


def get_all_contexts(rows: Iterable[ViewRow]) -> list[str]:
    return sorted({c.lower() for row in rows for c in row.task.contexts})


def get_all_projects(rows: Iterable[ViewRow]) -> list[str]:
    return sorted({p for row in rows for p in row.task.projects})


def _has(values: Iterable[str], wanted: str) -> bool:
    wanted = wanted.lower()
    return any(v.lower() == wanted for v in values)


def filter_by_tag(rows: Iterable[ViewRow], tag: str) -> list[ViewRow]:
    return [row for row in rows if _has(row.task.tags, tag)]


def filter_by_context(rows: Iterable[ViewRow], context: str) -> list[ViewRow]:
    return [row for row in rows if _has(row.task.contexts, context)]


def filter_by_project(rows: Iterable[ViewRow], project: str) -> list[ViewRow]:
    return [row for row in rows if _has(row.task.projects, project)]


def filter_incomplete(rows: Iterable[ViewRow]) -> list[ViewRow]:
    return [row for row in rows if not row.task.is_done]


def filter_completed(rows: Iterable[ViewRow]) -> list[ViewRow]:
    return [row for row in rows if row.task.is_done]


def filter_recurring(rows: Iterable[ViewRow]) -> list[ViewRow]:
    return [row for row in rows if row.task.recurrence]


def deduplicate_by_key(rows: Iterable[ViewRow]) -> list[ViewRow]:
    """Keep the first row of each task."""
    seen = set()
    unique = []
    for row in rows:
        if row.key in seen:
            continue
        seen.add(row.key)
        unique.append(row)
    return unique


# ─── Time blocks (weekly planner) ──────────────────────────────


@dataclass
class TimeBlock:
    row: ViewRow
    date: str
    start_minutes: int  # from midnight
    duration_minutes: int

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes


def parse_time_to_minutes(value: str) -> int:
    """'09:30' -> 570"""
    hours, _, minutes = value.strip().partition(":")
    return int(hours) * 60 + (int(minutes) if minutes else 0)


def minutes_to_time(minutes: int) -> str:
    """570 -> '09:30', clamped to 00:00 .. 23:59"""
    clamped = max(0, min(1439, int(minutes)))
    return f"{clamped // 60:02d}:{clamped % 60:02d}"


def snap_to_grid(minutes: float, increment: int | None = None) -> int:
    if increment is None:
        increment = DaylightEnvironment().config.ui.grid_minutes
    return int(round(minutes / increment)) * increment


def _is_time_boxed(task: TaskRecord) -> bool:
    return is_time_key(task.start_time) and bool(task.planned_duration) and task.planned_duration > 0


def get_time_blocks_for_date(rows: Iterable[ViewRow], date: str) -> list[TimeBlock]:
    return [
        TimeBlock(
            row=row,
            date=date,
            start_minutes=parse_time_to_minutes(row.task.start_time),
            duration_minutes=row.task.planned_duration,
        )
        for row in rows
        if row.placement_date == date and _is_time_boxed(row.task)
    ]


def detect_collisions(blocks: list[TimeBlock]) -> set[str]:
    """
    Keys of the tasks whose blocks overlap another block.  Blocks are
    half-open, so back-to-back blocks do not collide.
    """
    colliding: set[str] = set()
    for i, a in enumerate(blocks):
        for b in blocks[i + 1 :]:
            if a.start_minutes < b.end_minutes and b.start_minutes < a.end_minutes:
                colliding.add(a.row.key)
                colliding.add(b.row.key)
    return colliding


def get_unplanned_tasks_for_dates(
    rows: Iterable[ViewRow], dates: Iterable[str]
) -> list[ViewRow]:
    """Rows placed on one of ``dates`` that have no time block yet."""
    wanted = set(dates)
    return [
        row
        for row in rows
        if row.date_group not in (DateGroup.WRAPPED, DateGroup.PAST)
        and row.placement_date in wanted
        and not _is_time_boxed(row.task)
    ]


# ─── Reports ───────────────────────────────────────────────────


def _entries_in_range(task: TaskRecord, start: str, end: str):
    return [e for e in task.time_entries if start <= e.date <= end]


def _report_tasks(rows: Iterable[ViewRow]) -> list[TaskRecord]:
    # rows of one recurring task share its time entries
    return [row.task for row in deduplicate_by_key(rows)]


def get_total_time_in_range(rows: Iterable[ViewRow], start: str, end: str) -> int:
    return sum(
        minutes_in_range(task.time_entries, start, end) for task in _report_tasks(rows)
    )


def _split_minutes(
    rows: Iterable[ViewRow], start: str, end: str, labels_for
) -> dict[str, float]:
    totals: dict[str, float] = defaultdict(float)
    for task in _report_tasks(rows):
        labels = labels_for(task)
        if not labels:
            continue
        for entry in _entries_in_range(task, start, end):
            share = (entry.minutes or 0) / len(labels)
            for label in labels:
                totals[label] += share
    return dict(totals)


def get_time_by_project(rows: Iterable[ViewRow], start: str, end: str) -> dict[str, float]:
    """Minutes per project; a task's minutes are split evenly across its projects."""
    return _split_minutes(rows, start, end, lambda task: task.projects)


def get_time_by_tag(rows: Iterable[ViewRow], start: str, end: str) -> dict[str, float]:
    """Minutes per tag, ignoring the generic 'task' tag."""
    return _split_minutes(
        rows, start, end, lambda task: [t for t in task.tags if t != "task"]
    )
