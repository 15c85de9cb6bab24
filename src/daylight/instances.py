"""
Materialization and lifecycle of recurring task instances.

``process_recurring_instances`` runs on load and once per day.  It appends
every occurrence due in the look-behind/look-ahead window to each template's
``active_instances``.  It never removes anything, so completion and skip
history survive after the window has moved on.

The ledger mutators below return False, rather than raising, when their
precondition does not hold.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .daylight_env import DaylightEnvironment
from .recurrence import generate_occurrences
from .shared import add_days, fmt_date, today_key, log_msg
from .task import TaskRecord


@dataclass
class ProcessError:
    key: str
    message: str


@dataclass
class ProcessResult:
    updated: int = 0
    updated_keys: list[str] = field(default_factory=list)
    errors: list[ProcessError] = field(default_factory=list)


def _iter_tasks(tasks) -> Iterable[tuple[str, TaskRecord]]:
    if isinstance(tasks, Mapping):
        return tasks.items()
    return ((task.key, task) for task in tasks)


def process_recurring_instances(
    tasks: Mapping[str, TaskRecord] | Iterable[TaskRecord],
    today: str | None = None,
    look_behind_days: int | None = None,
    look_ahead_days: int | None = None,
    env: DaylightEnvironment | None = None,
    max_iterations: int | None = None,
) -> ProcessResult:
    """
    Ensure the active instances of every recurring task cover the window
    [today - look_behind_days, today + look_ahead_days].  Running it twice
    with the same ``today`` changes nothing the second time.

    The configuration is only read for the settings left as None.
    """
    if None in (look_behind_days, look_ahead_days, max_iterations):
        settings = (env or DaylightEnvironment()).config.recurrence
        if look_behind_days is None:
            look_behind_days = settings.look_behind_days
        if look_ahead_days is None:
            look_ahead_days = settings.look_ahead_days
        if max_iterations is None:
            max_iterations = settings.max_iterations
    today = fmt_date(today) if today else today_key()

    window_start = add_days(today, -look_behind_days)
    window_end = add_days(today, look_ahead_days)

    result = ProcessResult()
    for key, task in _iter_tasks(tasks):
        if not task.recurrence:
            continue
        try:
            rule = task.rule()
            occurrences = generate_occurrences(
                rule, window_start, window_end, max_iterations
            )
        except Exception as e:
            result.errors.append(ProcessError(key, str(e) or e.__class__.__name__))
            log_msg(f"skipping {key}: failed to expand {task.recurrence!r}: {e}")
            continue

        existing = set(task.active_instances)
        added = [d for d in occurrences if d not in existing]
        if added:
            task.active_instances.extend(added)
            task.active_instances.sort()
            result.updated_keys.append(key)

    result.updated = len(result.updated_keys)
    if result.updated or result.errors:
        log_msg(
            f"processed recurring instances for {today} "
            f"[{window_start} .. {window_end}]: {result.updated} updated, "
            f"{len(result.errors)} errors"
        )
    return result


# ─── Ledger mutators ───────────────────────────────────────────


def complete_instance(task: TaskRecord, date: str) -> bool:
    if date not in task.active_instances or date in task.complete_instances:
        return False
    if date in task.skipped_instances:
        task.skipped_instances.remove(date)
    task.complete_instances.append(date)
    task.complete_instances.sort()
    task.touch()
    return True


def skip_instance(task: TaskRecord, date: str) -> bool:
    if date not in task.active_instances or date in task.skipped_instances:
        return False
    if date in task.complete_instances:
        task.complete_instances.remove(date)
    task.skipped_instances.append(date)
    task.skipped_instances.sort()
    task.touch()
    return True


def uncomplete_instance(task: TaskRecord, date: str) -> bool:
    if date not in task.complete_instances:
        return False
    task.complete_instances.remove(date)
    task.touch()
    return True


def reschedule_instance(task: TaskRecord, date: str, new_date: str) -> bool:
    """
    Move the active instance ``date`` to ``new_date``.  Moving it back to
    its original date drops the override.
    """
    if date not in task.active_instances:
        return False
    new_date = fmt_date(new_date)
    if new_date == date:
        if date not in task.rescheduled_instances:
            return False
        del task.rescheduled_instances[date]
    else:
        if task.rescheduled_instances.get(date) == new_date:
            return False
        task.rescheduled_instances[date] = new_date
    task.touch()
    return True


def effective_date(task: TaskRecord, date: str) -> str:
    return task.rescheduled_instances.get(date) or date


def is_resolved(task: TaskRecord, date: str) -> bool:
    return date in task.complete_instances or date in task.skipped_instances


def unresolved_instances(task: TaskRecord) -> list[str]:
    return [d for d in task.active_instances if not is_resolved(task, d)]


def is_active_today(task: TaskRecord, today: str) -> bool:
    return any(effective_date(task, d) == today for d in unresolved_instances(task))


def has_past_uncompleted_instances(task: TaskRecord, today: str) -> bool:
    # a series moved past today hides its earlier instances
    if task.scheduled and task.scheduled > today:
        return False
    return any(effective_date(task, d) < today for d in unresolved_instances(task))
