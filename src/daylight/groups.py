from enum import Enum

from .instances import has_past_uncompleted_instances, is_active_today
from .task import TaskRecord


class DateGroup(str, Enum):
    PAST = "Past"
    NOW = "Now"
    UPCOMING = "Upcoming"
    WRAPPED = "Wrapped"


GROUP_ORDER = (DateGroup.PAST, DateGroup.NOW, DateGroup.UPCOMING, DateGroup.WRAPPED)


def get_task_date_group(task: TaskRecord, today: str) -> DateGroup:
    """
    Bucket a task relative to ``today``.  Nothing is stored; the bucket is
    recomputed from the ledger on every call.

    Note that an open, non-recurring task with neither a scheduled nor a due
    date lands in Wrapped (the backlog), not in Upcoming.
    """
    if task.is_done:
        return DateGroup.WRAPPED

    if task.recurrence:
        if has_past_uncompleted_instances(task, today):
            return DateGroup.PAST
        if is_active_today(task, today):
            return DateGroup.NOW
        # series explicitly scheduled for today without a matching occurrence
        if task.scheduled == today and today not in task.complete_instances:
            return DateGroup.NOW
        if today in task.complete_instances:
            return DateGroup.WRAPPED
        return DateGroup.UPCOMING

    dates = [d for d in (task.scheduled, task.due) if d]
    if not dates:
        return DateGroup.WRAPPED
    if today in dates:
        return DateGroup.NOW

    past = [d for d in dates if d < today]
    if past:
        # completed on the day it was planned for
        if any(d in task.complete_instances for d in past):
            return DateGroup.WRAPPED
        return DateGroup.PAST
    return DateGroup.UPCOMING
