from pathlib import Path
from typing import Optional

from .daylight_env import DaylightEnvironment
from .shared import days_between
from .task import PRIORITIES, TaskRecord


class UrgencyComputer:
    def __init__(self, env: Optional[DaylightEnvironment] = None):
        self.env = env or DaylightEnvironment()
        self.urgency = self.env.config.urgency
        self.HORIZON = self.urgency.horizon
        self.UNKNOWN = self.urgency.unknown_priority

    def priority_weight(self, priority: str) -> float:
        """
        Weight of a priority level.  Values outside none/low/normal/high get
        the configured sentinel, 999 by default, which puts them above every
        known priority when rows are sorted by descending score.
        """
        if priority not in PRIORITIES:
            return self.UNKNOWN
        return getattr(self.urgency.priority, priority)

    def proximity(self, days_until: int | None) -> float:
        """
        Bonus for an upcoming date: horizon when it is today, falling linearly
        to 0.0 at ``horizon`` days out.
        """
        if days_until is None:
            return 0.0
        return max(0.0, self.HORIZON - days_until)

    def days_until_next(self, task: TaskRecord, today: str) -> int | None:
        """Days to the nearer of scheduled/due among those not before today."""
        upcoming = [d for d in (task.scheduled, task.due) if d and d >= today]
        if not upcoming:
            return None
        return days_between(today, min(upcoming))

    def score(self, task: TaskRecord, today: str) -> float:
        return self.priority_weight(task.priority) + self.proximity(
            self.days_until_next(task, today)
        )

    def instance_score(self, task: TaskRecord, instance_date: str, today: str) -> float:
        """
        Score one occurrence by its effective date.  Overdue occurrences
        gain a point per day overdue so that the oldest ranks first.
        """
        weight = self.priority_weight(task.priority)
        days = days_between(today, instance_date)
        if days < 0:
            return weight + self.HORIZON + abs(days)
        return weight + self.proximity(days)


_default_computers: dict[Path, UrgencyComputer] = {}


def default_urgency_computer() -> UrgencyComputer:
    """The computer shared by the shortcuts below, built once per home."""
    env = DaylightEnvironment()
    computer = _default_computers.get(env.config_path)
    if computer is None:
        computer = _default_computers[env.config_path] = UrgencyComputer(env)
    return computer


def calculate_urgency_score(task: TaskRecord, today: str) -> float:
    return default_urgency_computer().score(task, today)


def calculate_instance_urgency_score(
    task: TaskRecord, instance_date: str, today: str
) -> float:
    return default_urgency_computer().instance_score(task, instance_date, today)
