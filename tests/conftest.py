"""
Shared pytest fixtures for daylight tests.

This module provides common fixtures used across all test files, including:
- An isolated home directory for every test
- Time freezing utilities
- Test environment setup
- Task record factories
"""

import pytest
from datetime import datetime
from freezegun import freeze_time

from daylight.daylight_env import DaylightEnvironment
from daylight.task import TaskRecord, TimeEntry


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """
    Point DAYLIGHT_HOME at a temporary directory so that no test reads or
    writes the real configuration or log files.
    """
    home = tmp_path / "daylight-home"
    monkeypatch.setenv("DAYLIGHT_HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return home


@pytest.fixture
def frozen_time():
    """
    Freezes time to 2025-01-15 12:00:00 for the duration of the test.

    Usage:
        def test_something(frozen_time):
            today_key()  # '2025-01-15'
            frozen_time.tick(delta=timedelta(days=1))
            today_key()  # '2025-01-16'
    """
    with freeze_time("2025-01-15 12:00:00") as frozen:
        yield frozen


@pytest.fixture
def freeze_at():
    """
    Returns a function that freezes time to a specific datetime.

    Usage:
        def test_something(freeze_at):
            with freeze_at("2025-01-15 10:00:00"):
                ...
    """
    return freeze_time


@pytest.fixture
def test_env():
    """
    Provides a DaylightEnvironment rooted in the temporary home, with the
    default configuration.
    """
    env = DaylightEnvironment()
    return env


@pytest.fixture
def task_factory():
    """
    Provides a factory function for TaskRecord instances.

    Usage:
        def test_something(task_factory):
            task = task_factory("Water plants.md", recurrence="DTSTART:20250101;FREQ=DAILY")
    """

    def _create(key: str = "Task.md", **fields) -> TaskRecord:
        entries = fields.pop("time_entries", [])
        task = TaskRecord(key=key, **fields)
        task.time_entries = [
            e if isinstance(e, TimeEntry) else TimeEntry(*e) for e in entries
        ]
        return task

    return _create


@pytest.fixture
def mock_now(frozen_time):
    """The datetime the frozen_time fixture freezes to."""
    return datetime(2025, 1, 15, 12, 0, 0)
