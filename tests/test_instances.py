"""
Tests for the instance processor and ledger mutators.
"""

from datetime import timedelta

import pytest

from daylight.instances import (
    complete_instance,
    effective_date,
    has_past_uncompleted_instances,
    is_active_today,
    process_recurring_instances,
    reschedule_instance,
    skip_instance,
    uncomplete_instance,
    unresolved_instances,
)
from daylight.recurrence import create_daily_recurrence, create_weekly_recurrence
from daylight.task import TaskRecord

DAILY = "DTSTART:20250101;FREQ=DAILY"


@pytest.mark.unit
class TestProcessRecurringInstances:
    def test_fills_window(self, task_factory):
        task = task_factory("Stretch.md", recurrence=DAILY)
        result = process_recurring_instances(
            {task.key: task}, "2025-01-10", look_behind_days=7, look_ahead_days=3
        )
        assert result.updated == 1
        assert result.updated_keys == ["Stretch.md"]
        assert result.errors == []
        assert task.active_instances[0] == "2025-01-03"
        assert task.active_instances[-1] == "2025-01-13"
        assert len(task.active_instances) == 11

    def test_idempotent(self, task_factory):
        task = task_factory("Stretch.md", recurrence=DAILY)
        process_recurring_instances([task], "2025-01-10", 7, 3)
        before = list(task.active_instances)

        again = process_recurring_instances([task], "2025-01-10", 7, 3)

        assert again.updated == 0
        assert again.updated_keys == []
        assert task.active_instances == before

    def test_never_removes_history(self, task_factory):
        task = task_factory("Stretch.md", recurrence=DAILY)
        process_recurring_instances([task], "2025-01-10", 2, 0)
        process_recurring_instances([task], "2025-02-10", 2, 0)
        assert "2025-01-08" in task.active_instances
        assert "2025-02-10" in task.active_instances
        assert task.active_instances == sorted(task.active_instances)

    def test_keeps_existing_out_of_order_entries_sorted(self, task_factory):
        task = task_factory(
            "Stretch.md", recurrence=DAILY, active_instances=["2025-01-12"]
        )
        process_recurring_instances([task], "2025-01-11", 1, 0)
        assert task.active_instances == ["2025-01-10", "2025-01-11", "2025-01-12"]

    def test_uses_configured_window(self, task_factory, test_env):
        task = task_factory("Stretch.md", recurrence=create_daily_recurrence("2024-01-01"))
        process_recurring_instances([task], "2025-01-10", env=test_env)
        # defaults: 7 days behind, 30 ahead
        assert task.active_instances[0] == "2025-01-03"
        assert task.active_instances[-1] == "2025-02-09"

    def test_bad_rule_is_isolated(self, task_factory):
        broken = task_factory("Broken.md", recurrence="FREQ=SOMETIMES")
        good = task_factory("Good.md", recurrence=DAILY)
        plain = task_factory("Plain.md", scheduled="2025-01-10")

        result = process_recurring_instances(
            [broken, good, plain], "2025-01-10", 0, 0
        )

        assert result.updated_keys == ["Good.md"]
        assert [e.key for e in result.errors] == ["Broken.md"]
        assert "DTSTART" in result.errors[0].message
        assert broken.active_instances == []
        assert plain.active_instances == []

    def test_defaults_to_today(self, frozen_time, task_factory):
        task = task_factory("Stretch.md", recurrence=DAILY)
        process_recurring_instances([task], look_behind_days=0, look_ahead_days=0)
        assert task.active_instances == ["2025-01-15"]

        frozen_time.tick(delta=timedelta(days=1))
        process_recurring_instances([task], look_behind_days=0, look_ahead_days=0)
        assert task.active_instances == ["2025-01-15", "2025-01-16"]

    def test_explicit_settings_skip_the_config(self, task_factory, monkeypatch):
        def no_env(*args, **kwargs):
            raise AssertionError("configuration should not be read")

        monkeypatch.setattr("daylight.instances.DaylightEnvironment", no_env)
        task = task_factory("Stretch.md", recurrence=DAILY)
        result = process_recurring_instances(
            [task], "2025-01-10", 1, 1, max_iterations=100
        )
        assert result.errors == []
        assert task.active_instances == ["2025-01-09", "2025-01-10", "2025-01-11"]

    def test_iteration_cap_from_argument(self, task_factory):
        task = task_factory("Stretch.md", recurrence=DAILY)
        process_recurring_instances([task], "2025-01-10", 0, 30, max_iterations=5)
        assert task.active_instances == [
            "2025-01-10",
            "2025-01-11",
            "2025-01-12",
            "2025-01-13",
            "2025-01-14",
        ]

    def test_weekly_end_to_end(self, task_factory):
        task = task_factory(
            "Gym.md", recurrence=create_weekly_recurrence("2025-01-01", ["mon", "fri"])
        )
        process_recurring_instances([task], "2025-01-07", 6, 7)
        assert task.active_instances == [
            "2025-01-03",
            "2025-01-06",
            "2025-01-10",
            "2025-01-13",
        ]


@pytest.fixture
def ledger(task_factory) -> TaskRecord:
    return task_factory(
        "Walk.md",
        recurrence=DAILY,
        active_instances=["2025-01-08", "2025-01-09", "2025-01-10"],
    )


@pytest.mark.unit
class TestLedgerMutators:
    def test_complete(self, ledger):
        assert complete_instance(ledger, "2025-01-09")
        assert ledger.complete_instances == ["2025-01-09"]
        assert ledger.date_modified is not None
        # second time is a no-op
        assert not complete_instance(ledger, "2025-01-09")

    def test_complete_requires_active(self, ledger):
        assert not complete_instance(ledger, "2025-01-20")
        assert ledger.complete_instances == []
        assert ledger.date_modified is None

    def test_complete_and_skip_are_disjoint(self, ledger):
        assert skip_instance(ledger, "2025-01-08")
        assert complete_instance(ledger, "2025-01-08")
        assert ledger.skipped_instances == []
        assert ledger.complete_instances == ["2025-01-08"]

        assert skip_instance(ledger, "2025-01-08")
        assert ledger.complete_instances == []
        assert ledger.skipped_instances == ["2025-01-08"]
        assert not skip_instance(ledger, "2025-01-08")

    def test_sequence_never_overlaps(self, ledger):
        ops = [complete_instance, skip_instance, uncomplete_instance]
        for i in range(12):
            ops[i % 3](ledger, ledger.active_instances[i % 3])
            overlap = set(ledger.complete_instances) & set(ledger.skipped_instances)
            assert overlap == set()

    def test_complete_keeps_sorted(self, ledger):
        complete_instance(ledger, "2025-01-10")
        complete_instance(ledger, "2025-01-08")
        assert ledger.complete_instances == ["2025-01-08", "2025-01-10"]

    def test_uncomplete(self, ledger):
        assert not uncomplete_instance(ledger, "2025-01-08")
        skip_instance(ledger, "2025-01-09")
        complete_instance(ledger, "2025-01-08")
        assert uncomplete_instance(ledger, "2025-01-08")
        assert ledger.complete_instances == []
        # does not restore a skip
        assert ledger.skipped_instances == ["2025-01-09"]

    def test_reschedule(self, ledger):
        assert reschedule_instance(ledger, "2025-01-09", "2025-01-12")
        assert effective_date(ledger, "2025-01-09") == "2025-01-12"
        assert effective_date(ledger, "2025-01-10") == "2025-01-10"
        assert not reschedule_instance(ledger, "2025-01-09", "2025-01-12")

        # moving back to the original date drops the override
        assert reschedule_instance(ledger, "2025-01-09", "2025-01-09")
        assert ledger.rescheduled_instances == {}
        assert not reschedule_instance(ledger, "2025-01-09", "2025-01-09")

    def test_reschedule_requires_active(self, ledger):
        assert not reschedule_instance(ledger, "2025-02-01", "2025-02-02")
        assert ledger.rescheduled_instances == {}


@pytest.mark.unit
class TestLedgerQueries:
    def test_unresolved(self, ledger):
        complete_instance(ledger, "2025-01-08")
        skip_instance(ledger, "2025-01-10")
        assert unresolved_instances(ledger) == ["2025-01-09"]

    def test_active_today_follows_effective_date(self, ledger):
        assert is_active_today(ledger, "2025-01-10")
        reschedule_instance(ledger, "2025-01-10", "2025-01-11")
        assert not is_active_today(ledger, "2025-01-10")
        assert is_active_today(ledger, "2025-01-11")

    def test_past_uncompleted(self, ledger):
        assert has_past_uncompleted_instances(ledger, "2025-01-10")
        complete_instance(ledger, "2025-01-08")
        skip_instance(ledger, "2025-01-09")
        assert not has_past_uncompleted_instances(ledger, "2025-01-10")

    def test_rescheduling_forward_clears_overdue(self, ledger):
        reschedule_instance(ledger, "2025-01-08", "2025-01-10")
        reschedule_instance(ledger, "2025-01-09", "2025-01-10")
        assert not has_past_uncompleted_instances(ledger, "2025-01-10")

    def test_series_moved_to_future_hides_past(self, ledger):
        ledger.scheduled = "2025-01-20"
        assert not has_past_uncompleted_instances(ledger, "2025-01-10")
