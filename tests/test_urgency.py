import pytest

from daylight.urgency import (
    UrgencyComputer,
    default_urgency_computer,
    calculate_instance_urgency_score,
    calculate_urgency_score,
)

TODAY = "2025-01-15"


@pytest.mark.unit
class TestTaskScore:
    def test_unprioritized_today(self, task_factory):
        assert calculate_urgency_score(task_factory(scheduled=TODAY), TODAY) == 10

    def test_normal_far_out(self, task_factory):
        task = task_factory(priority="normal", scheduled="2025-02-19")  # 35 days
        assert calculate_urgency_score(task, TODAY) == 2

    def test_nearer_of_scheduled_and_due(self, task_factory):
        task = task_factory(priority="high", scheduled="2025-01-20", due="2025-01-17")
        # 3 + (10 - 2)
        assert calculate_urgency_score(task, TODAY) == 11

    def test_past_dates_give_no_bonus(self, task_factory):
        task = task_factory(priority="low", scheduled="2025-01-10", due="2025-01-18")
        # the past scheduled date is ignored, due is 3 days out
        assert calculate_urgency_score(task, TODAY) == 8
        assert calculate_urgency_score(task_factory(priority="low"), TODAY) == 1
        overdue = task_factory(priority="low", due="2025-01-01")
        assert calculate_urgency_score(overdue, TODAY) == 1

    def test_unknown_priority_outranks_known_priorities(self, task_factory):
        task = task_factory(priority="urgent")
        assert calculate_urgency_score(task, TODAY) == 999
        high_today = task_factory(priority="high", scheduled=TODAY)
        assert calculate_urgency_score(task, TODAY) > calculate_urgency_score(
            high_today, TODAY
        )


@pytest.mark.unit
class TestInstanceScore:
    def test_overdue_grows_with_age(self, task_factory):
        task = task_factory(priority="normal")
        assert calculate_instance_urgency_score(task, "2025-01-12", TODAY) == 15
        assert calculate_instance_urgency_score(task, "2025-01-05", TODAY) == 22

    def test_today_and_future(self, task_factory):
        task = task_factory(priority="none")
        assert calculate_instance_urgency_score(task, TODAY, TODAY) == 10
        assert calculate_instance_urgency_score(task, "2025-01-19", TODAY) == 6
        assert calculate_instance_urgency_score(task, "2025-03-01", TODAY) == 0


@pytest.mark.unit
def test_weights_come_from_config(test_env):
    test_env.ensure()
    text = test_env.config_path.read_text(encoding="utf-8")
    test_env.config_path.write_text(
        text.replace("horizon = 10.0", "horizon = 5.0"), encoding="utf-8"
    )

    urgency = UrgencyComputer(test_env)

    assert urgency.HORIZON == 5.0
    assert urgency.priority_weight("high") == 3.0
    assert urgency.proximity(0) == 5.0
    assert urgency.proximity(7) == 0.0


@pytest.mark.unit
def test_shortcuts_share_one_computer_per_home(test_env, tmp_path, monkeypatch):
    first = default_urgency_computer()
    assert default_urgency_computer() is first
    assert first.env.config_path == test_env.config_path

    other = tmp_path / "other"
    other.mkdir()
    monkeypatch.setenv("DAYLIGHT_HOME", str(other))
    assert default_urgency_computer() is not first
