import pytest

from daylight.daylight_env import DaylightConfig, DaylightEnvironment, render_config


@pytest.mark.unit
class TestEnvironment:
    def test_home_from_env(self, isolated_home):
        env = DaylightEnvironment()
        assert env.home == isolated_home
        assert env.config_path == isolated_home / "config.toml"
        assert env.log_dir == isolated_home / "logs"

    def test_xdg_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("DAYLIGHT_HOME", raising=False)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert DaylightEnvironment().home == tmp_path / "xdg" / "daylight"

    def test_cwd_with_config_and_logs_wins(self, tmp_path):
        (tmp_path / "config.toml").write_text('title = "here"\n', encoding="utf-8")
        (tmp_path / "logs").mkdir()
        assert DaylightEnvironment().home == tmp_path

    def test_config_reads_without_writing(self, test_env):
        config = test_env.config
        assert config.recurrence.look_behind_days == 7
        assert config.recurrence.look_ahead_days == 30
        assert config.scheduler.poll_seconds == 60.0
        assert not test_env.config_path.exists()

    def test_load_config_creates_commented_file(self, test_env):
        test_env.load_config()
        text = test_env.config_path.read_text(encoding="utf-8")
        assert "[recurrence]" in text
        assert "look_ahead_days = 30" in text
        assert "# seconds between checks" in text

    def test_load_config_restores_missing_defaults(self, test_env):
        test_env.ensure()
        test_env.config_path.write_text(
            "[recurrence]\nlook_ahead_days = 14\n", encoding="utf-8"
        )
        config = test_env.load_config()
        assert config.recurrence.look_ahead_days == 14
        text = test_env.config_path.read_text(encoding="utf-8")
        assert "look_ahead_days = 14" in text
        assert "[urgency.priority]" in text

    def test_invalid_config_falls_back_to_defaults(self, test_env, capsys):
        test_env.ensure()
        test_env.config_path.write_text('[ui]\nweek_start = "fri"\n', encoding="utf-8")
        config = test_env.read_config()
        assert config.ui.week_start == "mon"
        assert "Using defaults" in capsys.readouterr().out

    def test_broken_toml_falls_back_to_defaults(self, test_env):
        test_env.ensure()
        test_env.config_path.write_text("[ui\n", encoding="utf-8")
        assert test_env.read_config() == DaylightConfig()

    def test_rendered_template_round_trips(self, test_env):
        config = DaylightConfig.model_validate({"urgency": {"horizon": 14.0}})
        test_env.ensure(init_config=False)
        test_env.config_path.write_text(render_config(config), encoding="utf-8")
        assert test_env.read_config() == config
