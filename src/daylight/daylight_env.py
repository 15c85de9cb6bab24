from pathlib import Path
import os
import tomllib
from pydantic import BaseModel, Field, ValidationError
from typing import Optional
from jinja2 import Template


# ─── Config Schema ─────────────────────────────────────────────────
class UIConfig(BaseModel):
    week_start: str = Field("mon", pattern="^(sun|mon)$")
    grid_minutes: int = Field(15, ge=1, le=60)


class RecurrenceConfig(BaseModel):
    look_behind_days: int = Field(7, ge=0)
    look_ahead_days: int = Field(30, ge=0)
    max_iterations: int = Field(5000, ge=1)


class PriorityConfig(BaseModel):
    high: float = 3.0
    normal: float = 2.0
    low: float = 1.0
    none: float = 0.0


class UrgencyConfig(BaseModel):
    # days out at which the proximity bonus reaches zero
    horizon: float = 10.0
    unknown_priority: float = 999.0
    priority: PriorityConfig = PriorityConfig()


class SchedulerConfig(BaseModel):
    poll_seconds: float = Field(60.0, gt=0)


class DaylightConfig(BaseModel):
    title: str = "Daylight Configuration"
    ui: UIConfig = UIConfig()
    recurrence: RecurrenceConfig = RecurrenceConfig()
    urgency: UrgencyConfig = UrgencyConfig()
    scheduler: SchedulerConfig = SchedulerConfig()


# ─── Commented Template ────────────────────────────────────
CONFIG_TEMPLATE = """\
title = "{{ title }}"

[ui]
# week_start: str = 'mon' | 'sun'
# first day of the week for week and month grids
week_start = "{{ ui.week_start }}"

# grid_minutes: int
# increment used when snapping time blocks on the weekly planner
grid_minutes = {{ ui.grid_minutes }}

[recurrence]
# Occurrences of each recurring task are materialized for the
# window [today - look_behind_days, today + look_ahead_days].
look_behind_days = {{ recurrence.look_behind_days }}
look_ahead_days = {{ recurrence.look_ahead_days }}

# hard cap on candidate dates examined for a single rule
max_iterations = {{ recurrence.max_iterations }}

[urgency]
# The urgency of a task is its priority weight plus a proximity
# bonus of max(0, horizon - days until scheduled/due). Overdue
# recurring instances get horizon + days overdue.
horizon = {{ urgency.horizon }}

# weight used for priorities other than those listed below; the
# default of 999 ranks such tasks above every known priority
unknown_priority = {{ urgency.unknown_priority }}

[urgency.priority]
high   = {{ urgency.priority.high }}
normal = {{ urgency.priority.normal }}
low    = {{ urgency.priority.low }}
none   = {{ urgency.priority.none }}

[scheduler]
# seconds between checks for a change of the calendar date
poll_seconds = {{ scheduler.poll_seconds }}
"""

# ─── Save Config with Comments ───────────────────────────────


def render_config(config: DaylightConfig) -> str:
    template = Template(CONFIG_TEMPLATE)
    return template.render(**config.model_dump()).strip() + "\n"


def save_config_from_template(config: DaylightConfig, path: Path):
    path.write_text(render_config(config), encoding="utf-8")
    print(f"✅ Config with comments written to: {path}")


# ─── Main Environment Class ───────────────────────────────


class DaylightEnvironment:
    def __init__(self):
        self._home = self._resolve_home()
        self._config: Optional[DaylightConfig] = None

    @property
    def home(self) -> Path:
        return self._home

    @property
    def config_path(self) -> Path:
        return self.home / "config.toml"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"

    def ensure(self, init_config: bool = True):
        self.home.mkdir(parents=True, exist_ok=True)

        if init_config and not self.config_path.exists():
            save_config_from_template(DaylightConfig(), self.config_path)

    def read_config(self) -> DaylightConfig:
        """
        Read and validate config.toml without writing anything. A missing
        or invalid file yields the defaults.
        """
        if not self.config_path.exists():
            return DaylightConfig()
        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
            return DaylightConfig.model_validate(data)
        except (ValidationError, tomllib.TOMLDecodeError) as e:
            print(f"⚠️ Config error in {self.config_path}: {e}\nUsing defaults.")
            return DaylightConfig()

    def load_config(self) -> DaylightConfig:
        # Step 1: Create the file if it doesn't exist
        if not self.config_path.exists():
            config = DaylightConfig()
            self.home.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(render_config(config), encoding="utf-8")
            print(f"✅ Created new config file at {self.config_path}")
            self._config = config
            return config

        # Step 2: Try to load and validate the config
        config = self.read_config()

        # Step 3: Always regenerate the canonical version
        rendered = render_config(config)
        current_text = self.config_path.read_text(encoding="utf-8")
        if rendered != current_text:
            self.config_path.write_text(rendered, encoding="utf-8")
            print(f"✅ Updated {self.config_path} with any missing defaults.")

        self._config = config
        return config

    @property
    def config(self) -> DaylightConfig:
        if self._config is None:
            self._config = self.read_config()
        return self._config

    def _resolve_home(self) -> Path:
        cwd = Path.cwd()
        if (cwd / "config.toml").exists() and (cwd / "logs").is_dir():
            return cwd

        env_home = os.getenv("DAYLIGHT_HOME")
        if env_home:
            return Path(env_home).expanduser()

        xdg_home = os.getenv("XDG_CONFIG_HOME")
        if xdg_home:
            return Path(xdg_home).expanduser() / "daylight"
        else:
            return Path.home() / ".config" / "daylight"
