"""
Re-run the instance processor when the calendar date changes.

The scheduler polls on the asyncio event loop.  ``start`` runs the processor
once right away and then re-arms a ``call_later`` check every
``poll_seconds``; when the civil date returned by the clock differs from the
date of the last run, the processor runs again.  Each scheduler owns its own
state, so several can run side by side (one per vault, one per test).
"""

import asyncio
from typing import Callable, Iterable, Mapping, Optional

from .daylight_env import DaylightEnvironment
from .instances import ProcessResult, process_recurring_instances
from .shared import log_msg, today_key
from .task import TaskRecord

TaskSource = Callable[[], Mapping[str, TaskRecord] | Iterable[TaskRecord]]
UpdateCallback = Callable[[ProcessResult], None]


class RecurringInstanceScheduler:
    def __init__(
        self,
        env: Optional[DaylightEnvironment] = None,
        clock: Optional[Callable[[], str]] = None,
        poll_seconds: float | None = None,
    ):
        self.env = env or DaylightEnvironment()
        self.clock = clock or today_key
        if poll_seconds is None:
            poll_seconds = self.env.config.scheduler.poll_seconds
        self.poll_seconds = poll_seconds
        self.last_run_date: str | None = None
        self._get_tasks: Optional[TaskSource] = None
        self._on_update: Optional[UpdateCallback] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(
        self,
        get_tasks: TaskSource,
        on_update: Optional[UpdateCallback] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> ProcessResult:
        """
        Process instances now and begin polling for a new day.  Calling
        start on a running scheduler restarts it with the new callbacks.
        """
        if self.running:
            self.stop()
        self._get_tasks = get_tasks
        self._on_update = on_update
        self._loop = loop or asyncio.get_running_loop()
        result = self.run()
        self._arm()
        return result

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def run(self) -> ProcessResult:
        if self._get_tasks is None:
            raise RuntimeError("scheduler has no task source; call start() first")
        today = self.clock()
        result = process_recurring_instances(self._get_tasks(), today, env=self.env)
        self.last_run_date = today
        log_msg(
            f"instances processed for {today}: {result.updated} updated, "
            f"{len(result.errors)} errors"
        )
        if result.updated and self._on_update is not None:
            self._on_update(result)
        return result

    def run_if_new_day(self) -> ProcessResult | None:
        if self.clock() == self.last_run_date:
            return None
        return self.run()

    def _arm(self) -> None:
        self._handle = self._loop.call_later(self.poll_seconds, self._tick)

    def _tick(self) -> None:
        if self._handle is None:
            return
        try:
            self.run_if_new_day()
        except Exception as e:
            # keep polling; the next day change retries
            log_msg(f"scheduled run failed: {e!r}")
        if self._handle is not None:
            self._arm()
