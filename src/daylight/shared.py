import inspect
import textwrap
import shutil
import re
import os
from datetime import date, datetime, timedelta
from pathlib import Path

from daylight.daylight_env import DaylightEnvironment

DATE_FMT = "%Y-%m-%d"
DATE_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def to_date(value: str | date) -> date:
    """
    Return a civil ``date`` for a canonical 'YYYY-MM-DD' string or a date.
    Datetimes are reduced to their date part.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and DATE_REGEX.match(value):
        return datetime.strptime(value, DATE_FMT).date()
    raise ValueError(f"{value!r} is not a YYYY-MM-DD date")


def fmt_date(value: str | date) -> str:
    """Canonical, timezone free 'YYYY-MM-DD' form of a civil date."""
    return to_date(value).strftime(DATE_FMT)


def is_date_key(value) -> bool:
    if not isinstance(value, str) or not DATE_REGEX.match(value):
        return False
    try:
        datetime.strptime(value, DATE_FMT)
    except ValueError:
        return False
    return True


def is_time_key(value) -> bool:
    """True for a 24-hour 'HH:MM' time of day."""
    return isinstance(value, str) and bool(TIME_REGEX.match(value))


def today_key() -> str:
    """Today's local civil date as 'YYYY-MM-DD'."""
    return date.today().strftime(DATE_FMT)


def add_days(value: str | date, days: int) -> str:
    return fmt_date(to_date(value) + timedelta(days=days))


def days_between(start: str | date, end: str | date) -> int:
    """Whole days from start to end; negative when end is earlier."""
    return (to_date(end) - to_date(start)).days


def date_range(start: str | date, end: str | date) -> list[str]:
    """Every date from start through end inclusive."""
    first = to_date(start)
    count = (to_date(end) - first).days
    return [fmt_date(first + timedelta(days=i)) for i in range(count + 1)]


def weekday_tag(value: str | date) -> str:
    """'sun' .. 'sat' for a civil date."""
    # isoweekday: Monday=1 .. Sunday=7
    return WEEKDAYS[to_date(value).isoweekday() % 7]


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_duration(minutes: int | float) -> str:
    """
    45 -> '45m', 120 -> '2h', 90 -> '1h 30m'.
    """
    minutes = int(round(minutes))
    if minutes < 60:
        return f"{minutes}m"
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def truncate_string(s: str, max_length: int) -> str:
    if len(s) > max_length:
        return f"{s[: max_length - 2]} …"
    else:
        return s


def _get_runtime_home() -> Path:
    override = os.environ.get("DAYLIGHT_HOME")
    if override:
        return Path(override).expanduser()
    return DaylightEnvironment().home


def _resolve_log_file_path(file_path: str | Path) -> Path:
    path = Path(file_path)
    if path.is_absolute():
        return path
    return _get_runtime_home() / path


def _default_log_relative_path(kind: str) -> Path:
    """Return logs/log_<YYMMDD>.md style paths under the runtime home."""
    suffix = datetime.now().strftime("%y%m%d")
    return Path("logs") / f"{kind}_{suffix}.md"


def log_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Log a message and save it directly to a file.

    Args:
        msg (str): The message to log.
        file_path (str | Path | None, optional): Overrides the default path when
            provided. Defaults to ``None`` which writes to ``logs/log_<YYMMDD>.md``.
        print_output (bool, optional): If True, also print to console.
    """
    frame = inspect.stack()[1].frame
    func_name = frame.f_code.co_name

    # Default: just function name
    caller_name = func_name

    # Detect instance/class/static context
    if "self" in frame.f_locals:  # instance method
        cls_name = frame.f_locals["self"].__class__.__name__
        caller_name = f"{cls_name}.{func_name}"
    elif "cls" in frame.f_locals:  # classmethod
        cls_name = frame.f_locals["cls"].__name__
        caller_name = f"{cls_name}.{func_name}"

    lines = [
        f"- {datetime.now().strftime('%H:%M:%S')} log_msg ({caller_name}):  ",
    ]
    lines.extend(
        [
            f"\n{x}"
            for x in textwrap.wrap(
                msg.strip(),
                width=max(shutil.get_terminal_size()[0] - 6, 20),
                initial_indent="   ",
                subsequent_indent="   ",
            )
        ]
    )
    lines.append("\n\n")

    # Best-effort file logging; fall back to console when the file is unwritable.
    if file_path is None:
        file_path = _default_log_relative_path("log")
    log_path = _resolve_log_file_path(file_path)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.writelines(lines)
    except OSError:
        print_output = True

    if print_output:
        print("".join(lines))
