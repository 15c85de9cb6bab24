"""
Recurrence rules and occurrence generation.

A ``RecurrenceRule`` describes a repeating pattern (daily, weekly, monthly
by day-of-month or nth weekday, yearly).  ``generate_occurrences`` expands a
rule into the canonical 'YYYY-MM-DD' dates it implies inside a window.  The
expansion is delegated to dateutil's rrule, which already skips impossible
dates (Feb 30, a 31st in a 30 day month, Feb 29 in a common year) rather
than clamping them.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time

from dateutil.rrule import rrule, DAILY, WEEKLY, MONTHLY, YEARLY
from dateutil.rrule import SU, MO, TU, WE, TH, FR, SA

from .shared import (
    WEEKDAYS,
    fmt_date,
    to_date,
    is_date_key,
    weekday_tag,
    ordinal,
)

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
NTH_VALUES = (1, 2, 3, 4, 5, -1)
MAX_ITERATIONS = 5000

RRULE_FREQ = {
    "daily": DAILY,
    "weekly": WEEKLY,
    "monthly": MONTHLY,
    "yearly": YEARLY,
}

RRULE_WEEKDAY = {
    "sun": SU,
    "mon": MO,
    "tue": TU,
    "wed": WE,
    "thu": TH,
    "fri": FR,
    "sat": SA,
}

WEEKDAY_CODE = {
    "sun": "SU",
    "mon": "MO",
    "tue": "TU",
    "wed": "WE",
    "thu": "TH",
    "fri": "FR",
    "sat": "SA",
}
CODE_WEEKDAY = {v: k for k, v in WEEKDAY_CODE.items()}

SHORT_WEEKDAY = {
    "sun": "Su",
    "mon": "Mo",
    "tue": "Tu",
    "wed": "We",
    "thu": "Th",
    "fri": "Fr",
    "sat": "Sa",
}

WORK_WEEK = ("mon", "tue", "wed", "thu", "fri")


def _weekday_name(day: str) -> str:
    return day.capitalize()


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: str
    start_date: str
    interval: int = 1
    week_days: tuple[str, ...] = field(default=())
    day_of_month: int | None = None
    nth_weekday: int | None = None
    weekday_for_nth: str | None = None
    end_date: str | None = None

    def __post_init__(self):
        # canonical Sunday-first order without duplicates
        days = tuple(d for d in WEEKDAYS if d in set(self.week_days or ()))
        object.__setattr__(self, "week_days", days)
        # fields that do not apply to the frequency are cleared
        if self.frequency != "weekly":
            object.__setattr__(self, "week_days", ())
        if self.frequency != "monthly":
            object.__setattr__(self, "day_of_month", None)
            object.__setattr__(self, "nth_weekday", None)
            object.__setattr__(self, "weekday_for_nth", None)
        self.validate()

    def validate(self) -> None:
        if self.frequency not in FREQUENCIES:
            raise ValueError(f"unknown frequency {self.frequency!r}")
        if not isinstance(self.interval, int) or self.interval < 1:
            raise ValueError(f"interval must be a positive integer, not {self.interval!r}")
        if not is_date_key(self.start_date):
            raise ValueError(f"start_date {self.start_date!r} is not YYYY-MM-DD")
        if self.end_date is not None:
            if not is_date_key(self.end_date):
                raise ValueError(f"end_date {self.end_date!r} is not YYYY-MM-DD")
            if self.end_date < self.start_date:
                raise ValueError(
                    f"end_date {self.end_date} precedes start_date {self.start_date}"
                )

        if self.frequency == "weekly" and not self.week_days:
            raise ValueError("a weekly rule needs at least one weekday")

        has_nth = self.nth_weekday is not None or self.weekday_for_nth is not None
        if self.frequency == "monthly":
            if has_nth and self.day_of_month is not None:
                raise ValueError(
                    "day_of_month and nth weekday are mutually exclusive"
                )
            if not has_nth and self.day_of_month is None:
                raise ValueError(
                    "a monthly rule needs day_of_month or an nth weekday"
                )
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise ValueError(f"day_of_month {self.day_of_month} is not in 1..31")
        if has_nth:
            if self.nth_weekday not in NTH_VALUES:
                raise ValueError(f"nth_weekday {self.nth_weekday!r} is not one of {NTH_VALUES}")
            if self.weekday_for_nth not in WEEKDAYS:
                raise ValueError(f"unknown weekday {self.weekday_for_nth!r}")

    @property
    def is_nth_weekday(self) -> bool:
        return self.nth_weekday is not None and self.weekday_for_nth is not None

    def to_rrule(self, until: date | None = None) -> rrule:
        """
        Build the dateutil rrule for this rule.  ``until`` tightens the rule's
        own end date.
        """
        start = to_date(self.start_date)
        last = to_date(self.end_date) if self.end_date else None
        if until is not None and (last is None or until < last):
            last = until

        kwargs = {
            "dtstart": datetime.combine(start, time()),
            "interval": self.interval,
        }
        if last is not None:
            kwargs["until"] = datetime.combine(last, time())

        if self.frequency == "weekly":
            kwargs["byweekday"] = [RRULE_WEEKDAY[d] for d in self.week_days]
            # weeks counted from the start date, not from a calendar Monday
            kwargs["wkst"] = start.weekday()
        elif self.frequency == "monthly":
            if self.is_nth_weekday:
                kwargs["byweekday"] = RRULE_WEEKDAY[self.weekday_for_nth](
                    self.nth_weekday
                )
            else:
                kwargs["bymonthday"] = self.day_of_month
        elif self.frequency == "yearly":
            kwargs["bymonth"] = start.month
            kwargs["bymonthday"] = start.day

        return rrule(RRULE_FREQ[self.frequency], **kwargs)


# ─── Factories ─────────────────────────────────────────────────


def create_daily_recurrence(start_date: str, interval: int = 1) -> RecurrenceRule:
    return RecurrenceRule(frequency="daily", start_date=start_date, interval=interval)


def create_weekly_recurrence(
    start_date: str, week_days=(), interval: int = 1
) -> RecurrenceRule:
    """Weekly on ``week_days``; defaults to the weekday of ``start_date``."""
    days = tuple(week_days) or (weekday_tag(start_date),)
    return RecurrenceRule(
        frequency="weekly", start_date=start_date, interval=interval, week_days=days
    )


def create_monthly_recurrence(
    start_date: str, day_of_month: int | None = None
) -> RecurrenceRule:
    if day_of_month is None:
        day_of_month = to_date(start_date).day
    return RecurrenceRule(
        frequency="monthly", start_date=start_date, day_of_month=day_of_month
    )


def create_monthly_nth_weekday_recurrence(
    start_date: str, nth: int, weekday: str
) -> RecurrenceRule:
    return RecurrenceRule(
        frequency="monthly",
        start_date=start_date,
        nth_weekday=nth,
        weekday_for_nth=weekday,
    )


def create_yearly_recurrence(start_date: str, interval: int = 1) -> RecurrenceRule:
    return RecurrenceRule(frequency="yearly", start_date=start_date, interval=interval)


# ─── Occurrence Generator ──────────────────────────────────────


def generate_occurrences(
    rule: RecurrenceRule,
    window_start: str | date,
    window_end: str | date,
    max_iterations: int = MAX_ITERATIONS,
) -> list[str]:
    """
    Return the ascending 'YYYY-MM-DD' dates implied by ``rule`` within the
    inclusive window [window_start, window_end], further bounded by the
    rule's own start and end dates.  At most ``max_iterations`` dates are
    produced.  Disjoint or inverted windows give an empty list.
    """
    win_start = to_date(window_start)
    win_end = to_date(window_end)
    if win_end < win_start:
        return []

    lower = max(to_date(rule.start_date), win_start)
    upper = win_end
    if rule.end_date and to_date(rule.end_date) < upper:
        upper = to_date(rule.end_date)
    if upper < lower:
        return []

    occurrences = rule.to_rrule(until=upper).xafter(
        datetime.combine(lower, time()), count=max_iterations, inc=True
    )
    return [fmt_date(dt) for dt in occurrences]


# ─── Rule string mapping ───────────────────────────────────────


def _compact(date_key: str) -> str:
    return date_key.replace("-", "")


def _expand(compact: str) -> str:
    digits = compact.strip()[:8]
    if len(digits) != 8 or not digits.isdigit():
        raise ValueError(f"{compact!r} is not a YYYYMMDD date")
    return f"{digits[:4]}-{digits[4:6]}-{digits[6:8]}"


def recurrence_to_rrule(rule: RecurrenceRule) -> str:
    """
    'DTSTART:20250101;FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,FR;UNTIL=20251231'
    """
    parts = [f"DTSTART:{_compact(rule.start_date)}", f"FREQ={rule.frequency.upper()}"]
    if rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.frequency == "weekly" and rule.week_days:
        parts.append("BYDAY=" + ",".join(WEEKDAY_CODE[d] for d in rule.week_days))
    if rule.frequency == "monthly":
        if rule.is_nth_weekday:
            parts.append(f"BYDAY={rule.nth_weekday}{WEEKDAY_CODE[rule.weekday_for_nth]}")
        elif rule.day_of_month is not None:
            parts.append(f"BYMONTHDAY={rule.day_of_month}")
    if rule.end_date:
        parts.append(f"UNTIL={_compact(rule.end_date)}")
    return ";".join(parts)


def rrule_to_recurrence(text: str) -> RecurrenceRule:
    """
    Parse the string produced by ``recurrence_to_rrule``.  Raises ValueError
    for anything that does not describe a valid rule.
    """
    props: dict[str, str] = {}
    for part in (text or "").strip().split(";"):
        if not part.strip():
            continue
        # DTSTART:YYYYMMDD, everything else KEY=VALUE
        key, _, value = part.partition("=" if "=" in part else ":")
        props[key.strip().upper()] = value.strip()

    if "DTSTART" not in props:
        raise ValueError(f"missing DTSTART in {text!r}")
    freq = props.get("FREQ", "").lower()
    if freq not in FREQUENCIES:
        raise ValueError(f"unsupported FREQ in {text!r}")

    try:
        interval = int(props.get("INTERVAL", "1"))
    except ValueError:
        raise ValueError(f"bad INTERVAL in {text!r}")

    kwargs = {
        "frequency": freq,
        "start_date": _expand(props["DTSTART"]),
        "interval": interval,
    }

    byday = props.get("BYDAY")
    if byday:
        nth = _split_nth(byday)
        if nth is not None:
            kwargs["nth_weekday"], kwargs["weekday_for_nth"] = nth
        else:
            try:
                kwargs["week_days"] = tuple(
                    CODE_WEEKDAY[code.strip().upper()] for code in byday.split(",")
                )
            except KeyError as e:
                raise ValueError(f"unknown weekday {e} in {text!r}")

    if "BYMONTHDAY" in props:
        try:
            kwargs["day_of_month"] = int(props["BYMONTHDAY"])
        except ValueError:
            raise ValueError(f"bad BYMONTHDAY in {text!r}")

    if props.get("UNTIL"):
        kwargs["end_date"] = _expand(props["UNTIL"])

    return RecurrenceRule(**kwargs)


def _split_nth(byday: str) -> tuple[int, str] | None:
    """'2TU' -> (2, 'tue'), '-1FR' -> (-1, 'fri'), 'MO,FR' -> None"""
    token = byday.strip().upper()
    if "," in token or len(token) < 3 or token[-2:] not in CODE_WEEKDAY:
        return None
    prefix = token[:-2]
    if not prefix:
        return None
    try:
        return int(prefix), CODE_WEEKDAY[token[-2:]]
    except ValueError:
        raise ValueError(f"bad BYDAY position {byday!r}")


# ─── Descriptions ──────────────────────────────────────────────


def _is_work_week(days) -> bool:
    return set(days) == set(WORK_WEEK)


def _nth_label(nth: int) -> str:
    return "last" if nth == -1 else ordinal(nth)


def describe_recurrence(rule: RecurrenceRule) -> str:
    """Human readable description, e.g. 'Every 2 weeks' or 'Monthly on last Fri'."""
    if rule.frequency == "daily":
        return "Every day" if rule.interval == 1 else f"Every {rule.interval} days"

    if rule.frequency == "weekly":
        if rule.interval == 1 and len(rule.week_days) == 1:
            return f"Weekly on {_weekday_name(rule.week_days[0])}"
        if rule.interval == 1 and len(rule.week_days) > 1:
            if _is_work_week(rule.week_days):
                return "Mon-Fri"
            return ", ".join(SHORT_WEEKDAY[d] for d in rule.week_days)
        return f"Every {rule.interval} weeks"

    if rule.frequency == "monthly":
        if rule.is_nth_weekday:
            return (
                f"Monthly on {_nth_label(rule.nth_weekday)} "
                f"{_weekday_name(rule.weekday_for_nth)}"
            )
        return f"Monthly on {ordinal(rule.day_of_month)}"

    return "Yearly" if rule.interval == 1 else f"Every {rule.interval} years"


def format_recurrence_short(rule: RecurrenceRule) -> str:
    """Compact label for task rows."""
    if rule.frequency == "weekly":
        if _is_work_week(rule.week_days):
            return "Mon-Fri"
        if len(rule.week_days) == 1:
            return f"Weekly on {_weekday_name(rule.week_days[0])}"
        return ", ".join(SHORT_WEEKDAY[d] for d in rule.week_days)
    if rule.frequency == "monthly" and rule.is_nth_weekday:
        return f"{_nth_label(rule.nth_weekday)} {SHORT_WEEKDAY[rule.weekday_for_nth]}"
    if rule.frequency == "yearly":
        return "Yearly"
    return describe_recurrence(rule)
