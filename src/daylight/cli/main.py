import os
import json
import click
from pathlib import Path
from rich import print

from rich.console import Console
from rich.markup import escape

from daylight import __version__ as VERSION
from daylight.daylight_env import DaylightEnvironment
from daylight.recurrence import (
    describe_recurrence,
    format_recurrence_short,
    generate_occurrences,
    rrule_to_recurrence,
)
from daylight.shared import (
    add_days,
    format_duration,
    fmt_date,
    today_key,
    truncate_string,
    weekday_tag,
)
from daylight.task import TaskRecord
from daylight.view import get_default_task_list_view

from datetime import date


class _DateParam(click.ParamType):
    name = "date"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        if isinstance(value, date):
            return fmt_date(value)
        s = str(value).strip().lower()
        if s in ("today", "now"):
            return today_key()
        try:
            return fmt_date(s)
        except ValueError:
            self.fail("Expected YYYY-MM-DD or 'today'", param, ctx)


_DATE = _DateParam()

GROUP_STYLE = {
    "Past": "bold red",
    "Now": "bold yellow",
    "Upcoming": "bold deep_sky_blue1",
    "Wrapped": "bold green",
}


def _parse_rule(text: str):
    try:
        return rrule_to_recurrence(text)
    except ValueError as e:
        raise click.ClickException(f"invalid rule: {e}")


def load_tasks(path: str | Path) -> dict[str, TaskRecord]:
    """
    Read a JSON task file: either a list of task objects, each with a "key",
    or an object mapping key -> task object.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        items = list(data.items())
    elif isinstance(data, list):
        items = [(str(d.get("key") or f"task-{i}"), d) for i, d in enumerate(data)]
    else:
        raise click.ClickException(f"{path}: expected a list or an object of tasks")

    return {
        key: TaskRecord.from_dict(key, value)
        for key, value in items
        if isinstance(value, dict)
    }


def save_tasks(path: str | Path, tasks: dict[str, TaskRecord]):
    payload = {key: task.to_dict() for key, task in tasks.items()}
    Path(path).write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


@click.group()
@click.version_option(VERSION, prog_name="daylight", message="%(prog)s version %(version)s")
@click.option(
    "--home",
    help="Override the Daylight home directory (equivalent to setting $DAYLIGHT_HOME).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, home, verbose):
    """Daylight CLI – expand recurring tasks and show the day's task list."""
    if home:
        os.environ["DAYLIGHT_HOME"] = (
            home  # Must be set before DaylightEnvironment is instantiated
        )

    env = DaylightEnvironment()
    env.ensure(init_config=True)
    config = env.load_config()

    ctx.ensure_object(dict)
    ctx.obj["ENV"] = env
    ctx.obj["CONFIG"] = config
    ctx.obj["VERBOSE"] = verbose


@cli.command()
@click.argument("rule")
@click.option(
    "--start",
    "start_opt",
    type=_DATE,
    help="First date of the window (YYYY-MM-DD or 'today'). Defaults to the rule's start.",
)
@click.option(
    "--end",
    "end_opt",
    type=_DATE,
    help="Last date of the window. Defaults to look_ahead_days after the start.",
)
@click.pass_context
def occurrences(ctx, rule, start_opt, end_opt):
    """
    List the dates a rule produces.

    Examples:
      daylight occurrences "DTSTART:20250101;FREQ=DAILY"
      daylight occurrences "DTSTART:20250114;FREQ=MONTHLY;BYDAY=2TU" --end 2025-06-30
    """
    config = ctx.obj["CONFIG"]
    parsed = _parse_rule(rule)

    start = start_opt or parsed.start_date
    end = end_opt or add_days(start, config.recurrence.look_ahead_days)

    if ctx.obj["VERBOSE"]:
        print(f"[blue]{describe_recurrence(parsed)}[/blue] from {start} through {end}")

    dates = generate_occurrences(
        parsed, start, end, max_iterations=config.recurrence.max_iterations
    )
    for d in dates:
        click.echo(f"{d} {weekday_tag(d)}")
    if not dates:
        print("[yellow]no occurrences in this window[/yellow]")


@cli.command()
@click.argument("rule")
def describe(rule):
    """Show the long and short labels for a rule."""
    parsed = _parse_rule(rule)
    click.echo(describe_recurrence(parsed))
    click.echo(format_recurrence_short(parsed))


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--today", "today_opt", type=_DATE, help="Date to treat as today.")
@click.option(
    "--save",
    is_flag=True,
    help="Write the updated instance ledger back to FILE.",
)
@click.option(
    "--width",
    type=click.IntRange(10, 200),
    default=60,
    help="Maximum title width.",
)
@click.pass_context
def agenda(ctx, file, today_opt, save, width):
    """
    Materialize recurring instances for the tasks in FILE and print the
    task list grouped into Past, Now, Upcoming and Wrapped.
    """
    env = ctx.obj["ENV"]
    verbose = ctx.obj["VERBOSE"]
    today = today_opt or today_key()

    try:
        tasks = load_tasks(file)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{file}: {e}")

    if verbose:
        print(f"daylight version: {VERSION}")
        print(f"using home directory: {env.home}")
        print(f"[blue]{len(tasks)} tasks loaded from[/blue] {file}")

    view = get_default_task_list_view(tasks, today, env=env)

    console = Console(highlight=False)
    console.print(f"[bold]{today}[/bold]")
    for group, rows in view.sections():
        if not rows:
            continue
        console.print()
        console.print(f"[{GROUP_STYLE[group.value]}]{group.value}[/] ({len(rows)})")
        for row in rows:
            when = row.effective_date or ""
            spent = f" [dim]{format_duration(row.total_minutes)}[/dim]" if row.total_minutes else ""
            console.print(
                f"  {row.urgency_score:>6.1f}  {when:<10}  "
                f"{escape(truncate_string(row.title, width))}{spent}",
            )

    if save:
        save_tasks(file, tasks)
        print(f"✅ Saved instance ledger to {file}")


if __name__ == "__main__":
    cli()
