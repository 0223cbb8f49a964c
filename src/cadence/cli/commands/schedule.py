"""Schedule management commands."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from rich.markup import escape

from cadence.cli.console import (
    confirm_or_cancel,
    console,
    create_table,
    dim,
    error,
    format_countdown,
    format_timestamp,
    success,
    warning,
)

if TYPE_CHECKING:
    from cadence.config import CadenceConfig
    from cadence.scheduling import RunResult, ScheduleRecord, ScheduleStore

app = typer.Typer(
    name="schedule",
    help="Manage scheduled commands.",
    no_args_is_help=True,
)

# Output kept on a run result
SUMMARY_LIMIT = 200


def register(root: typer.Typer) -> None:
    root.add_typer(app, name="schedule")


def _load(ctx: typer.Context) -> tuple[CadenceConfig, ScheduleStore]:
    """Load config and build the store for this invocation."""
    from cadence.config import ConfigError, load_config
    from cadence.logging import configure_logging
    from cadence.scheduling import ScheduleStore

    options: dict[str, Any] = ctx.obj or {}
    try:
        config = load_config(options.get("config"))
    except (ConfigError, FileNotFoundError) as e:
        error(str(e))
        raise typer.Exit(1) from None

    configure_logging(
        "DEBUG" if options.get("verbose") else config.logging.level,
        log_to_file=config.logging.log_to_file,
    )

    root: Path | None = options.get("root")
    if root is not None:
        config.root = root.expanduser()
    return config, ScheduleStore(config.root)


def _require(record: ScheduleRecord | None, schedule_id: str) -> ScheduleRecord:
    if record is None:
        error(f"Schedule {schedule_id} not found")
        raise typer.Exit(1)
    return record


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    session: Annotated[
        str | None,
        typer.Option("--session", "-s", help="Only this session plus global ones"),
    ] = None,
    show_all: Annotated[
        bool, typer.Option("--all", "-a", help="Ignore --session scoping")
    ] = False,
) -> None:
    """List schedules ordered by next run."""
    from cadence.scheduling import ScheduleManager, describe_schedule

    _, store = _load(ctx)
    records = ScheduleManager(store).list(session_id=session, show_all=show_all)
    if not records:
        warning("No schedules found")
        return

    now = store.now()
    table = create_table(("ID", "dim"), "Status", "Schedule", "Command", "Next Run")
    for record in records:
        command = record.payload
        if len(command) > 40:
            command = command[:40] + "..."
        table.add_row(
            record.id,
            str(record.status),
            describe_schedule(record.schedule),
            escape(command),
            format_countdown(record.next_run_at, now),
        )

    console.print(table)
    dim(f"Total: {len(records)} schedule(s)")


@app.command("show")
def show_cmd(
    ctx: typer.Context,
    schedule_id: Annotated[str, typer.Argument(help="Schedule ID")],
) -> None:
    """Show one schedule in full."""
    from cadence.config import get_system_timezone
    from cadence.scheduling import CronSchedule, OnceSchedule, describe_schedule

    _, store = _load(ctx)
    record = _require(store.get(schedule_id), schedule_id)

    console.print(f"[bold]{record.id}[/bold] ({record.status})")
    console.print(f"  schedule:   {describe_schedule(record.schedule)}")
    if isinstance(record.schedule, CronSchedule | OnceSchedule):
        timezone = record.schedule.timezone or f"{get_system_timezone()} (host)"
        console.print(f"  timezone:   {timezone}")
    console.print(f"  action:     {record.action_type} {escape(record.payload)}")
    if record.description:
        console.print(f"  about:      {escape(record.description)}")
    console.print(f"  session:    {record.session_id or 'global'}")
    console.print(f"  next run:   {format_timestamp(record.next_run_at)}")
    console.print(f"  last run:   {format_timestamp(record.last_run_at)}")
    if record.last_result is not None:
        outcome = "ok" if record.last_result.ok else "failed"
        detail = record.last_result.error or record.last_result.summary or ""
        console.print(f"  last result: {outcome} {escape(detail)}".rstrip())


@app.command("create")
def create_cmd(
    ctx: typer.Context,
    command: Annotated[str, typer.Argument(help="Command to schedule")],
    at: Annotated[
        str | None, typer.Option("--at", help="ISO 8601 time for a one-time run")
    ] = None,
    cron: Annotated[
        str | None, typer.Option("--cron", help="5-field cron expression")
    ] = None,
    every: Annotated[
        float | None, typer.Option("--every", help="Fixed interval")
    ] = None,
    min_interval: Annotated[
        float | None, typer.Option("--min", help="Random interval lower bound")
    ] = None,
    max_interval: Annotated[
        float | None, typer.Option("--max", help="Random interval upper bound")
    ] = None,
    unit: Annotated[
        str | None,
        typer.Option("--unit", "-u", help="seconds, minutes or hours"),
    ] = None,
    timezone: Annotated[
        str | None, typer.Option("--timezone", "--tz", help="IANA timezone name")
    ] = None,
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="Human label")
    ] = None,
    message: Annotated[
        str | None,
        typer.Option("--message", "-m", help="Deliver a message instead of running"),
    ] = None,
    session: Annotated[
        str | None, typer.Option("--session", "-s", help="Owning session ID")
    ] = None,
    schedule_id: Annotated[
        str | None, typer.Option("--id", help="Explicit schedule ID")
    ] = None,
) -> None:
    """Create a schedule."""
    from cadence.scheduling import (
        ActionType,
        CreatedBy,
        ScheduleManager,
        ScheduleValidationError,
        describe_schedule,
    )

    config, store = _load(ctx)
    try:
        record = ScheduleManager(store).create(
            command,
            at=at,
            cron=cron,
            every=every,
            min_interval=min_interval,
            max_interval=max_interval,
            unit=unit,
            timezone=timezone or config.scheduler.timezone,
            description=description,
            action_type=ActionType.MESSAGE if message else ActionType.COMMAND,
            message=message,
            session_id=session,
            created_by=CreatedBy.USER,
            schedule_id=schedule_id,
        )
    except ScheduleValidationError as e:
        error(f"Error: {e}")
        raise typer.Exit(1) from None

    success(
        f"Scheduled {record.id}: {describe_schedule(record.schedule)}, "
        f"next run {format_timestamp(record.next_run_at)}"
    )


@app.command("delete")
def delete_cmd(
    ctx: typer.Context,
    schedule_id: Annotated[str, typer.Argument(help="Schedule ID")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation")
    ] = False,
) -> None:
    """Delete a schedule."""
    from cadence.scheduling import ScheduleManager

    _, store = _load(ctx)
    record = _require(store.get(schedule_id), schedule_id)
    if not confirm_or_cancel(f"Delete schedule {record.id}?", force):
        return
    if ScheduleManager(store).delete(schedule_id):
        success(f"Deleted schedule {schedule_id}")
    else:
        error(f"Schedule {schedule_id} not found")
        raise typer.Exit(1)


@app.command("pause")
def pause_cmd(
    ctx: typer.Context,
    schedule_id: Annotated[str, typer.Argument(help="Schedule ID")],
) -> None:
    """Pause a schedule; it stays on disk but never becomes due."""
    from cadence.scheduling import ScheduleManager

    _, store = _load(ctx)
    _require(ScheduleManager(store).pause(schedule_id), schedule_id)
    success(f"Paused schedule {schedule_id}")


@app.command("resume")
def resume_cmd(
    ctx: typer.Context,
    schedule_id: Annotated[str, typer.Argument(help="Schedule ID")],
) -> None:
    """Resume a schedule with a next run computed from now."""
    from cadence.scheduling import ScheduleManager, ScheduleValidationError

    _, store = _load(ctx)
    try:
        record = ScheduleManager(store).resume(schedule_id)
    except ScheduleValidationError as e:
        error(f"Error: {e}")
        raise typer.Exit(1) from None
    record = _require(record, schedule_id)
    next_run = format_timestamp(record.next_run_at)
    success(f"Resumed schedule {schedule_id}, next run {next_run}")


@app.command("due")
def due_cmd(ctx: typer.Context) -> None:
    """List schedules that are due now."""
    _, store = _load(ctx)
    due = store.get_due()
    if not due:
        dim("Nothing due")
        return
    for record in due:
        when = format_timestamp(record.next_run_at)
        console.print(f"{record.id}  {when}  {escape(record.payload)}")


@app.command("locks")
def locks_cmd(ctx: typer.Context) -> None:
    """List held execution locks."""
    _, store = _load(ctx)
    locks = store.locks.list()
    if not locks:
        dim("No locks held")
        return

    now = store.now()
    table = create_table(("ID", "dim"), "Owner", "Age", "State")
    for schedule_id, info in locks.items():
        if info is None:
            table.add_row(schedule_id, "?", "?", "[red]corrupt[/red]")
            continue
        state = "[yellow]stale[/yellow]" if info.is_stale(now) else "held"
        age = f"{(now - info.updated_at) // 1000}s"
        table.add_row(schedule_id, info.owner_id, age, state)
    console.print(table)


async def execute_record(record: ScheduleRecord) -> RunResult:
    """Minimal executor: run commands in a shell, print messages."""
    from cadence.scheduling import ActionType, RunResult

    if record.action_type == ActionType.MESSAGE:
        console.print(f"[cyan]{record.id}[/cyan] {escape(record.payload)}")
        return RunResult(ok=True, summary=record.payload[:SUMMARY_LIMIT])

    proc = await asyncio.create_subprocess_shell(
        record.command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    output = stdout.decode(errors="replace").strip()
    if proc.returncode == 0:
        return RunResult(ok=True, summary=output[-SUMMARY_LIMIT:] or None)
    detail = stderr.decode(errors="replace").strip() or output
    reason = f"exit {proc.returncode}"
    if detail:
        reason = f"{reason}: {detail[-SUMMARY_LIMIT:]}"
    return RunResult(ok=False, error=reason)


def _build_watcher(config: CadenceConfig, store: ScheduleStore, session: str | None):
    from cadence.scheduling import ScheduleWatcher

    watcher = ScheduleWatcher(
        store,
        session_id=session,
        poll_interval=config.scheduler.poll_interval,
        lock_ttl_ms=config.scheduler.lock_ttl_ms,
    )
    watcher.add_handler(execute_record)
    return watcher


@app.command("run")
def run_cmd(
    ctx: typer.Context,
    session: Annotated[
        str | None, typer.Option("--session", "-s", help="Run as this session")
    ] = None,
) -> None:
    """Run every due schedule once and exit."""
    config, store = _load(ctx)
    watcher = _build_watcher(config, store, session)
    executed = asyncio.run(watcher.tick())
    if executed:
        success(f"Ran {len(executed)} schedule(s): {', '.join(executed)}")
    else:
        dim("Nothing to run")


@app.command("watch")
def watch_cmd(
    ctx: typer.Context,
    session: Annotated[
        str | None, typer.Option("--session", "-s", help="Run as this session")
    ] = None,
) -> None:
    """Poll for due schedules until interrupted."""
    config, store = _load(ctx)
    if not config.scheduler.enabled:
        warning("Scheduler is disabled in config")
        raise typer.Exit(1)

    watcher = _build_watcher(config, store, session)

    async def run_forever() -> None:
        await watcher.start()
        try:
            while watcher.running:
                await asyncio.sleep(1)
        finally:
            await watcher.stop()

    console.print(
        f"Watching {store.schedules_dir} every {config.scheduler.poll_interval:g}s "
        f"as {watcher.owner_id}"
    )
    try:
        asyncio.run(run_forever())
    except KeyboardInterrupt:
        dim("Stopped")
