#!/usr/bin/env python3
"""
ShopClock CLI - clock in/out, hours and payroll text from the terminal.

Times are ISO 8601; naive times are read in the configured timezone.
"""

import sys
from datetime import date

from shopclock.config import load_settings
from shopclock.events import clock_in, clock_out
from shopclock.observability import configure_logging
from shopclock.service import ClockService, build_service
from shopclock.store import StoreError
from shopclock.summary import (
    format_gap_duration,
    format_hours,
    report_week_start,
    text_for_summary,
)
from shopclock.validation import (
    ValidationError,
    parse_date,
    parse_timestamp,
)

# Global service instance
_service: ClockService | None = None


def get_service() -> ClockService:
    """Get or create the service for this process."""
    global _service
    if _service is None:
        settings = load_settings()
        configure_logging(settings.log_level, settings.log_json)
        _service = build_service(settings)
    return _service


def reset_service() -> None:
    global _service
    _service = None


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [max(len(str(row[i])) for row in [headers] + rows) for i in range(len(headers))]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_str)
    print("─" * len(header_str))

    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths)))


def _local(service: ClockService, dt) -> str:
    if dt is None:
        return "-"
    return dt.astimezone(service.machine.settings.tzinfo).strftime("%Y-%m-%d %H:%M")


def _today(service: ClockService) -> date:
    return service.aggregator.local_date(service.machine.clock.now())


def _timestamp_arg(service: ClockService, args: list):
    tz = service.machine.settings.tzinfo
    return parse_timestamp(args[0] if args else None, tz, default=service.machine.clock.now())


def _date_arg(service: ClockService, args: list) -> date:
    return parse_date(args[0]) if args else _today(service)


# ==================== Commands ====================


def cmd_init(args):
    """Create the database and show where things live."""
    service = get_service()
    settings = service.machine.settings
    print_header("SHOPCLOCK INIT")
    print(f"  Database:      {settings.db_path}")
    print(f"  Timezone:      {settings.timezone}")
    print(f"  Grace period:  {settings.grace_minutes} min")
    print(f"  Summary hour:  {settings.summary_hour:02d}:00 Monday")


def cmd_status(args):
    """Show the current clock state."""
    service = get_service()
    snap = service.machine.snapshot()
    session = service.machine.active_session

    print_header("STATUS")
    print(f"  State:   {snap['state']}")
    if session is not None:
        print(f"  Since:   {_local(service, session.start)}")
    if snap["pending_exit_time"]:
        print(f"  Left at: {_local(service, service.machine.pending_exit_time)} (grace period running)")
    elif snap["open_gap_id"]:
        print(f"  Away since: {_local(service, session.open_gap.exit_time)}")
    print(f"  Today:   {format_hours(service.aggregator.today_hours())}")
    if snap["unsaved_changes"]:
        print("  ⚠️  Some changes are not saved yet")


def cmd_in(args):
    """Clock in (now or at the given time)."""
    service = get_service()
    when = _timestamp_arg(service, args)
    if service.machine.is_clocked_in:
        print("Already clocked in.")
        return
    service.submit(clock_in(when))
    print(f"✓ Clocked in at {_local(service, when)}")


def cmd_out(args):
    """Clock out (now or at the given time)."""
    service = get_service()
    when = _timestamp_arg(service, args)
    session = service.machine.active_session
    if session is None:
        print("Not clocked in.")
        return
    service.submit(clock_out(when))
    print(f"✓ Clocked out at {_local(service, when)} ({format_hours(session.worked_hours(when))})")


def cmd_day(args):
    """Sessions and gaps for one day."""
    service = get_service()
    day = _date_arg(service, args)
    aggregator = service.aggregator
    now = service.machine.clock.now()

    print_header(f"DAY: {day.isoformat()}  {format_hours(aggregator.hours_for_date(day))}")

    sessions = aggregator.sessions_for_date(day)
    if not sessions:
        print("No entries.")
        return

    rows = [
        [s.id[:8], _local(service, s.start), _local(service, s.end), format_hours(s.worked_hours(now))]
        for s in sessions
    ]
    print_table(["ID", "In", "Out", "Worked"], rows)

    gaps = aggregator.gaps_for_date(day)
    if gaps:
        print("\nGAPS")
        rows = [
            [
                g.id,
                _local(service, g.exit_time),
                _local(service, g.return_time),
                format_gap_duration(g.duration_seconds(now)),
                g.status.value,
            ]
            for g in gaps
        ]
        print_table(["ID", "Left", "Back", "Duration", "Status"], rows)


def cmd_week(args):
    """Seven-day breakdown for the week containing the date."""
    service = get_service()
    aggregator = service.aggregator
    week_start = aggregator.week_start_of(_date_arg(service, args))
    summary = aggregator.weekly_summary(week_start)

    print_header(f"WEEK OF {summary.week_start.isoformat()}")
    rows = [[d.day_name, d.date.isoformat(), format_hours(d.hours)] for d in summary.daily_breakdown]
    print_table(["Day", "Date", "Hours"], rows)
    print(f"\n  Total: {format_hours(summary.total_hours)}")


def cmd_history(args):
    """All recorded weeks, most recent first."""
    service = get_service()
    aggregator = service.aggregator
    weeks = aggregator.all_week_starts()

    print_header("HISTORY")
    if not weeks:
        print("No entries yet.")
        return
    rows = [[ws.date().isoformat(), format_hours(aggregator.weekly_summary(ws).total_hours)] for ws in weeks]
    print_table(["Week of", "Total"], rows)


def cmd_message(args):
    """Payroll text. Defaults to the week due for reporting now."""
    service = get_service()
    aggregator = service.aggregator
    if args:
        week_start = aggregator.week_start_of(parse_date(args[0]))
    else:
        week_start = report_week_start(service.machine.clock.now(), service.machine.settings)
    print(text_for_summary(aggregator.weekly_summary(week_start)))


def cmd_add(args):
    """Add a closed entry: add <start> <end>."""
    if len(args) < 2:
        print("Usage: add <start> <end>")
        return
    service = get_service()
    tz = service.machine.settings.tzinfo
    session = service.editor.add_entry(parse_timestamp(args[0], tz), parse_timestamp(args[1], tz))
    print(f"✓ Added {session.id}: {format_hours(session.worked_hours())}")


def _set_gap(args, deleted: bool):
    if not args:
        print(f"Usage: {'gap-delete' if deleted else 'gap-restore'} <gap_id>")
        return
    gap = get_service().editor.set_gap_deleted(args[0], deleted)
    print(f"✓ Gap {gap.id} {'deleted' if deleted else 'restored'}")


def cmd_gap_delete(args):
    """Soft-delete a gap (its time counts as worked again)."""
    _set_gap(args, True)


def cmd_gap_restore(args):
    """Restore a soft-deleted gap."""
    _set_gap(args, False)


def cmd_serve(args):
    """Run the HTTP API."""
    import uvicorn

    from api.server import create_app

    port = 8420
    host = "127.0.0.1"
    it = iter(args)
    for arg in it:
        if arg == "--port":
            port = int(next(it, port))
        elif arg == "--host":
            host = next(it, host)

    app = create_app(get_service())
    uvicorn.run(app, host=host, port=port, log_config=None)


def cmd_help(args):
    """Show help."""
    print_header("SHOPCLOCK CLI")
    print("""
COMMANDS:

  init               Create the database, show settings
  status             Show current clock state
  in [time]          Clock in (default now)
  out [time]         Clock out (default now)
  day [date]         Sessions and gaps for a day (default today)
  week [date]        Hours per day for the week containing date
  history            Totals for every recorded week
  message [date]     Payroll text for a week
  add <start> <end>  Add a closed entry
  gap-delete <id>    Soft-delete a gap
  gap-restore <id>   Restore a deleted gap
  serve [--port N]   Run the HTTP API (default port 8420)
  help               Show this help

Times are ISO 8601 (2024-03-04T08:00); dates are YYYY-MM-DD.
""")


COMMANDS = {
    "init": cmd_init,
    "status": cmd_status,
    "s": cmd_status,
    "in": cmd_in,
    "out": cmd_out,
    "day": cmd_day,
    "d": cmd_day,
    "week": cmd_week,
    "w": cmd_week,
    "history": cmd_history,
    "message": cmd_message,
    "m": cmd_message,
    "add": cmd_add,
    "gap-delete": cmd_gap_delete,
    "gap-restore": cmd_gap_restore,
    "serve": cmd_serve,
    "help": cmd_help,
    "h": cmd_help,
}


def main(argv: list | None = None) -> int:
    """Main entry point. Returns the exit code."""
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        cmd_help([])
        return 0

    cmd, args = argv[0], argv[1:]
    if cmd not in COMMANDS:
        print(f"Unknown command: {cmd}")
        print("Run 'help' for available commands.")
        return 1

    try:
        COMMANDS[cmd](args)
    except (ValidationError, LookupError) as e:
        print(f"✗ {e.args[0] if e.args else e}")
        return 1
    except StoreError as e:
        print(f"✗ Session store unavailable: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
