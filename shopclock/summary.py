"""
Weekly summary text for payroll.

Formatting only; the numbers come from HoursAggregator.weekly_summary().
Delivering the text (SMS, notification) is somebody else's job.
"""

from datetime import date, datetime, timedelta

from shopclock.aggregator import HoursAggregator, WeeklySummary, monday_of
from shopclock.config import Settings


def format_week_date(d: date) -> str:
    """M/D/YYYY without zero padding, e.g. 3/4/2024."""
    return f"{d.month}/{d.day}/{d.year}"


def format_hours(hours: float) -> str:
    """8.5 -> '8.5 hrs'."""
    return f"{hours:.1f} hrs"


def format_gap_duration(seconds: float) -> str:
    """Whole minutes: '43 min', '1 hr', '1 hr 15 min'."""
    minutes = max(int(seconds // 60), 0)
    if minutes < 60:
        return f"{minutes} min"
    hours, remainder = divmod(minutes, 60)
    if remainder == 0:
        return f"{hours} hr"
    return f"{hours} hr {remainder} min"


def text_for_summary(summary: WeeklySummary) -> str:
    return f"My hours for week of {format_week_date(summary.week_start)}: {summary.total_hours:.1f}"


def notification_for_summary(summary: WeeklySummary) -> str:
    return (
        f"Hours for week of {format_week_date(summary.week_start)}: "
        f"{summary.total_hours:.1f} hrs. Tap to text to payroll."
    )


def weekly_text_message(aggregator: HoursAggregator, week_start: date | datetime) -> str:
    """'My hours for week of M/D/YYYY: H.H' for the week starting *week_start*."""
    return text_for_summary(aggregator.weekly_summary(week_start))


def weekly_notification_body(aggregator: HoursAggregator, week_start: date | datetime) -> str:
    return notification_for_summary(aggregator.weekly_summary(week_start))


def report_week_start(now: datetime, settings: Settings) -> date:
    """
    Which week a summary sent at *now* should report.

    Monday before summary_hour (local) still reports last week; the rest
    of the week reports the current one.
    """
    local = now.astimezone(settings.tzinfo) if now.tzinfo else now
    monday = monday_of(local.date())
    if local.weekday() == 0 and local.hour < settings.summary_hour:
        return monday - timedelta(days=7)
    return monday
