"""
Collection Scheduling

Decides when a source is next due based on its schedule and last collection.
"""
import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional

from src.taxsale.models.source import ScheduleFrequency, Source, SourceSchedule, SourceStatus
from src.taxsale.utils.clock import ensure_utc, utcnow

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _add_month(value: datetime, day_of_month: Optional[int]) -> datetime:
    year = value.year + (1 if value.month == 12 else 0)
    month = 1 if value.month == 12 else value.month + 1
    days_in_month = calendar.monthrange(year, month)[1]
    day = min(day_of_month or value.day, days_in_month)
    return value.replace(year=year, month=month, day=day)


def next_run_after(last_collected: Optional[datetime], schedule: SourceSchedule) -> Optional[datetime]:
    """
    Time the schedule next makes a source due, or None for manual schedules.

    Weekly schedules roll forward to day_of_week (0 = Sunday); monthly
    schedules land on day_of_month, clamped to the month's length.
    """
    last = ensure_utc(last_collected) or EPOCH
    frequency = schedule.frequency

    if frequency == ScheduleFrequency.HOURLY:
        return last + timedelta(hours=1)
    if frequency == ScheduleFrequency.DAILY:
        return last + timedelta(days=1)
    if frequency == ScheduleFrequency.WEEKLY:
        candidate = last + timedelta(days=7)
        if schedule.day_of_week is not None:
            sunday_based = (candidate.weekday() + 1) % 7
            candidate += timedelta(days=(schedule.day_of_week - sunday_based) % 7)
        return candidate
    if frequency == ScheduleFrequency.MONTHLY:
        return _add_month(last, schedule.day_of_month)
    return None


def is_due_for_collection(source: Source, now: Optional[datetime] = None) -> bool:
    """Inactive and manual sources are never due."""
    if source.status == SourceStatus.INACTIVE:
        return False
    next_run = next_run_after(source.last_collected, source.schedule)
    if next_run is None:
        return False
    return (ensure_utc(now) or utcnow()) >= next_run
