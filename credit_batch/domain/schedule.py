"""
Pure schedule evaluation functions.

Contract:
    ``should_fire(schedule, as_of)`` and ``compute_next_run()`` are PURE --
    no I/O, no side effects, all timestamps from the caller.

Architecture: credit_batch/domain.  ZERO I/O.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from credit_batch.domain.types import JobSchedule, ScheduleFrequency

_DELTAS = {
    ScheduleFrequency.HOURLY: timedelta(hours=1),
    ScheduleFrequency.DAILY: timedelta(days=1),
    ScheduleFrequency.WEEKLY: timedelta(weeks=1),
}


def should_fire(schedule: JobSchedule, as_of: datetime) -> bool:
    """Determine if a schedule should fire at the given time.

    Rules:
        - Inactive schedules never fire.
        - ON_DEMAND never fires automatically.
        - Otherwise fires when ``next_run_at`` is unset or ``as_of >= next_run_at``.
    """
    if not schedule.is_active:
        return False

    if schedule.frequency == ScheduleFrequency.ON_DEMAND:
        return False

    if schedule.next_run_at is not None and as_of < schedule.next_run_at:
        return False

    return True


def compute_next_run(
    frequency: ScheduleFrequency,
    last_run_at: datetime | None,
    run_hour: int | None = None,
) -> datetime | None:
    """Compute the next run time for a schedule.

    With a ``run_hour`` (UTC), a daily schedule runs at the next occurrence
    of that hour after ``last_run_at`` and a weekly one at that hour on the
    day one week later.  Hourly schedules ignore ``run_hour``.

    Returns:
        Next run datetime, or None for ON_DEMAND or a schedule never run.
    """
    if frequency == ScheduleFrequency.ON_DEMAND or last_run_at is None:
        return None

    delta = _DELTAS[frequency]
    if run_hour is None or frequency == ScheduleFrequency.HOURLY:
        return last_run_at + delta

    if frequency == ScheduleFrequency.WEEKLY:
        return (last_run_at + delta).replace(hour=run_hour, minute=0, second=0, microsecond=0)

    anchored = last_run_at.replace(hour=run_hour, minute=0, second=0, microsecond=0)
    if anchored <= last_run_at:
        anchored += delta
    return anchored
