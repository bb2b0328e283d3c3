"""
BatchScheduler -- In-process polling scheduler.

Contract:
    Polls its schedules on a configurable interval, evaluates
    ``should_fire()`` (pure), and runs due tasks via ``BatchExecutor``.

Architecture: credit_batch/services.  Uses credit_batch.domain.schedule
    for pure evaluation and credit_batch.services.executor for execution.

Invariants enforced:
    - All timestamps from the injected Clock.
    - Graceful shutdown: the stop signal is checked between schedules and
      a running task finishes its current item.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace

from credit_batch.domain.schedule import compute_next_run, should_fire
from credit_batch.domain.types import BatchRunResult, JobSchedule, ScheduleFrequency
from credit_batch.services.executor import BatchExecutor
from credit_config.schema import SweeperSettings
from credit_kernel.domain.clock import Clock, SystemClock
from credit_kernel.logging_config import get_logger

logger = get_logger("batch.scheduler")


def default_schedules(settings: SweeperSettings) -> list[JobSchedule]:
    """The portal's standing schedules, timed by the sweeper settings."""
    frequency = ScheduleFrequency(settings.frequency)
    return [
        JobSchedule(
            name="expire-credit-batches",
            task_type="credits.expire_batches",
            frequency=frequency,
            run_hour=settings.run_hour,
        ),
        JobSchedule(
            name="expire-closed-vacancies",
            task_type="vacancies.expire_closed",
            frequency=frequency,
            run_hour=settings.run_hour,
        ),
        JobSchedule(
            name="resync-vacancies",
            task_type="vacancies.resync",
            frequency=ScheduleFrequency.HOURLY,
        ),
    ]


class BatchScheduler:
    """In-process polling scheduler for background tasks.

    Contract:
        - ``tick()`` evaluates all schedules, fires due ones.
        - ``run_now(name)`` fires one schedule regardless of timing
          (the way ON_DEMAND schedules run).
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
        - Does NOT handle timezone conversions (expects UTC).
    """

    def __init__(
        self,
        executor: BatchExecutor,
        schedules: Iterable[JobSchedule],
        clock: Clock | None = None,
        tick_interval_seconds: float = 60.0,
    ):
        self._executor = executor
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._schedules: dict[str, JobSchedule] = {}
        for schedule in schedules:
            if schedule.task_type not in executor.task_registry:
                raise ValueError(
                    f"Schedule '{schedule.name}' names unregistered task '{schedule.task_type}'"
                )
            self._schedules[schedule.name] = schedule
        self._guard = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def schedules(self) -> tuple[JobSchedule, ...]:
        with self._guard:
            return tuple(self._schedules.values())

    def tick(self) -> int:
        """Evaluate and fire due schedules.  Returns the number fired."""
        now = self._clock.now()
        fired = 0
        for schedule in self.schedules:
            if self._stop_event.is_set():
                break
            if not should_fire(schedule, now):
                continue
            try:
                self._fire(schedule)
            except Exception:
                logger.exception(
                    "schedule_fire_failed",
                    extra={"schedule": schedule.name, "task_type": schedule.task_type},
                )
                continue
            fired += 1
        return fired

    def run_now(self, name: str) -> BatchRunResult:
        """Fire a schedule immediately.  Raises KeyError for an unknown name."""
        with self._guard:
            schedule = self._schedules[name]
        return self._fire(schedule)

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="batch-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the scheduler thread to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until stopped.  Returns True once the stop signal is set."""
        return self._stop_event.wait(timeout=timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop.  Exits when stop_event is set."""
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._tick_interval)

    def _fire(self, schedule: JobSchedule) -> BatchRunResult:
        now = self._clock.now()
        result = self._executor.execute(schedule.task_type, schedule.parameters)
        next_run = compute_next_run(schedule.frequency, now, schedule.run_hour)
        with self._guard:
            self._schedules[schedule.name] = replace(
                schedule,
                last_run_at=now,
                last_run_status=result.status,
                next_run_at=next_run,
            )
        logger.info(
            "schedule_fired",
            extra={
                "schedule": schedule.name,
                "task_type": schedule.task_type,
                "status": result.status.value,
                "next_run_at": next_run.isoformat() if next_run else None,
            },
        )
        return result
