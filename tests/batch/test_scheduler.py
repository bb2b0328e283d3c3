"""
Tests for BatchScheduler: tick evaluation, manual runs, schedule
bookkeeping and the background thread.
"""

import time
from datetime import UTC, datetime

import pytest

from credit_batch.domain.types import BatchRunStatus, JobSchedule, ScheduleFrequency
from credit_batch.services.executor import BatchExecutor
from credit_batch.services.scheduler import BatchScheduler, default_schedules
from credit_batch.tasks import default_task_registry
from credit_batch.tasks.base import BatchItemInput, TaskRegistry
from credit_config.schema import SweeperSettings
from tests.conftest import RecordingNotifier


class ExplodingTask:
    """prepare_items raises, so the whole run fails before any item."""

    @property
    def task_type(self) -> str:
        return "test.explode"

    @property
    def description(self) -> str:
        return "Fails while preparing"

    def prepare_items(self, parameters, session, as_of) -> tuple[BatchItemInput, ...]:
        raise RuntimeError("cannot read eligible rows")

    def execute_item(self, item, parameters, session, as_of):
        raise AssertionError("never reached")


@pytest.fixture
def executor(session_factory, clock, locks):
    registry = default_task_registry(clock, RecordingNotifier())
    return BatchExecutor(session_factory, registry, clock, locks)


@pytest.fixture
def scheduler(executor, clock):
    return BatchScheduler(executor, default_schedules(SweeperSettings()), clock=clock)


def _by_name(scheduler) -> dict[str, JobSchedule]:
    return {s.name: s for s in scheduler.schedules}


class TestDefaultSchedules:
    def test_standing_schedules(self):
        schedules = default_schedules(SweeperSettings(frequency="weekly", run_hour=5))
        assert [(s.name, s.task_type) for s in schedules] == [
            ("expire-credit-batches", "credits.expire_batches"),
            ("expire-closed-vacancies", "vacancies.expire_closed"),
            ("resync-vacancies", "vacancies.resync"),
        ]
        assert schedules[0].frequency is ScheduleFrequency.WEEKLY
        assert schedules[0].run_hour == 5
        assert schedules[2].frequency is ScheduleFrequency.HOURLY


class TestTick:
    def test_first_tick_fires_everything(self, scheduler, clock):
        assert scheduler.tick() == 3

        schedules = _by_name(scheduler)
        sweep = schedules["expire-credit-batches"]
        assert sweep.last_run_at == clock.now()
        assert sweep.last_run_status is BatchRunStatus.COMPLETED
        # T0 is 12:00 UTC and the default run hour is 03:00
        assert sweep.next_run_at == datetime(2026, 1, 2, 3, tzinfo=UTC)
        assert schedules["resync-vacancies"].next_run_at == datetime(2026, 1, 1, 13, tzinfo=UTC)

    def test_nothing_due_on_second_tick(self, scheduler):
        scheduler.tick()
        assert scheduler.tick() == 0

    def test_only_due_schedules_fire(self, scheduler, clock):
        scheduler.tick()
        clock.advance(3600)
        assert scheduler.tick() == 1
        assert _by_name(scheduler)["resync-vacancies"].last_run_at == clock.now()

    def test_failed_fire_is_logged_and_skipped(self, session_factory, clock, locks, captured_logs):
        registry = TaskRegistry()
        registry.register(ExplodingTask())
        executor = BatchExecutor(session_factory, registry, clock, locks)
        schedule = JobSchedule(name="explode", task_type="test.explode", frequency=ScheduleFrequency.HOURLY)
        scheduler = BatchScheduler(executor, [schedule], clock=clock)

        assert scheduler.tick() == 0
        assert _by_name(scheduler)["explode"].last_run_at is None
        assert any(r["message"] == "schedule_fire_failed" for r in captured_logs())


class TestRunNow:
    def test_runs_immediately(self, scheduler, clock):
        scheduler.tick()
        result = scheduler.run_now("expire-credit-batches")
        assert result.task_type == "credits.expire_batches"
        assert result.status is BatchRunStatus.COMPLETED

    def test_on_demand_schedule(self, executor, clock):
        schedule = JobSchedule(
            name="manual-sweep",
            task_type="credits.expire_batches",
            frequency=ScheduleFrequency.ON_DEMAND,
        )
        scheduler = BatchScheduler(executor, [schedule], clock=clock)

        assert scheduler.tick() == 0
        scheduler.run_now("manual-sweep")
        after = _by_name(scheduler)["manual-sweep"]
        assert after.last_run_at == clock.now()
        assert after.next_run_at is None

    def test_unknown_name(self, scheduler):
        with pytest.raises(KeyError):
            scheduler.run_now("nope")


class TestConstruction:
    def test_unregistered_task_rejected(self, executor, clock):
        schedule = JobSchedule(name="bad", task_type="not.registered", frequency=ScheduleFrequency.DAILY)
        with pytest.raises(ValueError, match="unregistered task"):
            BatchScheduler(executor, [schedule], clock=clock)


class TestBackgroundThread:
    def test_start_and_stop(self, executor, clock):
        scheduler = BatchScheduler(
            executor, default_schedules(SweeperSettings()), clock=clock, tick_interval_seconds=0.01,
        )
        scheduler.start()
        try:
            assert scheduler.is_running
            deadline = time.monotonic() + 10
            while time.monotonic() < deadline:
                if all(s.last_run_at is not None for s in scheduler.schedules):
                    break
                time.sleep(0.01)
        finally:
            scheduler.stop(timeout=10)

        assert not scheduler.is_running
        assert all(s.last_run_at == clock.now() for s in scheduler.schedules)
        assert scheduler.wait(timeout=0)
