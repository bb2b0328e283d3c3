"""
Tests for the vacancy housekeeping tasks: persisting verlopen for closed
vacancies and re-syncing vacancies the public site has not acknowledged.
"""

import pytest

from credit_batch.domain.types import BatchItemStatus, BatchRunStatus
from credit_batch.services.executor import BatchExecutor
from credit_batch.tasks import default_task_registry
from credit_kernel.domain.values import VacancyStatus
from tests.conftest import TEST_ACTOR_ID, RecordingNotifier

S = VacancyStatus


@pytest.fixture
def publish(lifecycle, make_vacancy, fund, wallet, clock):
    def _publish(package_id, credits):
        fund(wallet.id, credits)
        vacancy_id = make_vacancy(package_id)
        lifecycle.submit(vacancy_id, actor_id=TEST_ACTOR_ID)
        lifecycle.approve(vacancy_id)
        clock.tick()
        return vacancy_id

    return _publish


@pytest.fixture
def site():
    """The public site as seen by the resync task."""
    return RecordingNotifier()


@pytest.fixture
def run(session_factory, clock, locks, site):
    executor = BatchExecutor(session_factory, default_task_registry(clock, site), clock, locks)

    def _run(task_type, **parameters):
        return executor.execute(task_type, parameters)

    return _run


class TestExpireClosed:
    def test_closed_vacancy_is_expired(self, run, publish, lifecycle, catalog, clock):
        vacancy_id = publish(catalog.basis, 10)
        clock.advance(days=31)

        result = run("vacancies.expire_closed")

        assert result.status is BatchRunStatus.COMPLETED
        assert result.succeeded == 1
        state = lifecycle.state(vacancy_id)
        assert state.status is S.VERLOPEN
        assert state.needs_sync

    def test_open_vacancy_untouched(self, run, publish, lifecycle, catalog, clock):
        vacancy_id = publish(catalog.basis, 10)
        clock.advance(days=30)

        result = run("vacancies.expire_closed")

        assert result.total_items == 0
        assert lifecycle.state(vacancy_id).status is S.GEPUBLICEERD

    def test_depublished_vacancy_not_expired(self, run, publish, lifecycle, catalog, clock):
        vacancy_id = publish(catalog.basis, 10)
        lifecycle.depublish(vacancy_id)
        clock.advance(days=31)

        assert run("vacancies.expire_closed").total_items == 0
        assert lifecycle.state(vacancy_id).status is S.GEDEPUBLICEERD

    def test_rerun_finds_nothing(self, run, publish, catalog, clock):
        publish(catalog.basis, 10)
        clock.advance(days=31)
        run("vacancies.expire_closed")
        assert run("vacancies.expire_closed").total_items == 0


class TestResync:
    def test_pending_vacancy_synced(self, run, publish, lifecycle, catalog, clock, site):
        vacancy_id = publish(catalog.basis, 10)
        clock.advance(days=31)
        run("vacancies.expire_closed")

        result = run("vacancies.resync")

        assert result.succeeded == 1
        assert site.notified == [vacancy_id]
        assert not lifecycle.state(vacancy_id).needs_sync

    def test_unacknowledged_stays_pending(self, run, publish, lifecycle, catalog, clock, site):
        site.acknowledge = False
        vacancy_id = publish(catalog.basis, 10)
        clock.advance(days=31)
        run("vacancies.expire_closed")

        result = run("vacancies.resync")

        assert result.status is BatchRunStatus.FAILED
        [item] = result.item_results
        assert item.status is BatchItemStatus.FAILED
        assert item.error_code == "SYNC_NOTIFY_FAILED"
        assert lifecycle.state(vacancy_id).needs_sync

    def test_limit(self, run, publish, catalog, clock):
        publish(catalog.basis, 10)
        publish(catalog.basis, 10)
        clock.advance(days=31)
        run("vacancies.expire_closed")

        assert run("vacancies.resync", limit=1).total_items == 1
        assert run("vacancies.resync").total_items == 1

    def test_nothing_pending(self, run, publish, catalog, site):
        publish(catalog.basis, 10)
        assert run("vacancies.resync").total_items == 0
        assert site.notified == []
