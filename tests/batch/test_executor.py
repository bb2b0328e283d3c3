"""
Tests for credit_batch.services.executor.

Validates BatchExecutor: one session per item, commit only on SUCCEEDED,
failure isolation, run status aggregation and the wallet lock.
"""

import threading
from datetime import datetime
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from credit_batch.domain.types import BatchItemStatus, BatchRunStatus
from credit_batch.services.executor import BatchExecutor
from credit_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
)
from credit_kernel.db.engine import session_scope
from credit_kernel.exceptions import CreditBatchNotFoundError
from credit_kernel.models.wallet import Wallet


# =============================================================================
# Test tasks
# =============================================================================


class SuccessTask:
    """Task where all items succeed."""

    @property
    def task_type(self) -> str:
        return "test.success"

    @property
    def description(self) -> str:
        return "All items succeed"

    def prepare_items(
        self, parameters: dict[str, Any], session: Session, as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        count = parameters.get("item_count", 3)
        return tuple(
            BatchItemInput(item_index=i, item_key=f"item-{i:03d}")
            for i in range(count)
        )

    def execute_item(
        self, item: BatchItemInput, parameters: dict[str, Any],
        session: Session, as_of: datetime,
    ) -> BatchTaskResult:
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={"processed": item.item_key},
        )


class PartialFailTask:
    """Even-indexed items fail; index 2 raises instead of returning."""

    @property
    def task_type(self) -> str:
        return "test.partial_fail"

    @property
    def description(self) -> str:
        return "Even items fail"

    def prepare_items(
        self, parameters: dict[str, Any], session: Session, as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        return tuple(BatchItemInput(item_index=i, item_key=f"item-{i:03d}") for i in range(4))

    def execute_item(
        self, item: BatchItemInput, parameters: dict[str, Any],
        session: Session, as_of: datetime,
    ) -> BatchTaskResult:
        if item.item_index == 2:
            raise CreditBatchNotFoundError(item.item_key)
        if item.item_index % 2 == 0:
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                error_code="EVEN_INDEX",
                error_message=f"Item {item.item_key} has even index",
            )
        return BatchTaskResult(status=BatchItemStatus.SUCCEEDED)


class CrashTask:
    """Every item raises a plain exception."""

    @property
    def task_type(self) -> str:
        return "test.crash"

    @property
    def description(self) -> str:
        return "Items raise"

    def prepare_items(self, parameters, session, as_of):
        return (BatchItemInput(item_index=0, item_key="only"),)

    def execute_item(self, item, parameters, session, as_of):
        raise RuntimeError("disk on fire")


class BalanceBumpTask:
    """Bumps a wallet's balance, then returns the status given in parameters."""

    def __init__(self, wallet_id, locks=None):
        self.wallet_id = wallet_id
        self.locks = locks
        self.lock_held = []

    @property
    def task_type(self) -> str:
        return "test.bump"

    @property
    def description(self) -> str:
        return "Bump a balance"

    def prepare_items(self, parameters, session, as_of):
        return (BatchItemInput(item_index=0, item_key="bump", wallet_id=self.wallet_id),)

    def execute_item(self, item, parameters, session, as_of):
        if self.locks is not None:
            self.lock_held.append(_held_elsewhere(self.locks, self.wallet_id))
        session.get(Wallet, self.wallet_id).balance += 1
        session.flush()
        return BatchTaskResult(status=BatchItemStatus(parameters["status"]))


def _held_elsewhere(locks, wallet_id) -> bool:
    """True when another thread cannot take the wallet lock right now."""
    acquired = []

    def _try():
        lock = locks.lock_for(wallet_id)
        got = lock.acquire(blocking=False)
        if got:
            lock.release()
        acquired.append(got)

    worker = threading.Thread(target=_try)
    worker.start()
    worker.join()
    return not acquired[0]


def _executor(session_factory, clock, locks, *tasks):
    registry = TaskRegistry()
    for task in tasks:
        registry.register(task)
    return BatchExecutor(session_factory, registry, clock, locks)


# =============================================================================
# Task registry
# =============================================================================


class TestTaskRegistry:
    def test_register_and_get(self):
        registry = TaskRegistry()
        task = SuccessTask()
        registry.register(task)
        assert registry.get("test.success") is task
        assert "test.success" in registry
        assert len(registry) == 1
        assert registry.list_tasks() == ("test.success",)

    def test_duplicate_rejected(self):
        registry = TaskRegistry()
        registry.register(SuccessTask())
        with pytest.raises(ValueError):
            registry.register(SuccessTask())

    def test_unknown_task(self):
        with pytest.raises(KeyError):
            TaskRegistry().get("nope")

    def test_protocol_conformance(self):
        assert isinstance(SuccessTask(), BatchTask)


# =============================================================================
# Execution
# =============================================================================


class TestExecute:
    def test_all_succeed(self, session_factory, clock, locks):
        executor = _executor(session_factory, clock, locks, SuccessTask())

        run = executor.execute("test.success", {"item_count": 5})

        assert run.status is BatchRunStatus.COMPLETED
        assert (run.total_items, run.succeeded, run.failed, run.skipped) == (5, 5, 0, 0)
        assert [r.item_key for r in run.item_results] == [f"item-{i:03d}" for i in range(5)]
        assert run.item_results[0].result_data == {"processed": "item-000"}
        assert run.started_at == clock.now()
        assert run.run_id

    def test_no_items_is_completed(self, session_factory, clock, locks):
        run = _executor(session_factory, clock, locks, SuccessTask()).execute(
            "test.success", {"item_count": 0}
        )
        assert run.status is BatchRunStatus.COMPLETED
        assert run.total_items == 0

    def test_partial_failure(self, session_factory, clock, locks):
        run = _executor(session_factory, clock, locks, PartialFailTask()).execute("test.partial_fail")

        assert run.status is BatchRunStatus.PARTIALLY_COMPLETED
        assert (run.succeeded, run.failed) == (2, 2)
        codes = {r.item_key: r.error_code for r in run.item_results}
        assert codes == {
            "item-000": "EVEN_INDEX",
            "item-001": None,
            "item-002": "CREDIT_BATCH_NOT_FOUND",
            "item-003": None,
        }

    def test_unhandled_exception(self, session_factory, clock, locks):
        run = _executor(session_factory, clock, locks, CrashTask()).execute("test.crash")

        assert run.status is BatchRunStatus.FAILED
        [item] = run.item_results
        assert item.error_code == "UNHANDLED_EXCEPTION"
        assert item.error_message == "disk on fire"

    def test_unknown_task_type(self, session_factory, clock, locks):
        with pytest.raises(KeyError):
            _executor(session_factory, clock, locks).execute("test.missing")

    def test_run_logs_carry_job_id(self, session_factory, clock, locks, captured_logs):
        run = _executor(session_factory, clock, locks, SuccessTask()).execute("test.success")
        completed = [r for r in captured_logs() if r["message"] == "batch_run_completed"]
        assert completed[-1]["job_id"] == run.run_id
        assert completed[-1]["succeeded"] == 3


class TestItemUnitOfWork:
    @pytest.mark.parametrize(
        "status, committed",
        [("succeeded", True), ("skipped", False), ("failed", False)],
    )
    def test_only_success_commits(self, session_factory, clock, locks, wallet, status, committed):
        task = BalanceBumpTask(wallet.id)
        _executor(session_factory, clock, locks, task).execute("test.bump", {"status": status})

        with session_scope(session_factory) as session:
            balance = session.get(Wallet, wallet.id).balance
        assert balance == (1 if committed else 0)

    def test_wallet_lock_held_during_item(self, session_factory, clock, locks, wallet):
        task = BalanceBumpTask(wallet.id, locks=locks)
        _executor(session_factory, clock, locks, task).execute("test.bump", {"status": "succeeded"})

        assert task.lock_held == [True]
        assert not _held_elsewhere(locks, wallet.id)

    def test_unknown_wallet_item_fails_alone(self, session_factory, clock, locks):
        task = BalanceBumpTask(uuid4())
        run = _executor(session_factory, clock, locks, task).execute(
            "test.bump", {"status": "succeeded"}
        )
        assert run.status is BatchRunStatus.FAILED
        assert run.item_results[0].error_code == "UNHANDLED_EXCEPTION"
