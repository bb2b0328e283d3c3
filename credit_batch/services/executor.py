"""
BatchExecutor -- unit-of-work-per-item execution of background tasks.

Contract:
    ``execute(task_type)`` prepares the task's items and runs each one in
    its own session.  An item that succeeds is committed; an item that
    fails or is skipped is rolled back.  Failures are collected, never
    raised, so one bad item does not abort the run.

Architecture: credit_batch/services.  Imports from credit_batch.domain,
    credit_batch.tasks, and kernel db/services.

Invariants enforced:
    - Per-item isolation: each item has its own session and transaction.
    - Wallet serialization: items naming a wallet run under that wallet's
      lock from WalletLockRegistry, shared with CreditLedger.
    - All timestamps from the injected Clock.
"""

from __future__ import annotations

import time
from contextlib import nullcontext
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from credit_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
)
from credit_batch.tasks.base import BatchItemInput, BatchTask, TaskRegistry
from credit_kernel.db.engine import session_scope
from credit_kernel.domain.clock import Clock, SystemClock
from credit_kernel.logging_config import LogContext, get_logger
from credit_kernel.services.wallet_locks import WalletLockRegistry, default_wallet_locks

logger = get_logger("batch.executor")

UNHANDLED_ERROR_CODE = "UNHANDLED_EXCEPTION"


class BatchExecutor:
    """Runs registered background tasks item by item.

    Non-goals:
        - Does NOT persist job history -- results are returned and logged.
        - Does NOT manage background threads -- that is the scheduler's job.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        task_registry: TaskRegistry,
        clock: Clock | None = None,
        locks: WalletLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._task_registry = task_registry
        self._clock = clock or SystemClock()
        self._locks = locks if locks is not None else default_wallet_locks

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    def execute(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
    ) -> BatchRunResult:
        """Run every eligible item of ``task_type``.

        Raises:
            KeyError: If task_type is not registered.
            Any exception from ``prepare_items`` (nothing has run yet).
        """
        task = self._task_registry.get(task_type)
        params = parameters or {}
        run_id = str(uuid4())
        start_time = time.monotonic()
        started_at = self._clock.now()

        with LogContext.bind(job_id=run_id):
            with session_scope(self._session_factory) as session:
                items = task.prepare_items(parameters=params, session=session, as_of=started_at)

            logger.info(
                "batch_run_started",
                extra={"task_type": task_type, "total_items": len(items)},
            )

            item_results = [
                self._execute_item(task, item, params, started_at) for item in items
            ]

            succeeded = sum(1 for r in item_results if r.status is BatchItemStatus.SUCCEEDED)
            failed = sum(1 for r in item_results if r.status is BatchItemStatus.FAILED)
            skipped = sum(1 for r in item_results if r.status is BatchItemStatus.SKIPPED)

            if failed == 0:
                status = BatchRunStatus.COMPLETED
            elif succeeded == 0:
                status = BatchRunStatus.FAILED
            else:
                status = BatchRunStatus.PARTIALLY_COMPLETED

            completed_at = self._clock.now()
            duration = int((time.monotonic() - start_time) * 1000)
            log = logger.warning if failed else logger.info
            log(
                "batch_run_completed",
                extra={
                    "task_type": task_type,
                    "status": status.value,
                    "succeeded": succeeded,
                    "failed": failed,
                    "skipped": skipped,
                    "duration_ms": duration,
                },
            )

        return BatchRunResult(
            task_type=task_type,
            status=status,
            total_items=len(items),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            item_results=tuple(item_results),
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=duration,
            run_id=run_id,
        )

    def _execute_item(
        self,
        task: BatchTask,
        item: BatchItemInput,
        parameters: dict[str, Any],
        as_of: datetime,
    ) -> BatchItemResult:
        item_start = time.monotonic()
        lock = self._locks.hold(item.wallet_id) if item.wallet_id is not None else nullcontext()

        with lock:
            session = self._session_factory()
            try:
                result = task.execute_item(
                    item=item,
                    parameters=parameters,
                    session=session,
                    as_of=as_of,
                )
                if result.status is BatchItemStatus.SUCCEEDED:
                    session.commit()
                else:
                    session.rollback()
            except Exception as exc:
                session.rollback()
                code = getattr(exc, "code", None) or UNHANDLED_ERROR_CODE
                logger.warning(
                    "batch_item_failed",
                    extra={
                        "task_type": task.task_type,
                        "item_key": item.item_key,
                        "error_code": code,
                    },
                    exc_info=True,
                )
                return BatchItemResult(
                    item_index=item.item_index,
                    item_key=item.item_key,
                    status=BatchItemStatus.FAILED,
                    error_code=code,
                    error_message=str(exc),
                    duration_ms=int((time.monotonic() - item_start) * 1000),
                )
            finally:
                session.close()

        if result.status is BatchItemStatus.FAILED:
            logger.warning(
                "batch_item_failed",
                extra={
                    "task_type": task.task_type,
                    "item_key": item.item_key,
                    "error_code": result.error_code,
                },
            )
        return BatchItemResult(
            item_index=item.item_index,
            item_key=item.item_key,
            status=result.status,
            error_code=result.error_code,
            error_message=result.error_message,
            result_data=result.result_data,
            duration_ms=int((time.monotonic() - item_start) * 1000),
        )
