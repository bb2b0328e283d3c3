"""
ExpirationSweeper -- periodic removal of expired credits from wallets.

Contract:
    ``sweep_expired()`` expires every batch with ``expires_at < now`` and
    ``remaining > 0`` and returns a SweepReport.  It never raises for a
    failed batch; ``SweepReport.raise_for_failures()`` is there for callers
    that want a hard failure.

Invariants enforced:
    - Idempotent: a second sweep at the same instant processes nothing.
    - Isolation: each batch commits or rolls back on its own.
    - The wallet balance never goes negative (clamped, with a warning log).
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from credit_batch.domain.types import SweepReport
from credit_batch.services.executor import BatchExecutor
from credit_batch.tasks.base import TaskRegistry
from credit_batch.tasks.ledger_tasks import ExpireCreditBatchesTask
from credit_kernel.domain.clock import Clock, SystemClock
from credit_kernel.logging_config import get_logger
from credit_kernel.services.wallet_locks import WalletLockRegistry

logger = get_logger("batch.sweeper")


class ExpirationSweeper:
    """
    Usage:
        sweeper = ExpirationSweeper(session_factory, clock)
        report = sweeper.sweep_expired()
        print(report.to_dict())
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        locks: WalletLockRegistry | None = None,
    ):
        clock = clock or SystemClock()
        self._task = ExpireCreditBatchesTask(clock)
        registry = TaskRegistry()
        registry.register(self._task)
        self._executor = BatchExecutor(session_factory, registry, clock, locks)

    def sweep_expired(self) -> SweepReport:
        run = self._executor.execute(self._task.task_type)
        report = SweepReport.from_run(run)
        logger.info(
            "expiration_sweep_completed",
            extra={
                "processed": report.processed,
                "failed": report.failed,
                "skipped": run.skipped,
                "total_expired": report.total_expired_credits,
            },
        )
        return report
