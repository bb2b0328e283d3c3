"""
BatchOrchestrator -- DI container for the portal's background jobs.

Contract:
    Wires the TaskRegistry with the portal tasks, creates the BatchExecutor,
    the ExpirationSweeper and optionally the BatchScheduler.  Single place
    where all batch dependencies are composed.

Invariants enforced:
    - Every component receives the same Clock and the same wallet lock
      registry as the CreditLedger serving requests in this process.
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from credit_batch.services.executor import BatchExecutor
from credit_batch.services.scheduler import BatchScheduler, default_schedules
from credit_batch.services.sweeper import ExpirationSweeper
from credit_batch.tasks import default_task_registry
from credit_batch.tasks.base import TaskRegistry
from credit_config.schema import PortalConfig, SweeperSettings
from credit_kernel.domain.clock import Clock, SystemClock
from credit_kernel.logging_config import get_logger
from credit_kernel.services.wallet_locks import WalletLockRegistry, default_wallet_locks
from credit_services.sync_notifier import SyncNotifier, build_sync_notifier

logger = get_logger("batch.orchestrator")


class BatchOrchestrator:
    """DI container for the batch system.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        locks: WalletLockRegistry | None = None,
        notifier: SyncNotifier | None = None,
        sweeper_settings: SweeperSettings | None = None,
        task_registry: TaskRegistry | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._locks = locks if locks is not None else default_wallet_locks
        self._settings = sweeper_settings or SweeperSettings()
        self._task_registry = task_registry or default_task_registry(self._clock, notifier)

    @classmethod
    def from_config(
        cls,
        config: PortalConfig,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ) -> BatchOrchestrator:
        return cls(
            session_factory,
            clock=clock,
            notifier=build_sync_notifier(config.sync.webhook_url, config.sync.timeout_seconds),
            sweeper_settings=config.sweeper,
        )

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    def create_executor(self) -> BatchExecutor:
        return BatchExecutor(self._session_factory, self._task_registry, self._clock, self._locks)

    def create_sweeper(self) -> ExpirationSweeper:
        return ExpirationSweeper(self._session_factory, self._clock, self._locks)

    def create_scheduler(self) -> BatchScheduler:
        scheduler = BatchScheduler(
            self.create_executor(),
            default_schedules(self._settings),
            clock=self._clock,
            tick_interval_seconds=self._settings.tick_interval_seconds,
        )
        logger.info(
            "scheduler_configured",
            extra={
                "frequency": self._settings.frequency,
                "run_hour": self._settings.run_hour,
                "schedules": len(scheduler.schedules),
            },
        )
        return scheduler
