"""
credit_batch.tasks -- Task protocol, registry, and the portal's background tasks.
"""

from credit_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
)
from credit_batch.tasks.ledger_tasks import ExpireCreditBatchesTask
from credit_batch.tasks.vacancy_tasks import (
    ExpirePublishedVacanciesTask,
    ResyncVacanciesTask,
)
from credit_kernel.domain.clock import Clock
from credit_services.sync_notifier import NullSyncNotifier, SyncNotifier


def default_task_registry(clock: Clock, notifier: SyncNotifier | None = None) -> TaskRegistry:
    """Registry with every portal background task."""
    registry = TaskRegistry()
    registry.register(ExpireCreditBatchesTask(clock))
    registry.register(ExpirePublishedVacanciesTask(clock))
    registry.register(ResyncVacanciesTask(notifier or NullSyncNotifier()))
    return registry


__all__ = [
    "BatchItemInput",
    "BatchTask",
    "BatchTaskResult",
    "ExpireCreditBatchesTask",
    "ExpirePublishedVacanciesTask",
    "ResyncVacanciesTask",
    "TaskRegistry",
    "default_task_registry",
]
