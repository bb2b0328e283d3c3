from credit_batch.services.executor import BatchExecutor
from credit_batch.services.scheduler import BatchScheduler, default_schedules
from credit_batch.services.sweeper import ExpirationSweeper

__all__ = [
    "BatchExecutor",
    "BatchScheduler",
    "ExpirationSweeper",
    "default_schedules",
]
