"""
credit_batch.domain -- Pure types and schedule rules for background jobs.

ZERO I/O.  All types are frozen dataclasses.
"""

from credit_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    JobSchedule,
    ScheduleFrequency,
    SweepError,
    SweepReport,
)

__all__ = [
    "BatchItemResult",
    "BatchItemStatus",
    "BatchRunResult",
    "BatchRunStatus",
    "JobSchedule",
    "ScheduleFrequency",
    "SweepError",
    "SweepReport",
]
