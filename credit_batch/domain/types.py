"""
credit_batch.domain.types -- Pure frozen dataclasses for background jobs.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - All DTOs are frozen (a run result cannot be edited after the fact).
    - SweepReport.processed + SweepReport.failed == items attempted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from credit_kernel.exceptions import PartialSweepFailure


# =============================================================================
# Status enums
# =============================================================================


class BatchRunStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # Every item succeeded or was skipped
    FAILED = "failed"  # Nothing succeeded and something failed
    PARTIALLY_COMPLETED = "partially_completed"


class BatchItemStatus(str, Enum):
    """Per-item outcome within a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Nothing to do (e.g. already swept)


class ScheduleFrequency(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    ON_DEMAND = "on_demand"  # Manual trigger only


# =============================================================================
# Run DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchItemResult:
    """Result of processing one item in its own unit of work."""

    item_index: int
    item_key: str  # Business identifier (batch id, vacancy id)
    status: BatchItemStatus
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None
    duration_ms: int = 0


@dataclass(frozen=True)
class BatchRunResult:
    """Result of one executor run.  Returned by ``BatchExecutor.execute()``."""

    task_type: str
    status: BatchRunStatus
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    item_results: tuple[BatchItemResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    run_id: str | None = None


# =============================================================================
# Sweep report
# =============================================================================


@dataclass(frozen=True)
class SweepError:
    batch_id: str
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"batchId": self.batch_id, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class SweepReport:
    """
    Outcome of one expiration sweep.

    processed counts batches expired in this run; batches another run had
    already swept are neither processed nor failed.
    """

    processed: int = 0
    failed: int = 0
    total_expired_credits: int = 0
    errors: tuple[SweepError, ...] = ()

    @classmethod
    def from_run(cls, run: BatchRunResult) -> SweepReport:
        expired = sum(
            int((r.result_data or {}).get("expired", 0))
            for r in run.item_results
            if r.status is BatchItemStatus.SUCCEEDED
        )
        errors = tuple(
            SweepError(
                batch_id=r.item_key,
                code=r.error_code or "UNKNOWN",
                message=r.error_message or "",
            )
            for r in run.item_results
            if r.status is BatchItemStatus.FAILED
        )
        return cls(
            processed=run.succeeded,
            failed=run.failed,
            total_expired_credits=expired,
            errors=errors,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "totalExpired": self.total_expired_credits,
            "errors": [e.to_dict() for e in self.errors],
        }

    def raise_for_failures(self) -> None:
        if self.failed:
            raise PartialSweepFailure(self)


# =============================================================================
# Schedule DTOs
# =============================================================================


@dataclass(frozen=True)
class JobSchedule:
    """
    Snapshot of a recurring job schedule.

    Evaluation (``should_fire``) is pure -- the scheduler reads
    ``next_run_at`` and the current clock, with no side effects.
    ``next_run_at=None`` means due on the next tick.
    """

    name: str
    task_type: str  # Registered task key
    frequency: ScheduleFrequency
    parameters: dict[str, Any] = field(default_factory=dict)
    run_hour: int | None = None  # UTC hour for daily/weekly runs
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    last_run_status: BatchRunStatus | None = None
    is_active: bool = True
