"""
BatchTask protocol, supporting types, and TaskRegistry.

Contract:
    ``BatchTask`` defines the interface every background task implements.
    ``TaskRegistry`` stores registered tasks keyed by ``task_type``.

Architecture:
    credit_batch/tasks.  base.py imports only credit_batch.domain and
    SQLAlchemy's Session type.

Invariants enforced:
    - One task per ``task_type`` string.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.orm import Session

from credit_batch.domain.types import BatchItemStatus


@dataclass(frozen=True)
class BatchItemInput:
    """One unit of work, created by ``BatchTask.prepare_items()``.

    When ``wallet_id`` is set the executor holds that wallet's lock while
    the item runs.
    """

    item_index: int
    item_key: str
    wallet_id: UUID | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchTaskResult:
    """Returned by ``BatchTask.execute_item()``.  Only SUCCEEDED commits."""

    status: BatchItemStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None


@runtime_checkable
class BatchTask(Protocol):
    """Interface for background task implementations.

    Contract:
        - ``prepare_items()`` queries eligible records, returns an immutable tuple.
        - ``execute_item()`` processes ONE item in its own session; it must
          re-check eligibility because another run may have handled it.

    Non-goals:
        - Does NOT commit -- the executor owns the unit of work.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]: ...

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult: ...


class TaskRegistry:
    """Registry mapping task_type strings to BatchTask implementations."""

    def __init__(self) -> None:
        self._tasks: dict[str, BatchTask] = {}

    def register(self, task: BatchTask) -> None:
        """Raises ValueError if the task_type is already registered."""
        if task.task_type in self._tasks:
            raise ValueError(f"Task type '{task.task_type}' is already registered")
        self._tasks[task.task_type] = task

    def get(self, task_type: str) -> BatchTask:
        try:
            return self._tasks[task_type]
        except KeyError:
            raise KeyError(
                f"No task registered for type '{task_type}'. "
                f"Available: {sorted(self._tasks)}"
            ) from None

    def list_tasks(self) -> tuple[str, ...]:
        return tuple(sorted(self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_type: str) -> bool:
        return task_type in self._tasks
