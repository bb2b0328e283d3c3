"""
Batch tasks: vacancy housekeeping (persist expiry, re-sync the public site).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from credit_batch.domain.types import BatchItemStatus
from credit_batch.tasks.base import BatchItemInput, BatchTaskResult
from credit_kernel.domain.clock import Clock
from credit_kernel.domain.values import VacancyStatus
from credit_kernel.models.vacancy import Vacancy
from credit_services.sync_notifier import SyncNotifier
from credit_services.vacancy_lifecycle import expire_if_closed, load_vacancy


class ExpirePublishedVacanciesTask:
    """Moves published vacancies past their closing date to verlopen."""

    def __init__(self, clock: Clock):
        self._clock = clock

    @property
    def task_type(self) -> str:
        return "vacancies.expire_closed"

    @property
    def description(self) -> str:
        return "Persist verlopen for published vacancies past their closing date"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        ids = session.execute(
            select(Vacancy.id)
            .where(
                Vacancy.status == VacancyStatus.GEPUBLICEERD,
                Vacancy.closing_date < as_of.date(),
            )
            .order_by(Vacancy.closing_date, Vacancy.id)
        ).scalars()
        return tuple(
            BatchItemInput(item_index=i, item_key=str(vacancy_id))
            for i, vacancy_id in enumerate(ids)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        vacancy = load_vacancy(session, UUID(item.item_key))
        if not expire_if_closed(session, vacancy, self._clock):
            return BatchTaskResult(status=BatchItemStatus.SKIPPED)
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={"vacancy_id": item.item_key},
        )


class ResyncVacanciesTask:
    """Re-notifies the public site about vacancies still flagged needs_sync."""

    def __init__(self, notifier: SyncNotifier):
        self._notifier = notifier

    @property
    def task_type(self) -> str:
        return "vacancies.resync"

    @property
    def description(self) -> str:
        return "Push pending vacancy changes to the public site"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        limit = int(parameters.get("limit", 500))
        ids = session.execute(
            select(Vacancy.id)
            .where(Vacancy.needs_sync.is_(True))
            .order_by(Vacancy.last_status_changed_at, Vacancy.id)
            .limit(limit)
        ).scalars()
        return tuple(
            BatchItemInput(item_index=i, item_key=str(vacancy_id))
            for i, vacancy_id in enumerate(ids)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        vacancy = load_vacancy(session, UUID(item.item_key))
        if not vacancy.needs_sync:
            return BatchTaskResult(status=BatchItemStatus.SKIPPED)
        if not self._notifier.notify(vacancy.id):
            return BatchTaskResult(
                status=BatchItemStatus.FAILED,
                error_code="SYNC_NOTIFY_FAILED",
                error_message=f"Sync notification for vacancy {vacancy.id} not acknowledged",
            )
        vacancy.needs_sync = False
        session.flush()
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={"vacancy_id": item.item_key},
        )
