"""
Batch task: expire credit batches whose validity has passed.

One item per batch with ``expires_at < as_of`` and ``remaining > 0``.  The
executor runs each item in its own session under the batch's wallet lock,
so one broken batch never blocks the rest and a spend on the same wallet
cannot interleave with the expiry.
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
from credit_kernel.domain.values import PortalEventType
from credit_kernel.exceptions import CreditBatchNotFoundError
from credit_kernel.logging_config import get_logger
from credit_kernel.models.credit_batch import CreditBatch
from credit_kernel.services.portal_events import PortalEventRecorder
from credit_kernel.services.transaction_log import TransactionLog
from credit_kernel.services.wallet_service import load_wallet_for_update

logger = get_logger("batch.tasks.ledger")


class ExpireCreditBatchesTask:
    """Zeroes expired batches and books the expired credits."""

    def __init__(self, clock: Clock):
        self._clock = clock

    @property
    def task_type(self) -> str:
        return "credits.expire_batches"

    @property
    def description(self) -> str:
        return "Expire credit batches past their validity"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        rows = session.execute(
            select(CreditBatch.id, CreditBatch.wallet_id)
            .where(
                CreditBatch.expires_at < as_of,
                CreditBatch.remaining > 0,
            )
            .order_by(CreditBatch.expires_at, CreditBatch.id)
        ).all()
        return tuple(
            BatchItemInput(item_index=i, item_key=str(batch_id), wallet_id=wallet_id)
            for i, (batch_id, wallet_id) in enumerate(rows)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        batch = session.execute(
            select(CreditBatch)
            .where(CreditBatch.id == UUID(item.item_key))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise CreditBatchNotFoundError(item.item_key)

        # Another run (or a late spend) may have emptied it since prepare.
        if batch.remaining == 0 or batch.expires_at >= as_of:
            return BatchTaskResult(status=BatchItemStatus.SKIPPED)

        wallet = load_wallet_for_update(session, batch.wallet_id)
        expired = batch.remaining
        deducted = expired
        if wallet.balance < expired:
            logger.warning(
                "sweep_balance_inconsistency",
                extra={
                    "wallet_id": str(wallet.id),
                    "batch_id": str(batch.id),
                    "balance": wallet.balance,
                    "expired": expired,
                },
            )
            deducted = wallet.balance

        batch.remaining = 0
        wallet.balance -= deducted
        wallet.updated_at = self._clock.now()
        session.flush()

        TransactionLog(session, self._clock).record_expiration(
            wallet_id=wallet.id,
            credits=expired,
            batch_id=batch.id,
            employer_id=wallet.owner_employer_id,
        )
        PortalEventRecorder(session, self._clock).record(
            PortalEventType.CREDITS_EXPIRED,
            employer_id=wallet.owner_employer_id,
            source="system",
            payload={"wallet_id": wallet.id, "batch_id": batch.id, "credits": expired},
        )

        logger.info(
            "credit_batch_expired",
            extra={
                "wallet_id": str(wallet.id),
                "batch_id": str(batch.id),
                "expired": expired,
                "balance_after": wallet.balance,
            },
        )
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "batch_id": str(batch.id),
                "wallet_id": str(wallet.id),
                "expired": expired,
                "clamped": deducted != expired,
            },
        )
