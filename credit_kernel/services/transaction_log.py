"""
TransactionLog -- append-only writer for credit transactions.

Responsibility:
    The only code that creates CreditTransaction rows.  One helper per
    transaction shape (purchase, spend, included upsell, expiration) so
    callers cannot forget a required field.

Architecture position:
    Kernel > Services.  Called by WalletService, VacancyLifecycle and the
    expiration task inside their unit of work.

Invariants enforced:
    - Rows are immutable once flushed (db/immutability.py).
    - A spend whose shortage is invoiced is stored with status OPEN.
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from credit_kernel.domain.values import (
    InvoiceDetails,
    TransactionContext,
    TransactionStatus,
    TransactionType,
)
from credit_kernel.logging_config import get_logger
from credit_kernel.models.credit_transaction import CreditTransaction
from credit_kernel.services.base import BaseService

logger = get_logger("services.transaction_log")


class TransactionLog(BaseService[CreditTransaction]):
    """Appends transactions to the caller's unit of work."""

    def _append(self, **fields: Any) -> CreditTransaction:
        tx = CreditTransaction(created_at=self.clock.now(), **fields)
        self.session.add(tx)
        self.session.flush()
        logger.info(
            "credit_transaction_recorded",
            extra={
                "transaction_id": str(tx.id),
                "wallet_id": str(tx.wallet_id),
                "transaction_type": tx.transaction_type.value,
                "context": tx.context.value if tx.context else None,
                "credits_amount": tx.credits_amount,
            },
        )
        return tx

    def record_purchase(
        self,
        *,
        wallet_id: UUID,
        credits: int,
        batch_id: UUID,
        context: TransactionContext = TransactionContext.DASHBOARD,
        employer_id: UUID | None = None,
        user_id: UUID | None = None,
        product_id: UUID | None = None,
        money_amount: Decimal | None = None,
        invoice_details: InvoiceDetails | None = None,
        status: TransactionStatus = TransactionStatus.PAID,
        transaction_id: UUID | None = None,
    ) -> CreditTransaction:
        return self._append(
            id=transaction_id or uuid4(),
            wallet_id=wallet_id,
            transaction_type=TransactionType.PURCHASE,
            context=context,
            status=status,
            credits_amount=credits,
            batch_id=batch_id,
            employer_id=employer_id,
            user_id=user_id,
            money_amount=money_amount,
            product_ids=[str(product_id)] if product_id else [],
            invoice_details_snapshot=invoice_details.to_snapshot() if invoice_details else None,
        )

    def record_spend(
        self,
        *,
        wallet_id: UUID,
        credits: int,
        context: TransactionContext,
        vacancy_id: UUID | None = None,
        employer_id: UUID | None = None,
        user_id: UUID | None = None,
        total_credits: int | None = None,
        total_cost: Decimal | None = None,
        credits_shortage: int = 0,
        invoice_amount: Decimal | None = None,
        product_ids: Sequence[UUID | str] = (),
        invoice_details: InvoiceDetails | None = None,
    ) -> CreditTransaction:
        status = TransactionStatus.OPEN if credits_shortage > 0 else TransactionStatus.PAID
        return self._append(
            wallet_id=wallet_id,
            transaction_type=TransactionType.SPEND,
            context=context,
            status=status,
            credits_amount=credits,
            vacancy_id=vacancy_id,
            employer_id=employer_id,
            user_id=user_id,
            total_credits=total_credits,
            total_cost=total_cost,
            credits_shortage=credits_shortage,
            invoice_amount=invoice_amount,
            product_ids=[str(p) for p in product_ids],
            invoice_details_snapshot=(
                invoice_details.to_snapshot()
                if invoice_details and credits_shortage > 0
                else None
            ),
        )

    def record_included(
        self,
        *,
        wallet_id: UUID,
        upsell_id: UUID,
        vacancy_id: UUID,
        employer_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> CreditTransaction:
        """Zero-cost line for an upsell that ships with the package."""
        return self._append(
            wallet_id=wallet_id,
            transaction_type=TransactionType.SPEND,
            context=TransactionContext.INCLUDED,
            status=TransactionStatus.PAID,
            credits_amount=0,
            vacancy_id=vacancy_id,
            employer_id=employer_id,
            user_id=user_id,
            total_credits=0,
            total_cost=Decimal("0"),
            credits_shortage=0,
            product_ids=[str(upsell_id)],
        )

    def record_expiration(
        self,
        *,
        wallet_id: UUID,
        credits: int,
        batch_id: UUID,
        employer_id: UUID | None = None,
    ) -> CreditTransaction:
        return self._append(
            wallet_id=wallet_id,
            transaction_type=TransactionType.EXPIRATION,
            context=None,
            status=TransactionStatus.PAID,
            credits_amount=credits,
            batch_id=batch_id,
            employer_id=employer_id,
        )
