"""
Module: credit_kernel.models.credit_transaction
Responsibility: ORM persistence for the append-only credit transaction log:
    purchases, spends (vacancy submission, boost, included upsells, renewal)
    and expirations.
Architecture position: Kernel > Models.  May import from db/ and domain/values.

Invariants enforced:
    - Rows are immutable once inserted; updates and deletes are rejected by
      db/immutability.py.
    - credits_amount >= 0.  Its sign is carried by transaction_type.
    - A spend with credits_shortage > 0 has status OPEN and carries an
      invoice_amount and an invoice_details_snapshot.

Audit relevance:
    Together with CreditBatch this log is the full history of a wallet:
    balance == sum(purchase) - sum(spend) - sum(expiration).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from credit_kernel.db.base import Base, UUIDString
from credit_kernel.db.types import enum_column
from credit_kernel.domain.values import (
    TransactionContext,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
)


class CreditTransaction(Base):
    """One immutable ledger line."""

    __tablename__ = "credit_transactions"

    __table_args__ = (
        Index("idx_credit_tx_wallet_created", "wallet_id", "created_at"),
        Index("idx_credit_tx_vacancy", "vacancy_id"),
        Index("idx_credit_tx_type", "transaction_type"),
        CheckConstraint("credits_amount >= 0", name="ck_credit_tx_amount_non_negative"),
    )

    wallet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("wallets.id"),
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        enum_column(TransactionType, length=20),
        nullable=False,
    )

    context: Mapped[TransactionContext | None] = mapped_column(
        enum_column(TransactionContext, length=20),
        nullable=True,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        enum_column(TransactionStatus, length=10),
        default=TransactionStatus.PAID,
        nullable=False,
    )

    credits_amount: Mapped[int] = mapped_column(nullable=False)

    # Owner and actor
    employer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    vacancy_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Pricing breakdown (spend transactions)
    total_credits: Mapped[int | None] = mapped_column(nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    credits_shortage: Mapped[int | None] = mapped_column(nullable=True)
    invoice_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Price paid (purchase transactions)
    money_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    product_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    invoice_details_snapshot: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(
            id=self.id,
            wallet_id=self.wallet_id,
            transaction_type=self.transaction_type,
            context=self.context,
            credits_amount=self.credits_amount,
            status=self.status,
            created_at=self.created_at,
            vacancy_id=self.vacancy_id,
            batch_id=self.batch_id,
            total_credits=self.total_credits,
            credits_shortage=self.credits_shortage,
            invoice_amount=self.invoice_amount,
            product_ids=tuple(self.product_ids or ()),
        )

    def __repr__(self) -> str:
        ctx = f"/{self.context.value}" if self.context else ""
        return (
            f"<CreditTransaction {self.transaction_type.value}{ctx} "
            f"{self.credits_amount} wallet={self.wallet_id}>"
        )
