"""
Module: credit_kernel.models.credit_batch
Responsibility: ORM persistence for credit batches -- one lot of credits
    bought at one time, with its own expiry.  The FIFO spend engine consumes
    batches oldest-first; the sweeper zeroes them after expires_at.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount > 0 and 0 <= remaining <= amount (CHECK constraints).
    - amount, wallet_id, expires_at and created_at are frozen after insert,
      remaining only decreases, rows are never deleted
      (db/immutability.py listeners).
    - A batch with remaining == 0 or expires_at <= now is inert: no spend
      reads it.

Audit relevance:
    (wallet_id, created_at, id) is the deterministic FIFO order.
    source_transaction_id points at the purchase transaction that funded it.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from credit_kernel.db.base import Base, UUIDString


class CreditBatch(Base):
    """A dated lot of purchased credits."""

    __tablename__ = "credit_batches"

    __table_args__ = (
        # Query: spendable batches of a wallet, FIFO
        Index("idx_credit_batch_wallet_created", "wallet_id", "created_at"),
        # Query: expired batches with credits left (sweeper)
        Index("idx_credit_batch_expires_remaining", "expires_at", "remaining"),
        CheckConstraint("amount > 0", name="ck_credit_batch_amount_positive"),
        CheckConstraint("remaining >= 0", name="ck_credit_batch_remaining_non_negative"),
        CheckConstraint("remaining <= amount", name="ck_credit_batch_remaining_le_amount"),
    )

    wallet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("wallets.id"),
        nullable=False,
    )

    # Frozen after insert
    amount: Mapped[int] = mapped_column(nullable=False)

    # Only decreases
    remaining: Mapped[int] = mapped_column(nullable=False)

    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    source_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    product_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def is_spendable(self, now: datetime) -> bool:
        return self.remaining > 0 and self.expires_at > now

    def __repr__(self) -> str:
        return (
            f"<CreditBatch {self.id} {self.remaining}/{self.amount} "
            f"expires={self.expires_at.isoformat()}>"
        )
