"""
Module: credit_kernel.models.wallet
Responsibility: ORM persistence for credit wallets.  One wallet per owner
    (an employer, or an intermediary user acting for several employers).
Architecture position: Kernel > Models.  May import from db/ and domain/values.

Invariants enforced:
    - balance >= 0 (CHECK constraint; the spend engine also caps consumption).
    - total_purchased and total_spent only grow.
    - balance == total_purchased - total_spent - sum(expiration transactions)
      after every committed unit of work (verified by LedgerSelector.reconcile).
    - version is SQLAlchemy's version_id_col: an UPDATE whose version no
      longer matches raises StaleDataError, which the credit ledger turns
      into a retry.

Failure modes:
    - IntegrityError on a second wallet for the same owner.
    - StaleDataError on a concurrent write that slipped past the wallet lock.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from credit_kernel.db.base import Base, UUIDString
from credit_kernel.db.types import enum_column
from credit_kernel.domain.values import OwnerType, WalletSnapshot


class Wallet(Base):
    """
    Prepaid credit balance of one owner.

    Mutated only by WalletService.purchase, SpendEngine.spend and the
    expiration sweep.  The per-batch detail lives in CreditBatch; the
    wallet holds the running totals.
    """

    __tablename__ = "wallets"

    __table_args__ = (
        UniqueConstraint("owner_type", "owner_id", name="uq_wallet_owner"),
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
        CheckConstraint("total_purchased >= 0", name="ck_wallet_purchased_non_negative"),
        CheckConstraint("total_spent >= 0", name="ck_wallet_spent_non_negative"),
    )

    owner_type: Mapped[OwnerType] = mapped_column(
        enum_column(OwnerType, length=20),
        nullable=False,
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    balance: Mapped[int] = mapped_column(default=0, nullable=False)

    # Monotonic counters
    total_purchased: Mapped[int] = mapped_column(default=0, nullable=False)
    total_spent: Mapped[int] = mapped_column(default=0, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def owner_employer_id(self) -> UUID | None:
        return self.owner_id if self.owner_type == OwnerType.EMPLOYER else None

    @property
    def owner_user_id(self) -> UUID | None:
        return self.owner_id if self.owner_type == OwnerType.USER else None

    def to_snapshot(self) -> WalletSnapshot:
        return WalletSnapshot(
            id=self.id,
            owner_type=OwnerType(self.owner_type),
            owner_id=self.owner_id,
            balance=self.balance,
            total_purchased=self.total_purchased,
            total_spent=self.total_spent,
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<Wallet {self.id} {self.owner_type.value}:{self.owner_id} "
            f"balance={self.balance}>"
        )
