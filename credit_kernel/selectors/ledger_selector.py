"""
Module: credit_kernel.selectors.ledger_selector
Responsibility: Read-only wallet queries: snapshots, FIFO view of active
    batches, transaction history, and reconciliation of the stored wallet
    totals against the transaction log and the batch table.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/values and selectors/base.py.

Invariants checked (reconcile):
    balance == total_purchased - total_spent - total_expired
    total_purchased == sum(purchase transactions)
    sum(remaining of unexpired batches) + unswept expired remaining == balance
      (holds while no wallet is clamped by the sweeper)
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from credit_kernel.domain.values import (
    TransactionRecord,
    TransactionType,
    WalletSnapshot,
)
from credit_kernel.exceptions import WalletNotFoundError
from credit_kernel.models.credit_batch import CreditBatch
from credit_kernel.models.credit_transaction import CreditTransaction
from credit_kernel.models.wallet import Wallet
from credit_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ActiveBatch:
    batch_id: UUID
    amount: int
    remaining: int
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class WalletReconciliation:
    wallet_id: UUID
    balance: int
    total_purchased: int
    total_spent: int
    total_expired: int
    purchased_in_log: int
    batch_remaining: int

    @property
    def expected_balance(self) -> int:
        return self.total_purchased - self.total_spent - self.total_expired

    @property
    def is_consistent(self) -> bool:
        return (
            self.balance == self.expected_balance
            and self.total_purchased == self.purchased_in_log
            and self.batch_remaining == self.balance
        )


class LedgerSelector(BaseSelector[Wallet]):
    """Read-only access to wallets, batches and transactions."""

    def _wallet(self, wallet_id: UUID) -> Wallet:
        wallet = self.session.get(Wallet, wallet_id)
        if wallet is None:
            raise WalletNotFoundError(str(wallet_id))
        return wallet

    def wallet_snapshot(self, wallet_id: UUID) -> WalletSnapshot:
        return self._wallet(wallet_id).to_snapshot()

    def active_batches(self, wallet_id: UUID, as_of: datetime) -> list[ActiveBatch]:
        """Spendable batches in the order the spend engine would drain them."""
        rows = self.session.execute(
            select(CreditBatch)
            .where(
                CreditBatch.wallet_id == wallet_id,
                CreditBatch.remaining > 0,
                CreditBatch.expires_at > as_of,
            )
            .order_by(CreditBatch.created_at, CreditBatch.id)
        ).scalars()
        return [
            ActiveBatch(
                batch_id=b.id,
                amount=b.amount,
                remaining=b.remaining,
                created_at=b.created_at,
                expires_at=b.expires_at,
            )
            for b in rows
        ]

    def available_credits(self, wallet_id: UUID, as_of: datetime) -> int:
        wallet = self._wallet(wallet_id)
        spendable = sum(b.remaining for b in self.active_batches(wallet_id, as_of))
        return min(wallet.balance, spendable)

    def transaction_history(
        self,
        wallet_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TransactionRecord]:
        """Newest first."""
        rows = self.session.execute(
            select(CreditTransaction)
            .where(CreditTransaction.wallet_id == wallet_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
        return [tx.to_record() for tx in rows]

    def vacancy_transactions(self, vacancy_id: UUID) -> list[TransactionRecord]:
        """Transactions referencing a vacancy, oldest first."""
        rows = self.session.execute(
            select(CreditTransaction)
            .where(CreditTransaction.vacancy_id == vacancy_id)
            .order_by(CreditTransaction.created_at, CreditTransaction.id)
        ).scalars()
        return [tx.to_record() for tx in rows]

    def _sum_transactions(self, wallet_id: UUID, tx_type: TransactionType) -> int:
        total = self.session.execute(
            select(func.coalesce(func.sum(CreditTransaction.credits_amount), 0)).where(
                CreditTransaction.wallet_id == wallet_id,
                CreditTransaction.transaction_type == tx_type,
            )
        ).scalar_one()
        return int(total)

    def reconcile(self, wallet_id: UUID) -> WalletReconciliation:
        wallet = self._wallet(wallet_id)
        batch_remaining = self.session.execute(
            select(func.coalesce(func.sum(CreditBatch.remaining), 0)).where(
                CreditBatch.wallet_id == wallet_id
            )
        ).scalar_one()
        return WalletReconciliation(
            wallet_id=wallet.id,
            balance=wallet.balance,
            total_purchased=wallet.total_purchased,
            total_spent=wallet.total_spent,
            total_expired=self._sum_transactions(wallet_id, TransactionType.EXPIRATION),
            purchased_in_log=self._sum_transactions(wallet_id, TransactionType.PURCHASE),
            batch_remaining=int(batch_remaining),
        )

    def all_wallet_ids(self) -> list[UUID]:
        return list(self.session.execute(select(Wallet.id).order_by(Wallet.created_at)).scalars())
