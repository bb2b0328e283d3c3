"""
SpendEngine -- deterministic oldest-first consumption of credit batches.

Responsibility:
    Deducts credits from a wallet by draining its spendable batches in
    (created_at, id) order.  The spend engine writes no transaction: the
    caller (vacancy submission, boost) records the spend with its pricing
    context in the same unit of work.

Architecture position:
    Kernel > Services -- flush-only.  Callers must hold the wallet's lock
    (CreditLedger.run_for_wallet) for the read-modify-write to be
    exactly-once.

Invariants enforced:
    - Only batches with remaining > 0 and expires_at > now are touched.
    - A batch is only reached once every older spendable batch is empty.
    - consumed == sum of per-batch consumption == wallet balance decrease.
    - consumed <= wallet.balance, so the balance never goes negative even
      if an expired batch was swept late.
    - consumed + shortage == requested.

Failure modes:
    - InvalidAmountError: negative or non-integer amount.
    - WalletNotFoundError: unknown wallet.
    - InsufficientCreditsError: allow_shortage=False and the spendable
      credits do not cover the amount.  Raised before anything changes.
    - StaleDataError (from flush): the wallet row was changed by another
      writer.  CreditLedger translates it into a retry.

Usage:
    engine = SpendEngine(session, clock)
    result = engine.spend(wallet_id, 16)
    # result.consumed == 10, result.shortage == 6 on a 10-credit wallet
"""

from uuid import UUID

from sqlalchemy import select

from credit_kernel.domain.values import BatchConsumption, SpendResult
from credit_kernel.exceptions import InsufficientCreditsError, InvalidAmountError
from credit_kernel.logging_config import get_logger
from credit_kernel.models.credit_batch import CreditBatch
from credit_kernel.services.base import BaseService
from credit_kernel.services.wallet_service import load_wallet_for_update

logger = get_logger("services.spend_engine")


class SpendEngine(BaseService[CreditBatch]):
    """FIFO spend over a wallet's non-expired batches."""

    def spendable_batches(self, wallet_id: UUID) -> list[CreditBatch]:
        """Spendable batches of a wallet in FIFO order, row-locked."""
        now = self.clock.now()
        return list(
            self.session.execute(
                select(CreditBatch)
                .where(
                    CreditBatch.wallet_id == wallet_id,
                    CreditBatch.remaining > 0,
                    CreditBatch.expires_at > now,
                )
                .order_by(CreditBatch.created_at, CreditBatch.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def available(self, wallet_id: UUID) -> int:
        """Credits a spend could consume right now."""
        wallet = load_wallet_for_update(self.session, wallet_id)
        spendable = sum(b.remaining for b in self.spendable_batches(wallet.id))
        return min(wallet.balance, spendable)

    def spend(
        self,
        wallet_id: UUID,
        amount: int,
        *,
        allow_shortage: bool = True,
    ) -> SpendResult:
        """
        Consume up to ``amount`` credits, oldest batch first.

        Preconditions:
            - amount is an integer >= 0.
            - The caller holds the wallet's lock.

        Postconditions:
            - Each touched batch's remaining is reduced; all changes are
              flushed, not committed.
            - wallet.balance -= consumed, wallet.total_spent += consumed.
            - With allow_shortage=True the residual is returned as
              ``shortage``; with allow_shortage=False shortage is always 0.

        Raises:
            InvalidAmountError, WalletNotFoundError, InsufficientCreditsError
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidAmountError("amount", amount, "must be an integer")
        if amount < 0:
            raise InvalidAmountError("amount", amount, "must not be negative")

        wallet = load_wallet_for_update(self.session, wallet_id)

        if amount == 0:
            return SpendResult(
                wallet_id=wallet.id,
                requested=0,
                consumed=0,
                shortage=0,
                balance_after=wallet.balance,
            )

        batches = self.spendable_batches(wallet.id)
        available = min(wallet.balance, sum(b.remaining for b in batches))

        if not allow_shortage and available < amount:
            logger.info(
                "spend_rejected_insufficient",
                extra={
                    "wallet_id": str(wallet.id),
                    "requested": amount,
                    "available": available,
                },
            )
            raise InsufficientCreditsError(required=amount, available=available)

        left = min(amount, available)
        touched: list[BatchConsumption] = []
        for batch in batches:
            if left == 0:
                break
            take = min(batch.remaining, left)
            batch.remaining -= take
            left -= take
            touched.append(
                BatchConsumption(
                    batch_id=batch.id,
                    consumed=take,
                    remaining_after=batch.remaining,
                )
            )

        consumed = sum(c.consumed for c in touched)
        wallet.balance -= consumed
        wallet.total_spent += consumed
        wallet.updated_at = self.clock.now()
        self.session.flush()

        result = SpendResult(
            wallet_id=wallet.id,
            requested=amount,
            consumed=consumed,
            shortage=amount - consumed,
            batches_touched=tuple(touched),
            balance_after=wallet.balance,
        )
        logger.info(
            "spend_completed",
            extra={
                "wallet_id": str(wallet.id),
                "requested": amount,
                "consumed": consumed,
                "shortage": result.shortage,
                "batches_touched": len(touched),
                "balance_after": wallet.balance,
            },
        )
        return result
