"""
CreditLedger -- unit-of-work boundary for everything that moves credits.

Responsibility:
    Opens one session per operation, holds the wallet's named lock from the
    first read until after commit, and retries the whole operation when the
    wallet's optimistic version check fails.  The flush-only services
    (WalletService, SpendEngine, TransactionLog, VacancyLifecycle's steps)
    run inside ``run_for_wallet``.

Architecture position:
    Kernel > Services -- the imperative shell that owns commit/rollback.

Invariants enforced:
    - Exactly-once spend: a wallet's read-modify-write cycles never
      interleave inside this process (WalletLockRegistry), and a concurrent
      writer elsewhere is caught by Wallet.version (StaleDataError).
    - All-or-nothing: the operation's batch, wallet, transaction and
      vacancy changes commit together or roll back together.

Failure modes:
    - PersistenceConflictError after max_attempts version conflicts.
    - Any CreditLedgerError raised by the operation, after rollback.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from credit_kernel.db.engine import session_scope
from credit_kernel.domain.clock import Clock, SystemClock
from credit_kernel.domain.values import (
    InvoiceDetails,
    OwnerType,
    PurchaseResult,
    SpendResult,
    TransactionContext,
    WalletSnapshot,
)
from credit_kernel.exceptions import PersistenceConflictError, WalletNotFoundError
from credit_kernel.logging_config import LogContext, get_logger
from credit_kernel.models.wallet import Wallet
from credit_kernel.services.spend_engine import SpendEngine
from credit_kernel.services.wallet_locks import WalletLockRegistry, default_wallet_locks
from credit_kernel.services.wallet_service import DEFAULT_VALIDITY_MONTHS, WalletService

if TYPE_CHECKING:
    from credit_config.schema import PortalConfig

logger = get_logger("services.credit_ledger")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


class CreditLedger:
    """
    Transactional facade over the wallet store and the spend engine.

    Usage:
        ledger = CreditLedger(session_factory, clock=SystemClock())
        wallet = ledger.open_wallet(OwnerType.EMPLOYER, employer_id)
        ledger.purchase(wallet.id, credits=50, validity_months=12)
        result = ledger.spend(wallet.id, 16)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        locks: WalletLockRegistry | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        default_validity_months: int = DEFAULT_VALIDITY_MONTHS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session_factory = session_factory
        self.clock = clock or SystemClock()
        self.locks = locks if locks is not None else default_wallet_locks
        self._max_attempts = max_attempts
        self._default_validity_months = default_validity_months

    @classmethod
    def from_config(
        cls,
        config: "PortalConfig",
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        locks: WalletLockRegistry | None = None,
    ) -> "CreditLedger":
        return cls(
            session_factory,
            clock=clock,
            locks=locks,
            max_attempts=config.ledger.max_conflict_retries,
            default_validity_months=config.ledger.default_validity_months,
        )

    # -----------------------------------------------------------------
    # Units of work
    # -----------------------------------------------------------------

    def run(self, operation: Callable[[Session], T]) -> T:
        """Run an operation that touches no wallet in its own transaction."""
        with session_scope(self._session_factory) as session:
            return operation(session)

    def run_for_wallet(
        self,
        wallet_id: UUID,
        operation: Callable[[Session], T],
        *,
        operation_name: str = "ledger_operation",
    ) -> T:
        """
        Run ``operation`` as one unit of work under the wallet's lock.

        The operation may be invoked more than once: on a version conflict
        the session is rolled back, a new one is opened and the operation
        re-runs against fresh state.  It must therefore derive everything
        from the session it is given.

        Raises:
            PersistenceConflictError: every attempt hit a version conflict.
        """
        attempt = 0
        while True:
            attempt += 1
            with self.locks.hold(wallet_id), LogContext.bind(wallet_id=wallet_id):
                try:
                    with session_scope(self._session_factory) as session:
                        return operation(session)
                except StaleDataError as exc:
                    logger.warning(
                        "wallet_version_conflict",
                        extra={
                            "wallet_id": str(wallet_id),
                            "operation": operation_name,
                            "attempt": attempt,
                            "max_attempts": self._max_attempts,
                        },
                    )
                    if attempt >= self._max_attempts:
                        raise PersistenceConflictError(str(wallet_id), attempt) from exc

    # -----------------------------------------------------------------
    # Wallet store
    # -----------------------------------------------------------------

    def _wallets(self, session: Session) -> WalletService:
        return WalletService(session, self.clock, self._default_validity_months)

    def open_wallet(self, owner_type: OwnerType, owner_id: UUID) -> WalletSnapshot:
        """Return the owner's wallet, creating it on first use."""
        try:
            return self.run(lambda s: self._wallets(s).open_wallet(owner_type, owner_id).to_snapshot())
        except IntegrityError:
            logger.info(
                "wallet_open_race",
                extra={"owner_type": OwnerType(owner_type).value, "owner_id": str(owner_id)},
            )
            snapshot = self.wallet_for_owner(owner_type, owner_id)
            if snapshot is None:
                raise
            return snapshot

    def wallet(self, wallet_id: UUID) -> WalletSnapshot:
        def _read(session: Session) -> WalletSnapshot:
            wallet = session.get(Wallet, wallet_id)
            if wallet is None:
                raise WalletNotFoundError(str(wallet_id))
            return wallet.to_snapshot()

        return self.run(_read)

    def wallet_for_owner(self, owner_type: OwnerType, owner_id: UUID) -> WalletSnapshot | None:
        def _read(session: Session) -> WalletSnapshot | None:
            wallet = self._wallets(session).get_wallet_for_owner(OwnerType(owner_type), owner_id)
            return wallet.to_snapshot() if wallet is not None else None

        return self.run(_read)

    def purchase(
        self,
        wallet_id: UUID,
        credits: int,
        validity_months: int | None = None,
        *,
        context: TransactionContext = TransactionContext.DASHBOARD,
        actor_id: UUID | None = None,
    ) -> PurchaseResult:
        return self.run_for_wallet(
            wallet_id,
            lambda s: self._wallets(s).purchase(
                wallet_id,
                credits,
                validity_months,
                context=context,
                actor_id=actor_id,
            ),
            operation_name="purchase",
        )

    def purchase_bundle(
        self,
        wallet_id: UUID,
        product_id: UUID,
        invoice_details: InvoiceDetails | None,
        *,
        actor_id: UUID | None = None,
        context: TransactionContext = TransactionContext.DASHBOARD,
    ) -> PurchaseResult:
        return self.run_for_wallet(
            wallet_id,
            lambda s: self._wallets(s).purchase_bundle(
                wallet_id,
                product_id,
                invoice_details,
                actor_id=actor_id,
                context=context,
            ),
            operation_name="purchase_bundle",
        )

    # -----------------------------------------------------------------
    # Spend engine
    # -----------------------------------------------------------------

    def spend(
        self,
        wallet_id: UUID,
        amount: int,
        *,
        allow_shortage: bool = True,
    ) -> SpendResult:
        """
        Standalone FIFO spend in its own unit of work.

        Vacancy actions do not call this: they spend inside their own
        run_for_wallet so the spend commits with the vacancy change.
        """
        return self.run_for_wallet(
            wallet_id,
            lambda s: SpendEngine(s, self.clock).spend(
                wallet_id, amount, allow_shortage=allow_shortage
            ),
            operation_name="spend",
        )
