"""
WalletService -- wallet creation and credit purchases.

Responsibility:
    Opens wallets for employers and intermediary users and turns purchases
    into credit batches.  Each purchase creates exactly one batch, raises the
    wallet's balance and total_purchased by the same amount, and appends one
    purchase transaction.

Architecture position:
    Kernel > Services -- flush-only, runs inside a CreditLedger unit of work
    that holds the wallet's lock.

Invariants enforced:
    - Purchases are strictly positive whole credit amounts.
    - batch.amount == batch.remaining == purchased credits at creation.
    - batch.expires_at == purchase time + validity_months calendar months.

Failure modes:
    - WalletNotFoundError: unknown wallet id.
    - InvalidAmountError: credits or validity_months not a positive integer.
    - ProductNotFoundError / InvalidProductError: bundle checkout against a
      missing, inactive or non-bundle product.
    - InvoiceDetailsRequiredError: bundle checkout without billing details.
"""

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from credit_kernel.domain.calculations import add_months
from credit_kernel.domain.clock import Clock
from credit_kernel.domain.values import (
    InvoiceDetails,
    OwnerType,
    PortalEventType,
    ProductType,
    PurchaseResult,
    TransactionContext,
    TransactionStatus,
)
from credit_kernel.exceptions import (
    InvalidAmountError,
    InvalidProductError,
    InvoiceDetailsRequiredError,
    ProductNotFoundError,
    WalletNotFoundError,
)
from credit_kernel.logging_config import get_logger
from credit_kernel.models.credit_batch import CreditBatch
from credit_kernel.models.product import Product
from credit_kernel.models.wallet import Wallet
from credit_kernel.services.base import BaseService
from credit_kernel.services.portal_events import PortalEventRecorder
from credit_kernel.services.transaction_log import TransactionLog

logger = get_logger("services.wallet")

DEFAULT_VALIDITY_MONTHS = 12


def require_positive_int(field: str, value: object) -> int:
    """Reject bools, non-integers and values below 1."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(field, value, "must be an integer")
    if value <= 0:
        raise InvalidAmountError(field, value, "must be positive")
    return value


def load_wallet_for_update(session: Session, wallet_id: UUID) -> Wallet:
    """
    Load a wallet with a row lock (FOR UPDATE on PostgreSQL).

    populate_existing refreshes an instance already in the identity map so
    the caller always sees the committed balance.
    """
    wallet = session.execute(
        select(Wallet)
        .where(Wallet.id == wallet_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if wallet is None:
        raise WalletNotFoundError(str(wallet_id))
    return wallet


class WalletService(BaseService[Wallet]):
    """
    Wallet store and credit batch ledger writer.

    Usage:
        service = WalletService(session, clock)
        result = service.purchase(wallet_id, credits=50, validity_months=12)
        session.commit()
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_validity_months: int = DEFAULT_VALIDITY_MONTHS,
    ):
        super().__init__(session, clock)
        self._default_validity_months = default_validity_months
        self._transactions = TransactionLog(session, self.clock)
        self._events = PortalEventRecorder(session, self.clock)

    # -----------------------------------------------------------------
    # Wallets
    # -----------------------------------------------------------------

    def get_wallet_for_owner(self, owner_type: OwnerType, owner_id: UUID) -> Wallet | None:
        return self.session.execute(
            select(Wallet).where(
                Wallet.owner_type == owner_type,
                Wallet.owner_id == owner_id,
            )
        ).scalar_one_or_none()

    def open_wallet(self, owner_type: OwnerType, owner_id: UUID) -> Wallet:
        """
        Return the owner's wallet, creating it on first use.

        Postconditions: exactly one wallet exists for (owner_type, owner_id).
        """
        owner_type = OwnerType(owner_type)
        existing = self.get_wallet_for_owner(owner_type, owner_id)
        if existing is not None:
            return existing

        now = self.clock.now()
        wallet = Wallet(
            owner_type=owner_type,
            owner_id=owner_id,
            balance=0,
            total_purchased=0,
            total_spent=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(wallet)
        # IntegrityError here means a concurrent unit of work created it first;
        # CreditLedger.open_wallet re-reads in a fresh session.
        self.session.flush()

        self._events.record(
            PortalEventType.WALLET_CREATED,
            employer_id=owner_id if owner_type == OwnerType.EMPLOYER else None,
            actor_user_id=owner_id if owner_type == OwnerType.USER else None,
            payload={"wallet_id": wallet.id, "owner_type": owner_type.value},
        )
        logger.info(
            "wallet_opened",
            extra={
                "wallet_id": str(wallet.id),
                "owner_type": owner_type.value,
                "owner_id": str(owner_id),
            },
        )
        return wallet

    # -----------------------------------------------------------------
    # Purchases
    # -----------------------------------------------------------------

    def purchase(
        self,
        wallet_id: UUID,
        credits: int,
        validity_months: int | None = None,
        *,
        context: TransactionContext = TransactionContext.DASHBOARD,
        actor_id: UUID | None = None,
        product: Product | None = None,
        invoice_details: InvoiceDetails | None = None,
        status: TransactionStatus = TransactionStatus.PAID,
    ) -> PurchaseResult:
        """
        Add a batch of credits to a wallet.

        Preconditions:
            - credits > 0, validity_months > 0 (defaults to the configured
              validity when omitted).
            - The caller holds the wallet's lock.

        Postconditions:
            - One CreditBatch(amount=credits, remaining=credits).
            - wallet.balance and wallet.total_purchased grow by credits.
            - One purchase transaction linked to the batch.

        Raises:
            InvalidAmountError, WalletNotFoundError
        """
        credits = require_positive_int("credits", credits)
        if validity_months is None:
            validity_months = self._default_validity_months
        validity_months = require_positive_int("validity_months", validity_months)

        wallet = load_wallet_for_update(self.session, wallet_id)
        now = self.clock.now()
        transaction_id = uuid4()

        batch = CreditBatch(
            wallet_id=wallet.id,
            amount=credits,
            remaining=credits,
            expires_at=add_months(now, validity_months),
            created_at=now,
            source_transaction_id=transaction_id,
            product_id=product.id if product is not None else None,
        )
        self.session.add(batch)

        wallet.balance += credits
        wallet.total_purchased += credits
        wallet.updated_at = now
        self.session.flush()

        tx = self._transactions.record_purchase(
            transaction_id=transaction_id,
            wallet_id=wallet.id,
            credits=credits,
            batch_id=batch.id,
            context=context,
            employer_id=wallet.owner_employer_id,
            user_id=actor_id,
            product_id=product.id if product is not None else None,
            money_amount=product.price if product is not None else None,
            invoice_details=invoice_details,
            status=status,
        )
        self._events.record(
            PortalEventType.CREDITS_PURCHASED,
            employer_id=wallet.owner_employer_id,
            actor_user_id=actor_id,
            payload={
                "wallet_id": wallet.id,
                "credits": credits,
                "batch_id": batch.id,
                "expires_at": batch.expires_at.isoformat(),
            },
        )

        logger.info(
            "credits_purchased",
            extra={
                "wallet_id": str(wallet.id),
                "batch_id": str(batch.id),
                "credits": credits,
                "validity_months": validity_months,
                "balance_after": wallet.balance,
            },
        )
        return PurchaseResult(
            wallet_id=wallet.id,
            batch_id=batch.id,
            transaction_id=tx.id,
            credits=credits,
            expires_at=batch.expires_at,
            balance_after=wallet.balance,
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
        """
        Checkout of a credit bundle paid by invoice.

        The transaction is stored as OPEN with a snapshot of the billing
        details; the batch is usable immediately.

        Raises:
            ProductNotFoundError, InvalidProductError,
            InvoiceDetailsRequiredError, WalletNotFoundError
        """
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        if product.product_type != ProductType.CREDIT_BUNDLE:
            raise InvalidProductError(str(product_id), "not a credit bundle")
        if not product.is_active:
            raise InvalidProductError(str(product_id), "product is inactive")

        if invoice_details is None:
            raise InvoiceDetailsRequiredError(missing=InvoiceDetails().missing_fields())
        missing = invoice_details.missing_fields()
        if missing:
            raise InvoiceDetailsRequiredError(missing=missing)

        return self.purchase(
            wallet_id,
            product.credits,
            product.validity_months or self._default_validity_months,
            context=context,
            actor_id=actor_id,
            product=product,
            invoice_details=invoice_details,
            status=TransactionStatus.OPEN,
        )
