"""
VacancyLifecycle -- the vacancy state machine, gated on the credit ledger.

Responsibility:
    Runs every vacancy action as one unit of work: validation, pricing, the
    FIFO spend, the spend/included transactions, the status change and the
    portal event commit together or not at all.  After commit, visible
    changes are pushed to the public site through the sync notifier.

Architecture position:
    Services -- orchestration over credit_kernel.  Owns no session itself:
    CreditLedger.run_for_wallet (ledger actions) and CreditLedger.run
    (status-only actions) provide the unit of work.

Transitions:
    concept              -> wacht_op_goedkeuring   submit (charges credits)
    incompleet           -> wacht_op_goedkeuring   resubmit (no charge)
    wacht_op_goedkeuring -> gepubliceerd           approve
    wacht_op_goedkeuring -> incompleet             request_changes
    gepubliceerd         -> gedepubliceerd         depublish
    gepubliceerd         -> verlopen               expire (closing date passed)
    verlopen             -> gepubliceerd           boost
    gedepubliceerd       -> gepubliceerd           boost, republish

Failure modes:
    - InvalidStateTransitionError: action not allowed in the current status.
    - MissingFieldsError, InvoiceDetailsRequiredError, UnknownProductError,
      InvalidProductError, UpsellNotAvailableError, InvalidClosingDateError:
      rejected before any ledger write.
    - InsufficientCreditsError: boost without full coverage.
    - PersistenceConflictError: wallet version conflicts exhausted retries.
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from credit_config.schema import PortalConfig
from credit_kernel.domain.calculations import invoice_amount
from credit_kernel.domain.clock import Clock
from credit_kernel.domain.values import (
    InputType,
    InvoiceDetails,
    OwnerType,
    PortalEventType,
    ProductAvailability,
    RepeatMode,
    TransactionContext,
    VacancyStatus,
)
from credit_kernel.domain.vacancy_status import (
    BOOSTABLE_STATUSES,
    can_transition,
    effective_status,
)
from credit_kernel.exceptions import (
    InvalidClosingDateError,
    InvalidStateTransitionError,
    InvoiceDetailsRequiredError,
    MissingFieldsError,
    UpsellNotAvailableError,
    VacancyNotFoundError,
    WalletNotFoundError,
)
from credit_kernel.logging_config import LogContext, get_logger
from credit_kernel.models.product import Product
from credit_kernel.models.vacancy import Vacancy
from credit_kernel.selectors.ledger_selector import LedgerSelector
from credit_kernel.services.credit_ledger import CreditLedger
from credit_kernel.services.portal_events import PortalEventRecorder
from credit_kernel.services.spend_engine import SpendEngine
from credit_kernel.services.transaction_log import TransactionLog
from credit_kernel.services.wallet_service import WalletService
from credit_services.closing_dates import initial_closing_date, validate_extension
from credit_services.pricing import PricingResolver
from credit_services.sync_notifier import NullSyncNotifier, SyncNotifier, build_sync_notifier
from credit_services.upsell_filters import RepeatModeContext, filter_upsells_by_repeat_mode
from credit_services.vacancy_validation import validate_for_submission

logger = get_logger("services.vacancy_lifecycle")

S = VacancyStatus

DEFAULT_DURATION_DAYS = 30
MAX_PUBLICATION_DAYS = 365

CONTENT_FIELDS = frozenset(
    {
        "title",
        "intro_txt",
        "description",
        "location",
        "region_id",
        "sector_id",
        "function_type_id",
        "show_apply_form",
        "apply_url",
        "application_email",
    }
)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SubmissionResult:
    vacancy_id: UUID
    wallet_id: UUID
    status: VacancyStatus
    total_credits: int
    total_price: Decimal
    credits_consumed: int
    credits_shortage: int
    invoice_amount: Decimal
    spend_transaction_id: UUID
    included_transaction_ids: tuple[UUID, ...]
    is_featured: bool
    same_day_priority: bool
    balance_after: int


@dataclass(frozen=True)
class BoostResult:
    vacancy_id: UUID
    wallet_id: UUID
    status: VacancyStatus
    upsell_ids: tuple[UUID, ...]
    credits_consumed: int
    closing_date: date | None
    transaction_id: UUID
    balance_after: int


@dataclass(frozen=True)
class VacancyState:
    vacancy_id: UUID
    status: VacancyStatus
    effective_status: VacancyStatus
    closing_date: date | None
    needs_sync: bool


@dataclass(frozen=True)
class BoostOption:
    product_id: UUID
    display_name: str
    credits: int
    price: Decimal
    repeat_mode: RepeatMode | None
    max_date: date | None = None


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------


def load_vacancy(session: Session, vacancy_id: UUID, *, for_update: bool = True) -> Vacancy:
    stmt = select(Vacancy).where(Vacancy.id == vacancy_id)
    if for_update:
        stmt = stmt.with_for_update()
    vacancy = session.execute(
        stmt.execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if vacancy is None:
        raise VacancyNotFoundError(str(vacancy_id))
    return vacancy


def set_status(vacancy: Vacancy, target: VacancyStatus, operation: str, clock: Clock) -> None:
    if not can_transition(vacancy.status, target):
        raise InvalidStateTransitionError(str(vacancy.id), vacancy.status.value, operation)
    vacancy.status = target
    vacancy.last_status_changed_at = clock.now()


def expire_if_closed(session: Session, vacancy: Vacancy, clock: Clock) -> bool:
    """
    Persist gepubliceerd -> verlopen once the closing date has passed.

    Flush-only; returns True when the vacancy was expired.
    """
    if vacancy.status is not S.GEPUBLICEERD:
        return False
    if effective_status(vacancy.status, vacancy.closing_date, clock.today()) is not S.VERLOPEN:
        return False
    set_status(vacancy, S.VERLOPEN, "expire", clock)
    vacancy.needs_sync = True
    PortalEventRecorder(session, clock).record(
        PortalEventType.VACANCY_EXPIRED,
        employer_id=vacancy.employer_id,
        vacancy_id=vacancy.id,
        source="system",
        payload={"closing_date": vacancy.closing_date.isoformat()},
    )
    session.flush()
    logger.info(
        "vacancy_expired",
        extra={"vacancy_id": str(vacancy.id), "closing_date": vacancy.closing_date},
    )
    return True


class VacancyLifecycle:
    """
    Vacancy actions of the employer portal.

    Usage:
        lifecycle = VacancyLifecycle(ledger, notifier)
        vacancy_id = lifecycle.create_vacancy(employer_id, package_id=pkg, title=...)
        result = lifecycle.submit(vacancy_id, actor_id=user_id, invoice_details=details)
    """

    def __init__(
        self,
        ledger: CreditLedger,
        notifier: SyncNotifier | None = None,
        default_duration_days: int = DEFAULT_DURATION_DAYS,
        max_publication_days: int = MAX_PUBLICATION_DAYS,
    ):
        self._ledger = ledger
        self._notifier = notifier if notifier is not None else NullSyncNotifier()
        self._default_duration_days = default_duration_days
        self._max_publication_days = max_publication_days

    @classmethod
    def from_config(
        cls,
        config: PortalConfig,
        ledger: CreditLedger,
        notifier: SyncNotifier | None = None,
    ) -> "VacancyLifecycle":
        """Lifecycle with the configured durations; the notifier defaults to config.sync."""
        if notifier is None:
            notifier = build_sync_notifier(config.sync.webhook_url, config.sync.timeout_seconds)
        return cls(
            ledger,
            notifier,
            default_duration_days=config.vacancy.default_duration_days,
            max_publication_days=config.vacancy.max_publication_days,
        )

    @property
    def clock(self) -> Clock:
        return self._ledger.clock

    # -----------------------------------------------------------------
    # Drafts
    # -----------------------------------------------------------------

    def create_vacancy(
        self,
        employer_id: UUID,
        *,
        created_by_id: UUID | None = None,
        input_type: InputType = InputType.SELF_SERVICE,
        package_id: UUID | None = None,
        selected_upsells: Sequence[UUID | str] = (),
        **content: Any,
    ) -> UUID:
        """Create a vacancy in concept.  Returns its id."""
        self._check_content(content)

        def _create(session: Session) -> UUID:
            now = self.clock.now()
            vacancy = Vacancy(
                employer_id=employer_id,
                created_by_id=created_by_id,
                status=S.CONCEPT,
                input_type=InputType(input_type),
                package_id=package_id,
                selected_upsells=[str(u) for u in selected_upsells],
                created_at=now,
                **content,
            )
            session.add(vacancy)
            session.flush()
            PortalEventRecorder(session, self.clock).record(
                PortalEventType.VACANCY_CREATED,
                employer_id=employer_id,
                vacancy_id=vacancy.id,
                actor_user_id=created_by_id,
            )
            return vacancy.id

        vacancy_id = self._ledger.run(_create)
        logger.info(
            "vacancy_created",
            extra={"vacancy_id": str(vacancy_id), "employer_id": str(employer_id)},
        )
        return vacancy_id

    def update_draft(
        self,
        vacancy_id: UUID,
        *,
        package_id: UUID | None = None,
        selected_upsells: Sequence[UUID | str] | None = None,
        **content: Any,
    ) -> None:
        """
        Edit a vacancy that has not been charged yet (concept) or was sent
        back for changes (incompleet).  Products are fixed once charged.
        """
        self._check_content(content)

        def _update(session: Session) -> None:
            vacancy = load_vacancy(session, vacancy_id)
            if vacancy.status not in (S.CONCEPT, S.INCOMPLEET):
                raise InvalidStateTransitionError(str(vacancy_id), vacancy.status.value, "edit")
            if vacancy.status is S.INCOMPLEET and (
                package_id is not None or selected_upsells is not None
            ):
                raise InvalidStateTransitionError(
                    str(vacancy_id), vacancy.status.value, "change products of"
                )
            if package_id is not None:
                vacancy.package_id = package_id
            if selected_upsells is not None:
                vacancy.selected_upsells = [str(u) for u in selected_upsells]
            for key, val in content.items():
                setattr(vacancy, key, val)
            session.flush()

        self._ledger.run(_update)

    @staticmethod
    def _check_content(content: dict[str, Any]) -> None:
        unknown = sorted(set(content) - CONTENT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown vacancy field(s): {', '.join(unknown)}")

    # -----------------------------------------------------------------
    # Wallet resolution
    # -----------------------------------------------------------------

    def _wallet_for(self, vacancy_id: UUID, wallet_id: UUID | None) -> UUID:
        """The paying wallet: the one given, else the employer's own."""

        def _resolve(session: Session) -> UUID:
            vacancy = load_vacancy(session, vacancy_id, for_update=False)
            if wallet_id is not None:
                return wallet_id
            wallet = WalletService(session, self.clock).get_wallet_for_owner(
                OwnerType.EMPLOYER, vacancy.employer_id
            )
            if wallet is None:
                raise WalletNotFoundError(f"employer:{vacancy.employer_id}")
            return wallet.id

        return self._ledger.run(_resolve)

    # -----------------------------------------------------------------
    # Submit
    # -----------------------------------------------------------------

    def submit(
        self,
        vacancy_id: UUID,
        *,
        actor_id: UUID | None = None,
        invoice_details: InvoiceDetails | None = None,
        wallet_id: UUID | None = None,
    ) -> SubmissionResult:
        """
        Submit a concept vacancy for review, paying with credits and
        invoicing whatever the balance does not cover.

        Postconditions (on success, all in one commit):
            - wallet spent min(available, total_credits) credits FIFO.
            - one spend transaction (context vacancy) with the pricing
              breakdown and, if short, invoice amount and details snapshot.
            - one zero-cost included transaction per package-included upsell.
            - vacancy in wacht_op_goedkeuring with submitted_at set.
        """
        with LogContext.bind(vacancy_id=vacancy_id, actor_id=actor_id):
            paying_wallet = self._wallet_for(vacancy_id, wallet_id)

            def _submit(session: Session) -> SubmissionResult:
                vacancy = load_vacancy(session, vacancy_id)
                if vacancy.status is not S.CONCEPT:
                    raise InvalidStateTransitionError(
                        str(vacancy_id), vacancy.status.value, "submit"
                    )
                validate_for_submission(vacancy)
                pricing = PricingResolver(session).resolve(
                    vacancy.package_id, vacancy.selected_upsells
                )

                engine = SpendEngine(session, self.clock)
                to_spend = min(engine.available(paying_wallet), pricing.total_credits)
                expected_shortage = pricing.total_credits - to_spend
                if expected_shortage > 0:
                    missing = (invoice_details or InvoiceDetails()).missing_fields()
                    if missing:
                        raise InvoiceDetailsRequiredError(missing, shortage=expected_shortage)

                spend = engine.spend(paying_wallet, to_spend)
                shortage = pricing.total_credits - spend.consumed
                amount = invoice_amount(shortage, pricing.total_credits, pricing.total_price)

                log = TransactionLog(session, self.clock)
                spend_tx = log.record_spend(
                    wallet_id=paying_wallet,
                    credits=spend.consumed,
                    context=TransactionContext.VACANCY,
                    vacancy_id=vacancy.id,
                    employer_id=vacancy.employer_id,
                    user_id=actor_id,
                    total_credits=pricing.total_credits,
                    total_cost=pricing.total_price,
                    credits_shortage=shortage,
                    invoice_amount=amount,
                    product_ids=pricing.product_ids,
                    invoice_details=invoice_details,
                )
                included_ids = tuple(
                    log.record_included(
                        wallet_id=paying_wallet,
                        upsell_id=upsell_id,
                        vacancy_id=vacancy.id,
                        employer_id=vacancy.employer_id,
                        user_id=actor_id,
                    ).id
                    for upsell_id in pricing.included_upsell_ids
                )

                now = self.clock.now()
                set_status(vacancy, S.WACHT_OP_GOEDKEURING, "submit", self.clock)
                vacancy.submitted_at = now
                vacancy.credits_spent = spend.consumed
                vacancy.is_featured = pricing.is_featured
                vacancy.same_day_priority = pricing.same_day_priority

                PortalEventRecorder(session, self.clock).record(
                    PortalEventType.VACANCY_SUBMITTED,
                    employer_id=vacancy.employer_id,
                    vacancy_id=vacancy.id,
                    actor_user_id=actor_id,
                    payload={
                        "total_credits": pricing.total_credits,
                        "credits_consumed": spend.consumed,
                        "credits_shortage": shortage,
                        "invoice_amount": amount,
                    },
                )
                session.flush()

                return SubmissionResult(
                    vacancy_id=vacancy.id,
                    wallet_id=paying_wallet,
                    status=vacancy.status,
                    total_credits=pricing.total_credits,
                    total_price=pricing.total_price,
                    credits_consumed=spend.consumed,
                    credits_shortage=shortage,
                    invoice_amount=amount,
                    spend_transaction_id=spend_tx.id,
                    included_transaction_ids=included_ids,
                    is_featured=pricing.is_featured,
                    same_day_priority=pricing.same_day_priority,
                    balance_after=spend.balance_after,
                )

            result = self._ledger.run_for_wallet(
                paying_wallet, _submit, operation_name="vacancy_submit"
            )
            logger.info(
                "vacancy_submitted",
                extra={
                    "vacancy_id": str(vacancy_id),
                    "total_credits": result.total_credits,
                    "credits_consumed": result.credits_consumed,
                    "credits_shortage": result.credits_shortage,
                    "invoice_amount": result.invoice_amount,
                },
            )
            return result

    # -----------------------------------------------------------------
    # Review
    # -----------------------------------------------------------------

    def approve(self, vacancy_id: UUID, *, actor_id: UUID | None = None) -> VacancyState:
        """Publish a reviewed vacancy and start its run."""

        def _approve(session: Session) -> VacancyState:
            vacancy = load_vacancy(session, vacancy_id)
            set_status(vacancy, S.GEPUBLICEERD, "approve", self.clock)
            now = self.clock.now()
            if vacancy.first_published_at is None:
                vacancy.first_published_at = now
            vacancy.last_published_at = now
            if vacancy.closing_date is None:
                package = session.get(Product, vacancy.package_id) if vacancy.package_id else None
                duration = (package.duration_days if package else None) or self._default_duration_days
                vacancy.closing_date = initial_closing_date(now.date(), duration)
            vacancy.needs_sync = True
            PortalEventRecorder(session, self.clock).record(
                PortalEventType.VACANCY_PUBLISH,
                employer_id=vacancy.employer_id,
                vacancy_id=vacancy.id,
                actor_user_id=actor_id,
                source="admin",
                payload={"closing_date": vacancy.closing_date.isoformat()},
            )
            session.flush()
            return self._state(vacancy)

        state = self._ledger.run(_approve)
        logger.info("vacancy_published", extra={"vacancy_id": str(vacancy_id)})
        return self._notify(state)

    def request_changes(
        self,
        vacancy_id: UUID,
        *,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> VacancyState:
        def _request(session: Session) -> VacancyState:
            vacancy = load_vacancy(session, vacancy_id)
            set_status(vacancy, S.INCOMPLEET, "request changes for", self.clock)
            PortalEventRecorder(session, self.clock).record(
                PortalEventType.VACANCY_CHANGES_REQUESTED,
                employer_id=vacancy.employer_id,
                vacancy_id=vacancy.id,
                actor_user_id=actor_id,
                source="admin",
                payload={"reason": reason},
            )
            session.flush()
            return self._state(vacancy)

        return self._ledger.run(_request)

    def resubmit(self, vacancy_id: UUID, *, actor_id: UUID | None = None) -> VacancyState:
        """Send an incompleet vacancy back to review.  Already paid for."""

        def _resubmit(session: Session) -> VacancyState:
            vacancy = load_vacancy(session, vacancy_id)
            if vacancy.status is not S.INCOMPLEET:
                raise InvalidStateTransitionError(str(vacancy_id), vacancy.status.value, "resubmit")
            validate_for_submission(vacancy)
            set_status(vacancy, S.WACHT_OP_GOEDKEURING, "resubmit", self.clock)
            vacancy.submitted_at = self.clock.now()
            PortalEventRecorder(session, self.clock).record(
                PortalEventType.VACANCY_RESUBMITTED,
                employer_id=vacancy.employer_id,
                vacancy_id=vacancy.id,
                actor_user_id=actor_id,
            )
            session.flush()
            return self._state(vacancy)

        return self._ledger.run(_resubmit)

    # -----------------------------------------------------------------
    # Boost
    # -----------------------------------------------------------------

    def boost(
        self,
        vacancy_id: UUID,
        upsell_ids: Sequence[UUID | str],
        *,
        actor_id: UUID | None = None,
        new_closing_date: date | None = None,
        wallet_id: UUID | None = None,
    ) -> BoostResult:
        """
        Buy boost upsells for a published, expired or depublished vacancy.

        Full coverage is required.  Expired and depublished vacancies go
        back to gepubliceerd, which needs a closing date that has not passed
        (extend it with an until_max upsell and ``new_closing_date``).

        Raises:
            MissingFieldsError (no upsells), InvalidStateTransitionError,
            UnknownProductError, InvalidProductError, UpsellNotAvailableError,
            InvalidClosingDateError, InsufficientCreditsError
        """
        if not upsell_ids:
            raise MissingFieldsError(["upsell_ids"])

        with LogContext.bind(vacancy_id=vacancy_id, actor_id=actor_id):
            paying_wallet = self._wallet_for(vacancy_id, wallet_id)

            def _boost(session: Session) -> BoostResult:
                vacancy = load_vacancy(session, vacancy_id)
                if vacancy.status not in BOOSTABLE_STATUSES:
                    raise InvalidStateTransitionError(str(vacancy_id), vacancy.status.value, "boost")

                today = self.clock.today()
                pricing = PricingResolver(session).resolve(None, upsell_ids)
                upsells = [session.get(Product, pid) for pid in pricing.charged_upsell_ids]
                self._check_boost_upsells(session, vacancy, upsells)

                closing_date = vacancy.closing_date
                if new_closing_date is not None:
                    closing_date = self._extended_closing_date(
                        session, vacancy, upsells, new_closing_date
                    )

                # Back online only with time left on the clock.
                republish = vacancy.status is not S.GEPUBLICEERD
                if closing_date is not None and (
                    closing_date < today or (republish and closing_date == today)
                ):
                    raise InvalidClosingDateError(
                        closing_date,
                        "closing date has passed; extend it to boost this vacancy",
                    )

                spend = SpendEngine(session, self.clock).spend(
                    paying_wallet, pricing.total_credits, allow_shortage=False
                )
                tx = TransactionLog(session, self.clock).record_spend(
                    wallet_id=paying_wallet,
                    credits=spend.consumed,
                    context=TransactionContext.BOOST,
                    vacancy_id=vacancy.id,
                    employer_id=vacancy.employer_id,
                    user_id=actor_id,
                    total_credits=pricing.total_credits,
                    total_cost=pricing.total_price,
                    credits_shortage=0,
                    invoice_amount=Decimal("0"),
                    product_ids=pricing.charged_upsell_ids,
                )

                vacancy.selected_upsells = [
                    *vacancy.selected_upsells,
                    *(str(u) for u in pricing.charged_upsell_ids),
                ]
                vacancy.credits_spent += spend.consumed
                vacancy.is_featured = vacancy.is_featured or pricing.is_featured
                vacancy.same_day_priority = vacancy.same_day_priority or pricing.same_day_priority
                vacancy.closing_date = closing_date
                if republish:
                    set_status(vacancy, S.GEPUBLICEERD, "boost", self.clock)
                    vacancy.last_published_at = self.clock.now()
                vacancy.needs_sync = True

                PortalEventRecorder(session, self.clock).record(
                    PortalEventType.VACANCY_BOOST,
                    employer_id=vacancy.employer_id,
                    vacancy_id=vacancy.id,
                    actor_user_id=actor_id,
                    payload={
                        "upsell_ids": pricing.charged_upsell_ids,
                        "credits": spend.consumed,
                        "closing_date": closing_date.isoformat() if closing_date else None,
                        "republished": republish,
                    },
                )
                session.flush()
                return BoostResult(
                    vacancy_id=vacancy.id,
                    wallet_id=paying_wallet,
                    status=vacancy.status,
                    upsell_ids=pricing.charged_upsell_ids,
                    credits_consumed=spend.consumed,
                    closing_date=vacancy.closing_date,
                    transaction_id=tx.id,
                    balance_after=spend.balance_after,
                )

            result = self._ledger.run_for_wallet(
                paying_wallet, _boost, operation_name="vacancy_boost"
            )
            logger.info(
                "vacancy_boosted",
                extra={
                    "vacancy_id": str(vacancy_id),
                    "credits_consumed": result.credits_consumed,
                    "status": result.status.value,
                },
            )
            self._notify(
                VacancyState(
                    vacancy_id=result.vacancy_id,
                    status=result.status,
                    effective_status=result.status,
                    closing_date=result.closing_date,
                    needs_sync=True,
                )
            )
            return result

    def _repeat_context(self, session: Session, vacancy: Vacancy) -> RepeatModeContext:
        return RepeatModeContext(
            vacancy_transactions=LedgerSelector(session).vacancy_transactions(vacancy.id),
            now=self.clock.now(),
            first_published_on=(
                vacancy.first_published_at.date() if vacancy.first_published_at else None
            ),
            closing_date=vacancy.closing_date,
        )

    def _check_boost_upsells(
        self, session: Session, vacancy: Vacancy, upsells: list[Product]
    ) -> None:
        for product in upsells:
            if not product.is_available_for(ProductAvailability.BOOST_OPTION):
                raise UpsellNotAvailableError(
                    str(product.id), str(vacancy.id), "not offered as a boost option"
                )
        unique = list({p.id: p for p in upsells}.values())
        for product in unique:
            limited = product.repeat_mode not in (None, RepeatMode.UNLIMITED)
            if limited and sum(1 for p in upsells if p.id == product.id) > 1:
                raise UpsellNotAvailableError(
                    str(product.id), str(vacancy.id), "listed more than once in one boost"
                )
        for option in filter_upsells_by_repeat_mode(unique, self._repeat_context(session, vacancy)):
            if not option.visible:
                raise UpsellNotAvailableError(
                    str(option.product.id), str(vacancy.id), option.reason or "not available"
                )

    def _extended_closing_date(
        self,
        session: Session,
        vacancy: Vacancy,
        upsells: list[Product],
        requested: date,
    ) -> date:
        extension = next((p for p in upsells if p.repeat_mode is RepeatMode.UNTIL_MAX), None)
        if extension is None:
            raise InvalidClosingDateError(
                requested, "a closing-date extension upsell is required"
            )
        package = session.get(Product, vacancy.package_id) if vacancy.package_id else None
        first_published = vacancy.first_published_at or self.clock.now()
        return validate_extension(
            requested,
            first_published_on=first_published.date(),
            current_closing_date=vacancy.closing_date,
            today=self.clock.today(),
            package_duration_days=package.duration_days if package else None,
            max_publication_days=min(
                extension.max_value or self._max_publication_days,
                self._max_publication_days,
            ),
        )

    def available_boost_upsells(self, vacancy_id: UUID) -> list[BoostOption]:
        """Active boost-option upsells the vacancy may buy right now."""

        def _list(session: Session) -> list[BoostOption]:
            vacancy = load_vacancy(session, vacancy_id, for_update=False)
            products = [
                p
                for p in session.execute(
                    select(Product)
                    .where(Product.is_active.is_(True))
                    .order_by(Product.sort_order, Product.display_name)
                ).scalars()
                if p.is_available_for(ProductAvailability.BOOST_OPTION)
            ]
            package = session.get(Product, vacancy.package_id) if vacancy.package_id else None
            premium = (
                package is not None
                and package.duration_days is not None
                and package.duration_days >= self._max_publication_days
            )
            options = []
            for option in filter_upsells_by_repeat_mode(
                products, self._repeat_context(session, vacancy)
            ):
                if not option.visible:
                    continue
                if premium and option.product.repeat_mode is RepeatMode.UNTIL_MAX:
                    continue
                p = option.product
                options.append(
                    BoostOption(
                        product_id=p.id,
                        display_name=p.display_name,
                        credits=p.credits,
                        price=p.price,
                        repeat_mode=p.repeat_mode,
                        max_date=option.max_date,
                    )
                )
            return options

        return self._ledger.run(_list)

    # -----------------------------------------------------------------
    # Depublish / republish / expire
    # -----------------------------------------------------------------

    def depublish(self, vacancy_id: UUID, *, actor_id: UUID | None = None) -> VacancyState:
        """Take a published vacancy offline.  No ledger effect."""

        def _depublish(session: Session) -> VacancyState:
            vacancy = load_vacancy(session, vacancy_id)
            if vacancy.status is not S.GEPUBLICEERD:
                raise InvalidStateTransitionError(str(vacancy_id), vacancy.status.value, "depublish")
            set_status(vacancy, S.GEDEPUBLICEERD, "depublish", self.clock)
            vacancy.depublished_at = self.clock.now()
            vacancy.needs_sync = True
            PortalEventRecorder(session, self.clock).record(
                PortalEventType.VACANCY_DEPUBLISH,
                employer_id=vacancy.employer_id,
                vacancy_id=vacancy.id,
                actor_user_id=actor_id,
            )
            session.flush()
            return self._state(vacancy)

        state = self._ledger.run(_depublish)
        logger.info("vacancy_depublished", extra={"vacancy_id": str(vacancy_id)})
        return self._notify(state)

    def republish(self, vacancy_id: UUID, *, actor_id: UUID | None = None) -> VacancyState:
        """Put a depublished vacancy back online for free while it has time left."""

        def _republish(session: Session) -> VacancyState:
            vacancy = load_vacancy(session, vacancy_id)
            if vacancy.status is not S.GEDEPUBLICEERD:
                raise InvalidStateTransitionError(str(vacancy_id), vacancy.status.value, "republish")
            today = self.clock.today()
            if vacancy.closing_date is not None and vacancy.closing_date <= today:
                raise InvalidClosingDateError(
                    vacancy.closing_date,
                    "closing date has passed; boost with an extension instead",
                )
            set_status(vacancy, S.GEPUBLICEERD, "republish", self.clock)
            vacancy.last_published_at = self.clock.now()
            vacancy.needs_sync = True
            PortalEventRecorder(session, self.clock).record(
                PortalEventType.VACANCY_PUBLISH,
                employer_id=vacancy.employer_id,
                vacancy_id=vacancy.id,
                actor_user_id=actor_id,
                payload={"republished": True},
            )
            session.flush()
            return self._state(vacancy)

        state = self._ledger.run(_republish)
        logger.info("vacancy_republished", extra={"vacancy_id": str(vacancy_id)})
        return self._notify(state)

    def expire(self, vacancy_id: UUID) -> bool:
        """Persist the verlopen status if the closing date has passed."""

        def _expire(session: Session) -> bool:
            return expire_if_closed(session, load_vacancy(session, vacancy_id), self.clock)

        expired = self._ledger.run(_expire)
        if expired:
            self.notify_sync(vacancy_id)
        return expired

    # -----------------------------------------------------------------
    # Reads and sync
    # -----------------------------------------------------------------

    def state(self, vacancy_id: UUID) -> VacancyState:
        return self._ledger.run(
            lambda s: self._state(load_vacancy(s, vacancy_id, for_update=False))
        )

    def effective_status(self, vacancy_id: UUID) -> VacancyStatus:
        return self.state(vacancy_id).effective_status

    def _state(self, vacancy: Vacancy) -> VacancyState:
        return VacancyState(
            vacancy_id=vacancy.id,
            status=vacancy.status,
            effective_status=effective_status(
                vacancy.status, vacancy.closing_date, self.clock.today()
            ),
            closing_date=vacancy.closing_date,
            needs_sync=vacancy.needs_sync,
        )

    def mark_synced(self, vacancy_id: UUID) -> None:
        def _mark(session: Session) -> None:
            vacancy = load_vacancy(session, vacancy_id)
            vacancy.needs_sync = False
            session.flush()

        self._ledger.run(_mark)

    def notify_sync(self, vacancy_id: UUID) -> bool:
        """Push to the public site; clears needs_sync when acknowledged."""
        if self._notifier.notify(vacancy_id):
            self.mark_synced(vacancy_id)
            return True
        return False

    def _notify(self, state: VacancyState) -> VacancyState:
        if self.notify_sync(state.vacancy_id):
            return replace(state, needs_sync=False)
        return state
