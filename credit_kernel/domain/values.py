"""
Values -- Enumerations and immutable DTOs of the credit ledger.

Responsibility:
    Names every status, type and context string stored in the ledger tables,
    and defines the frozen result objects services hand back to callers.
    Services return these DTOs, never live ORM instances, so results remain
    valid after the unit of work's session is closed.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID


class OwnerType(str, Enum):
    """Who a wallet belongs to: an employer or an intermediary user."""

    EMPLOYER = "employer"
    USER = "user"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    SPEND = "spend"
    EXPIRATION = "expiration"


class TransactionContext(str, Enum):
    """
    Where a transaction originated.

    Spend contexts: VACANCY, BOOST, INCLUDED, RENEW.
    Purchase contexts: DASHBOARD, VACANCY, BOOST, RENEW, TRANSACTIONS.
    """

    VACANCY = "vacancy"
    BOOST = "boost"
    INCLUDED = "included"
    RENEW = "renew"
    DASHBOARD = "dashboard"
    TRANSACTIONS = "transactions"


class TransactionStatus(str, Enum):
    """OPEN means an invoice is still outstanding for the transaction."""

    PAID = "paid"
    OPEN = "open"


class VacancyStatus(str, Enum):
    CONCEPT = "concept"
    INCOMPLEET = "incompleet"
    WACHT_OP_GOEDKEURING = "wacht_op_goedkeuring"
    GEPUBLICEERD = "gepubliceerd"
    VERLOPEN = "verlopen"
    GEDEPUBLICEERD = "gedepubliceerd"


class InputType(str, Enum):
    SELF_SERVICE = "self_service"
    WE_DO_IT_FOR_YOU = "we_do_it_for_you"


class ProductType(str, Enum):
    VACANCY_PACKAGE = "vacancy_package"
    CREDIT_BUNDLE = "credit_bundle"
    UPSELL = "upsell"


class ProductAvailability(str, Enum):
    VACANCY_CREATION = "vacancy-creation"
    BOOST_OPTION = "boost-option"


class RepeatMode(str, Enum):
    """
    How often an upsell may be bought for one vacancy.

    ONCE       -- at most once per vacancy
    UNLIMITED  -- always available
    RENEWABLE  -- again once the previous purchase's duration has elapsed
    UNTIL_MAX  -- until the closing date reaches first publication + max_value days
    """

    ONCE = "once"
    UNLIMITED = "unlimited"
    RENEWABLE = "renewable"
    UNTIL_MAX = "until_max"


class PortalEventType(str, Enum):
    WALLET_CREATED = "wallet_created"
    CREDITS_PURCHASED = "credits_purchased"
    CREDITS_EXPIRED = "credits_expired"
    VACANCY_CREATED = "vacancy_created"
    VACANCY_SUBMITTED = "vacancy_submitted"
    VACANCY_RESUBMITTED = "vacancy_resubmitted"
    VACANCY_CHANGES_REQUESTED = "vacancy_changes_requested"
    VACANCY_PUBLISH = "vacancy_publish"
    VACANCY_DEPUBLISH = "vacancy_depublish"
    VACANCY_BOOST = "vacancy_boost"
    VACANCY_EXPIRED = "vacancy_expired"


# ---------------------------------------------------------------------------
# Invoice details
# ---------------------------------------------------------------------------

INVOICE_REQUIRED_FIELDS: tuple[str, ...] = (
    "contact_name",
    "email",
    "street",
    "postal_code",
    "city",
)


@dataclass(frozen=True, slots=True)
class InvoiceDetails:
    """
    Billing address captured when a shortage (or a bundle) is invoiced.

    A snapshot of these fields is stored on the transaction so later edits
    to the employer's billing profile do not rewrite history.
    """

    contact_name: str = ""
    email: str = ""
    street: str = ""
    postal_code: str = ""
    city: str = ""
    reference_nr: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> InvoiceDetails | None:
        if data is None:
            return None
        return cls(
            contact_name=str(data.get("contact_name") or "").strip(),
            email=str(data.get("email") or "").strip(),
            street=str(data.get("street") or "").strip(),
            postal_code=str(data.get("postal_code") or "").strip(),
            city=str(data.get("city") or "").strip(),
            reference_nr=(str(data["reference_nr"]).strip() or None)
            if data.get("reference_nr")
            else None,
        )

    def missing_fields(self) -> list[str]:
        return [f for f in INVOICE_REQUIRED_FIELDS if not getattr(self, f).strip()]

    def to_snapshot(self) -> dict[str, str | None]:
        return {
            "contact_name": self.contact_name,
            "email": self.email,
            "street": self.street,
            "postal_code": self.postal_code,
            "city": self.city,
            "reference_nr": self.reference_nr,
        }


# ---------------------------------------------------------------------------
# Ledger results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WalletSnapshot:
    id: UUID
    owner_type: OwnerType
    owner_id: UUID
    balance: int
    total_purchased: int
    total_spent: int
    version: int


@dataclass(frozen=True, slots=True)
class BatchConsumption:
    """Credits taken from one batch during a spend."""

    batch_id: UUID
    consumed: int
    remaining_after: int


@dataclass(frozen=True, slots=True)
class SpendResult:
    """
    Outcome of a FIFO spend.

    Guarantees:
        - consumed + shortage == requested
        - consumed == sum(b.consumed for b in batches_touched)
        - batches_touched is in consumption (oldest-first) order
    """

    wallet_id: UUID
    requested: int
    consumed: int
    shortage: int
    batches_touched: tuple[BatchConsumption, ...] = field(default_factory=tuple)
    balance_after: int = 0

    @property
    def is_fully_covered(self) -> bool:
        return self.shortage == 0


@dataclass(frozen=True, slots=True)
class PurchaseResult:
    wallet_id: UUID
    batch_id: UUID
    transaction_id: UUID
    credits: int
    expires_at: datetime
    balance_after: int


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """Read model of one ledger transaction."""

    id: UUID
    wallet_id: UUID
    transaction_type: TransactionType
    context: TransactionContext | None
    credits_amount: int
    status: TransactionStatus
    created_at: datetime
    vacancy_id: UUID | None = None
    batch_id: UUID | None = None
    total_credits: int | None = None
    credits_shortage: int | None = None
    invoice_amount: Decimal | None = None
    product_ids: tuple[str, ...] = ()
