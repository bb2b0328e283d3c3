"""
Typed Exception Hierarchy for the Credit Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (portal routes, the scheduled sweeper, the CLI) need to
react to errors precisely: an insufficient balance is shown to the employer
with the shortage, an unknown product is a bad request, a persistence conflict
is retried.  Every error therefore:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (shortage, missing fields, ids)

Example:
    try:
        lifecycle.boost(vacancy_id, upsell_ids=[...], actor_id=user_id)
    except InsufficientCreditsError as e:
        api_response(code=e.code, required=e.required, shortage=e.shortage)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CreditLedgerError (base)
    |
    +-- NotFoundError
    |   +-- WalletNotFoundError
    |   +-- CreditBatchNotFoundError
    |   +-- VacancyNotFoundError
    |   +-- ProductNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- MissingFieldsError
    |   +-- InvoiceDetailsRequiredError
    |   +-- UnknownProductError
    |   +-- InvalidProductError
    |   +-- UpsellNotAvailableError
    |   +-- InvalidClosingDateError
    |
    +-- InsufficientCreditsError
    |
    +-- InvalidStateTransitionError
    |
    +-- ConcurrencyError
    |   +-- PersistenceConflictError
    |
    +-- ImmutabilityViolationError
    |
    +-- PartialSweepFailure

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | WALLET_NOT_FOUND            | Wallet id doesn't exist
                | CREDIT_BATCH_NOT_FOUND      | Batch id doesn't exist
                | VACANCY_NOT_FOUND           | Vacancy id doesn't exist
                | PRODUCT_NOT_FOUND           | Product id doesn't exist (single lookup)
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_AMOUNT              | Non-positive / non-integer credit amount
                | MISSING_FIELDS              | Required vacancy fields are empty
                | INVOICE_DETAILS_REQUIRED    | Shortage without invoice details
                | UNKNOWN_PRODUCT             | Pricing referenced unknown product ids
                | INVALID_PRODUCT             | Product has the wrong type / inactive
                | UPSELL_NOT_AVAILABLE        | Upsell blocked by availability/repeat mode
                | INVALID_CLOSING_DATE        | Closing date outside the allowed range
----------------|-----------------------------|-----------------------------------------
Ledger          | INSUFFICIENT_CREDITS        | Full coverage required but balance short
----------------|-----------------------------|-----------------------------------------
Lifecycle       | INVALID_STATE_TRANSITION    | Operation not allowed in current status
----------------|-----------------------------|-----------------------------------------
Concurrency     | PERSISTENCE_CONFLICT        | Optimistic version check failed (retries
                |                             | exhausted)
----------------|-----------------------------|-----------------------------------------
Integrity       | IMMUTABILITY_VIOLATION      | Update/delete of an append-only record
----------------|-----------------------------|-----------------------------------------
Sweep           | PARTIAL_SWEEP_FAILURE       | One or more batches failed in a sweep
"""

from typing import Any, Sequence


class CreditLedgerError(Exception):
    """Base exception for all credit ledger errors."""

    code: str = "CREDIT_LEDGER_ERROR"


# Not-found errors


class NotFoundError(CreditLedgerError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class WalletNotFoundError(NotFoundError):
    """Wallet does not exist."""

    code: str = "WALLET_NOT_FOUND"

    def __init__(self, wallet_id: str):
        self.wallet_id = wallet_id
        super().__init__(f"Wallet not found: {wallet_id}")


class CreditBatchNotFoundError(NotFoundError):
    """Credit batch does not exist."""

    code: str = "CREDIT_BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Credit batch not found: {batch_id}")


class VacancyNotFoundError(NotFoundError):
    """Vacancy does not exist."""

    code: str = "VACANCY_NOT_FOUND"

    def __init__(self, vacancy_id: str):
        self.vacancy_id = vacancy_id
        super().__init__(f"Vacancy not found: {vacancy_id}")


class ProductNotFoundError(NotFoundError):
    """Product does not exist."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


# Validation errors


class ValidationError(CreditLedgerError):
    """Base exception for input that is rejected before any mutation."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Credit amount is negative, zero where forbidden, or not an integer."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class MissingFieldsError(ValidationError):
    """Required vacancy fields are empty."""

    code: str = "MISSING_FIELDS"

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")


class InvoiceDetailsRequiredError(ValidationError):
    """A shortage must be invoiced but invoice details are incomplete."""

    code: str = "INVOICE_DETAILS_REQUIRED"

    def __init__(self, missing: Sequence[str], shortage: int | None = None):
        self.missing = list(missing)
        self.shortage = shortage
        reason = (
            f"a shortage of {shortage} credits" if shortage is not None else "this purchase"
        )
        super().__init__(
            f"Invoice details required for {reason} "
            f"(missing: {', '.join(self.missing)})"
        )


class UnknownProductError(ValidationError):
    """One or more referenced product ids do not exist."""

    code: str = "UNKNOWN_PRODUCT"

    def __init__(self, product_ids: Sequence[str]):
        self.product_ids = [str(p) for p in product_ids]
        super().__init__(f"Unknown product ids: {', '.join(self.product_ids)}")


class InvalidProductError(ValidationError):
    """Product exists but cannot be used for this operation."""

    code: str = "INVALID_PRODUCT"

    def __init__(self, product_id: str, reason: str):
        self.product_id = str(product_id)
        self.reason = reason
        super().__init__(f"Invalid product {product_id}: {reason}")


class UpsellNotAvailableError(ValidationError):
    """Upsell is not offered for this vacancy (availability or repeat mode)."""

    code: str = "UPSELL_NOT_AVAILABLE"

    def __init__(self, product_id: str, vacancy_id: str, reason: str):
        self.product_id = str(product_id)
        self.vacancy_id = str(vacancy_id)
        self.reason = reason
        super().__init__(
            f"Upsell {product_id} not available for vacancy {vacancy_id}: {reason}"
        )


class InvalidClosingDateError(ValidationError):
    """Requested closing date is outside the permitted range."""

    code: str = "INVALID_CLOSING_DATE"

    def __init__(self, requested: Any, reason: str):
        self.requested = requested
        self.reason = reason
        super().__init__(f"Invalid closing date {requested}: {reason}")


# Ledger errors


class InsufficientCreditsError(CreditLedgerError):
    """Full coverage was required but the wallet balance is short."""

    code: str = "INSUFFICIENT_CREDITS"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        self.shortage = max(required - available, 0)
        super().__init__(
            f"Insufficient credits: required {required}, available {available} "
            f"(shortage {self.shortage})"
        )


# Lifecycle errors


class InvalidStateTransitionError(CreditLedgerError):
    """Operation is not permitted from the vacancy's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, vacancy_id: str, current_status: str, operation: str):
        self.vacancy_id = str(vacancy_id)
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} vacancy {vacancy_id} in status '{current_status}'"
        )


# Concurrency errors


class ConcurrencyError(CreditLedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class PersistenceConflictError(ConcurrencyError):
    """Optimistic version check on a wallet failed and retries are exhausted."""

    code: str = "PERSISTENCE_CONFLICT"

    def __init__(self, wallet_id: str, attempts: int):
        self.wallet_id = str(wallet_id)
        self.attempts = attempts
        super().__init__(
            f"Wallet {wallet_id} was modified concurrently "
            f"(gave up after {attempts} attempt(s))"
        )


# Integrity errors


class ImmutabilityViolationError(CreditLedgerError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Sweep errors


class PartialSweepFailure(CreditLedgerError):
    """
    One or more batches failed during an expiration sweep.

    The sweeper reports failures in its SweepReport and never raises this
    itself; callers that want a hard failure use SweepReport.raise_for_failures().
    """

    code: str = "PARTIAL_SWEEP_FAILURE"

    def __init__(self, report: Any):
        self.report = report
        super().__init__(
            f"Expiration sweep finished with {report.failed} failed batch(es) "
            f"out of {report.processed + report.failed}"
        )
