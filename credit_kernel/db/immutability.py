"""
ORM-Level Integrity Enforcement for the Credit Ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

The services maintain the ledger invariants, but a stray ``session.delete()``
or a hand-written fix-up script must not be able to rewrite credit history.
These listeners intercept flushes before SQL reaches the database:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|---------------------------------------------------------
CreditTransaction   | Never updated, never deleted
PortalEvent         | Never updated, never deleted
CreditBatch         | amount / wallet_id / expires_at / created_at frozen;
                    | remaining never increases; never deleted
Wallet              | total_purchased / total_spent never decrease;
                    | owner frozen; never deleted
Vacancy             | status moves only along ALLOWED_TRANSITIONS;
                    | never deleted after leaving concept

Bulk ``update()`` / ``delete()`` statements bypass mapper events.  The
ledger code never issues them against these tables.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from credit_kernel.exceptions import ImmutabilityViolationError
from credit_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed(target, attribute: str) -> tuple[bool, object, object]:
    """Return (changed, old, new) for a mapped attribute."""
    history = get_history(target, attribute)
    if not history.has_changes():
        return False, None, None
    old = history.deleted[0] if history.deleted else None
    new = history.added[0] if history.added else None
    return True, old, new


# ---------------------------------------------------------------------------
# Append-only records
# ---------------------------------------------------------------------------


def _check_transaction_update(mapper, connection, target):
    _blocked("CreditTransaction", target, "UPDATE", "Credit transactions are append-only")


def _check_transaction_delete(mapper, connection, target):
    _blocked("CreditTransaction", target, "DELETE", "Credit transactions are append-only")


def _check_portal_event_update(mapper, connection, target):
    _blocked("PortalEvent", target, "UPDATE", "Portal events are append-only")


def _check_portal_event_delete(mapper, connection, target):
    _blocked("PortalEvent", target, "DELETE", "Portal events are append-only")


# ---------------------------------------------------------------------------
# Credit batches
# ---------------------------------------------------------------------------

_BATCH_FROZEN_FIELDS = ("amount", "wallet_id", "expires_at", "created_at")


def _check_batch_update(mapper, connection, target):
    for field in _BATCH_FROZEN_FIELDS:
        changed, _, _ = _changed(target, field)
        if changed:
            _blocked("CreditBatch", target, "UPDATE", f"{field} is frozen after creation")

    changed, old, new = _changed(target, "remaining")
    if changed and old is not None and new is not None and new > old:
        _blocked(
            "CreditBatch",
            target,
            "UPDATE",
            f"remaining may only decrease ({old} -> {new})",
        )


def _check_batch_delete(mapper, connection, target):
    _blocked("CreditBatch", target, "DELETE", "Credit batches are never deleted")


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------


def _check_wallet_update(mapper, connection, target):
    for field in ("owner_type", "owner_id"):
        changed, _, _ = _changed(target, field)
        if changed:
            _blocked("Wallet", target, "UPDATE", f"{field} is frozen after creation")

    for field in ("total_purchased", "total_spent"):
        changed, old, new = _changed(target, field)
        if changed and old is not None and new is not None and new < old:
            _blocked("Wallet", target, "UPDATE", f"{field} may only grow ({old} -> {new})")


def _check_wallet_delete(mapper, connection, target):
    _blocked("Wallet", target, "DELETE", "Wallets are never deleted")


# ---------------------------------------------------------------------------
# Vacancies
# ---------------------------------------------------------------------------


def _check_vacancy_update(mapper, connection, target):
    from credit_kernel.domain.vacancy_status import can_transition

    changed, old, new = _changed(target, "status")
    if changed and old is not None and new is not None and old != new:
        if not can_transition(old, new):
            _blocked(
                "Vacancy",
                target,
                "UPDATE",
                f"status transition {getattr(old, 'value', old)} -> "
                f"{getattr(new, 'value', new)} is not allowed",
            )


def _check_vacancy_delete(mapper, connection, target):
    from credit_kernel.domain.values import VacancyStatus

    if target.status != VacancyStatus.CONCEPT:
        _blocked("Vacancy", target, "DELETE", "Submitted vacancies are never deleted")


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _listeners():
    from credit_kernel.models import (
        CreditBatch,
        CreditTransaction,
        PortalEvent,
        Vacancy,
        Wallet,
    )

    return (
        (CreditTransaction, "before_update", _check_transaction_update),
        (CreditTransaction, "before_delete", _check_transaction_delete),
        (PortalEvent, "before_update", _check_portal_event_update),
        (PortalEvent, "before_delete", _check_portal_event_delete),
        (CreditBatch, "before_update", _check_batch_update),
        (CreditBatch, "before_delete", _check_batch_delete),
        (Wallet, "before_update", _check_wallet_update),
        (Wallet, "before_delete", _check_wallet_delete),
        (Vacancy, "before_update", _check_vacancy_update),
        (Vacancy, "before_delete", _check_vacancy_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register all integrity listeners (idempotent).

    Call after the models are imported and before any unit of work runs.
    """
    for model, identifier, fn in _listeners():
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the integrity listeners.

    WARNING: Only use this in tests that must write an invalid state on
    purpose (e.g. to reproduce a balance inconsistency).
    """
    for model, identifier, fn in _listeners():
        if event.contains(model, identifier, fn):
            event.remove(model, identifier, fn)
