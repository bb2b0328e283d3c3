"""
Vacancy status rules -- the transition table and derived expiry.

Responsibility:
    Single source of truth for which status changes a vacancy may make.  The
    lifecycle service checks it before acting and the ORM listener in
    db/immutability.py re-checks it on every flush, so no code path can write
    an illegal transition.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from datetime import date

from credit_kernel.domain.values import VacancyStatus

S = VacancyStatus

ALLOWED_TRANSITIONS: dict[VacancyStatus, frozenset[VacancyStatus]] = {
    S.CONCEPT: frozenset({S.WACHT_OP_GOEDKEURING}),
    S.INCOMPLEET: frozenset({S.WACHT_OP_GOEDKEURING}),
    S.WACHT_OP_GOEDKEURING: frozenset({S.GEPUBLICEERD, S.INCOMPLEET}),
    S.GEPUBLICEERD: frozenset({S.GEDEPUBLICEERD, S.VERLOPEN}),
    S.VERLOPEN: frozenset({S.GEPUBLICEERD}),
    S.GEDEPUBLICEERD: frozenset({S.GEPUBLICEERD}),
}

BOOSTABLE_STATUSES: frozenset[VacancyStatus] = frozenset(
    {S.GEPUBLICEERD, S.VERLOPEN, S.GEDEPUBLICEERD}
)

# Once a vacancy leaves concept its credits are spent and the row is kept.
SUBMITTED_STATUSES: frozenset[VacancyStatus] = frozenset(S) - {S.CONCEPT}


def can_transition(current: VacancyStatus | str, target: VacancyStatus | str) -> bool:
    return VacancyStatus(target) in ALLOWED_TRANSITIONS[VacancyStatus(current)]


def effective_status(
    status: VacancyStatus | str,
    closing_date: date | None,
    today: date,
) -> VacancyStatus:
    """
    Status as the portal should present it today.

    A published vacancy whose closing date is in the past reads as
    ``verlopen`` even before the background task persists the change.
    """
    status = VacancyStatus(status)
    if status is S.GEPUBLICEERD and closing_date is not None and closing_date < today:
        return S.VERLOPEN
    return status
