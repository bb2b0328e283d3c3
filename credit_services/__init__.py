"""
credit_services -- Package init and public API.

Responsibility:
    Portal-facing orchestration over credit_kernel: pricing of packages and
    upsells, submission validation, closing-date and repeat-mode rules, and
    the vacancy lifecycle that ties status changes to ledger spends.

Architecture position:
    Services.
        credit_services/ -> credit_kernel/  (allowed)
        credit_kernel/   -> credit_services/ (FORBIDDEN)
"""

from credit_kernel.logging_config import get_logger

logger = get_logger("services")

from credit_services.pricing import PricingResolution, PricingResolver
from credit_services.sync_notifier import (
    NullSyncNotifier,
    SyncNotifier,
    WebhookSyncNotifier,
    build_sync_notifier,
)
from credit_services.vacancy_lifecycle import (
    BoostOption,
    BoostResult,
    SubmissionResult,
    VacancyLifecycle,
    VacancyState,
)

__all__ = [
    "BoostOption",
    "BoostResult",
    "NullSyncNotifier",
    "PricingResolution",
    "PricingResolver",
    "SubmissionResult",
    "SyncNotifier",
    "VacancyLifecycle",
    "VacancyState",
    "WebhookSyncNotifier",
    "build_sync_notifier",
]
