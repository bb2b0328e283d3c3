"""ORM models of the credit kernel."""

from credit_kernel.models.credit_batch import CreditBatch
from credit_kernel.models.credit_transaction import CreditTransaction
from credit_kernel.models.portal_event import PortalEvent
from credit_kernel.models.product import Product
from credit_kernel.models.vacancy import Vacancy
from credit_kernel.models.wallet import Wallet

__all__ = [
    "CreditBatch",
    "CreditTransaction",
    "PortalEvent",
    "Product",
    "Vacancy",
    "Wallet",
]

# Append-only and transition guards apply to every session, however the schema was created.
from credit_kernel.db.immutability import register_immutability_listeners  # noqa: E402

register_immutability_listeners()
