"""Write services of the credit kernel (flush-only) and the CreditLedger unit of work."""

from credit_kernel.services.credit_ledger import CreditLedger
from credit_kernel.services.portal_events import PortalEventRecorder
from credit_kernel.services.spend_engine import SpendEngine
from credit_kernel.services.transaction_log import TransactionLog
from credit_kernel.services.wallet_locks import WalletLockRegistry, default_wallet_locks
from credit_kernel.services.wallet_service import WalletService

__all__ = [
    "CreditLedger",
    "PortalEventRecorder",
    "SpendEngine",
    "TransactionLog",
    "WalletLockRegistry",
    "WalletService",
    "default_wallet_locks",
]
