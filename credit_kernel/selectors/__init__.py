"""Read-only selectors."""

from credit_kernel.selectors.ledger_selector import LedgerSelector, WalletReconciliation

__all__ = ["LedgerSelector", "WalletReconciliation"]
