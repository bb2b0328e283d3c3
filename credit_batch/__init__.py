"""
credit_batch -- Background jobs for the credit ledger and vacancy lifecycle.

Provides an executor with one unit of work per item (wallet-locked where
the item names a wallet), the expiration sweeper, vacancy housekeeping
tasks and an in-process polling scheduler.

Architecture:
    credit_batch/ is a top-level package.  Nothing in credit_kernel/ or
    credit_services/ imports from credit_batch.
"""
