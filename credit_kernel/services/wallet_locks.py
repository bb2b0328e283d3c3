"""
WalletLockRegistry -- named in-process locks, one per wallet.

Responsibility:
    Serializes units of work that touch the same wallet.  The lock is held
    from the first read of the wallet's batches until after commit, which
    is what makes a FIFO spend exactly-once: two concurrent spends can
    never both read the same remaining credits.

Architecture position:
    Kernel > Services.  Used by CreditLedger and the expiration tasks.

Non-goals:
    Cross-process exclusion.  On PostgreSQL, SELECT ... FOR UPDATE on the
    wallet row and the wallet's version_id_col cover other processes.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from credit_kernel.logging_config import get_logger

logger = get_logger("services.wallet_locks")


class WalletLockRegistry:
    """Hands out one re-entrant lock per wallet id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, wallet_id: UUID | str) -> threading.RLock:
        key = str(wallet_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, wallet_id: UUID | str) -> Iterator[None]:
        """Hold the wallet's lock for the duration of the block."""
        lock = self.lock_for(wallet_id)
        lock.acquire()
        logger.debug("wallet_lock_acquired", extra={"wallet_id": str(wallet_id)})
        try:
            yield
        finally:
            lock.release()
            logger.debug("wallet_lock_released", extra={"wallet_id": str(wallet_id)})

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Process-wide registry shared by the ledger and the sweeper
default_wallet_locks = WalletLockRegistry()
