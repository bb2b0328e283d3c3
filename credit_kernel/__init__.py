"""
Credit Kernel

Prepaid credit ledger for the employer portal:
- Wallets with batch-level expiration
- Deterministic oldest-first (FIFO) consumption
- Append-only transaction log
- Per-wallet serialized units of work
"""

__version__ = "0.1.0"
