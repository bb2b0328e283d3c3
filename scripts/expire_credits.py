#!/usr/bin/env python3
"""
Run the credit expiration sweep (and, optionally, the background scheduler).

Usage:
    python scripts/expire_credits.py [--config portal.yaml] [--database-url URL]
    python scripts/expire_credits.py --reconcile
    python scripts/expire_credits.py --scheduler

One-shot mode sweeps once, prints the SweepReport as JSON on stdout and
exits 1 when any batch failed.  ``--reconcile`` additionally checks every
wallet's balance equation after the sweep and exits 1 on a mismatch.
``--scheduler`` runs the configured schedules in-process until interrupted.

The database URL is taken from --database-url, then CREDITS_DATABASE_URL,
then the config file.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from credit_batch.orchestrator import BatchOrchestrator
from credit_config import load_config
from credit_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url, session_scope
from credit_kernel.domain.clock import SystemClock
from credit_kernel.logging_config import configure_logging
from credit_kernel.selectors.ledger_selector import LedgerSelector


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Expire credit batches past their validity.")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--database-url", default=None, help="Overrides the configured database")
    parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Check every wallet's balance equation after sweeping",
    )
    parser.add_argument(
        "--scheduler",
        action="store_true",
        help="Run the background schedules until interrupted",
    )
    return parser.parse_args(argv)


def _reconcile(session_factory) -> list[dict]:
    """Wallets whose stored totals disagree with the log or the batches."""
    mismatches = []
    with session_scope(session_factory) as session:
        selector = LedgerSelector(session)
        for wallet_id in selector.all_wallet_ids():
            rec = selector.reconcile(wallet_id)
            if not rec.is_consistent:
                mismatches.append(
                    {
                        "walletId": str(wallet_id),
                        "balance": rec.balance,
                        "expectedBalance": rec.expected_balance,
                        "batchRemaining": rec.batch_remaining,
                        "purchasedInLog": rec.purchased_in_log,
                        "totalPurchased": rec.total_purchased,
                    }
                )
    return mismatches


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    config = load_config(args.config)

    configure_logging(level=config.logging.level)
    init_engine_from_url(
        args.database_url or config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    create_tables()
    session_factory = get_session_factory()

    orchestrator = BatchOrchestrator.from_config(config, session_factory, SystemClock())

    if args.scheduler:
        scheduler = orchestrator.create_scheduler()
        scheduler.start()
        try:
            scheduler.wait()
        except KeyboardInterrupt:
            print("Stopping scheduler...", file=sys.stderr)
        finally:
            scheduler.stop()
        return 0

    report = orchestrator.create_sweeper().sweep_expired()
    output = report.to_dict()
    exit_code = 1 if report.failed else 0

    if args.reconcile:
        mismatches = _reconcile(session_factory)
        output["reconciliation"] = {"mismatches": mismatches}
        if mismatches:
            exit_code = 1

    print(json.dumps(output, indent=2))
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
