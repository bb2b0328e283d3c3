"""
Tests for the one-shot sweep entry point (scripts/expire_credits.py).
"""

import json

import pytest

from credit_kernel.db.engine import reset_engine, session_scope
from credit_kernel.models.wallet import Wallet
from scripts.expire_credits import main


@pytest.fixture
def database_url(engine, monkeypatch):
    """The test database, addressed by URL the way an operator would."""
    monkeypatch.delenv("CREDITS_DATABASE_URL", raising=False)
    monkeypatch.delenv("CREDITS_CONFIG", raising=False)
    monkeypatch.delenv("CREDITS_SYNC_WEBHOOK_URL", raising=False)
    yield str(engine.url)
    reset_engine()


class TestOneShot:
    def test_empty_database(self, database_url, capsys):
        assert main(["--database-url", database_url]) == 0
        assert json.loads(capsys.readouterr().out) == {
            "processed": 0,
            "failed": 0,
            "totalExpired": 0,
            "errors": [],
        }

    def test_sweeps_expired_and_reconciles(self, database_url, wallet, fund, capsys):
        # the fixture clock sits at 2026-01-01, so a one-month batch is long expired
        fund(wallet.id, 10, validity_months=1)

        assert main(["--database-url", database_url, "--reconcile"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["processed"] == 1
        assert output["totalExpired"] == 10
        assert output["reconciliation"] == {"mismatches": []}

    def test_reconcile_reports_mismatch(self, database_url, wallet, fund, session_factory, capsys):
        fund(wallet.id, 10)
        with session_scope(session_factory) as session:
            session.get(Wallet, wallet.id).balance = 7

        assert main(["--database-url", database_url, "--reconcile"]) == 1

        [mismatch] = json.loads(capsys.readouterr().out)["reconciliation"]["mismatches"]
        assert mismatch["walletId"] == str(wallet.id)
        assert mismatch["balance"] == 7
        assert mismatch["expectedBalance"] == 10
        assert mismatch["batchRemaining"] == 10
