"""
Tests for CreditLedger's unit-of-work and conflict retry.
"""

from uuid import uuid4

import pytest
from sqlalchemy.orm.exc import StaleDataError

from credit_config.schema import LedgerSettings, PortalConfig
from credit_kernel.exceptions import InvalidAmountError, PersistenceConflictError
from credit_kernel.models.wallet import Wallet
from credit_kernel.services.credit_ledger import CreditLedger
from credit_kernel.services.wallet_locks import WalletLockRegistry, default_wallet_locks


class _FlakyOperation:
    """Raises StaleDataError on the first ``failures`` calls, then bumps the balance."""

    def __init__(self, wallet_id, failures):
        self.wallet_id = wallet_id
        self.failures = failures
        self.calls = 0

    def __call__(self, session):
        self.calls += 1
        wallet = session.get(Wallet, self.wallet_id)
        wallet.balance += 1
        if self.calls <= self.failures:
            raise StaleDataError("simulated concurrent update")
        return wallet.balance


class TestRunForWallet:
    def test_retries_after_version_conflict(self, ledger, wallet):
        op = _FlakyOperation(wallet.id, failures=2)

        result = ledger.run_for_wallet(wallet.id, op)

        assert op.calls == 3
        # Failed attempts were rolled back: only the last increment stuck.
        assert result == 1
        assert ledger.wallet(wallet.id).balance == 1

    def test_gives_up_after_max_attempts(self, ledger, wallet):
        op = _FlakyOperation(wallet.id, failures=10)

        with pytest.raises(PersistenceConflictError) as exc_info:
            ledger.run_for_wallet(wallet.id, op, operation_name="flaky")

        assert op.calls == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.wallet_id == str(wallet.id)
        assert ledger.wallet(wallet.id).balance == 0

    def test_conflict_is_logged(self, ledger, wallet, captured_logs):
        ledger.run_for_wallet(wallet.id, _FlakyOperation(wallet.id, failures=1))
        conflicts = [r for r in captured_logs() if r["message"] == "wallet_version_conflict"]
        assert len(conflicts) == 1
        assert conflicts[0]["attempt"] == 1

    def test_domain_errors_are_not_retried(self, ledger, wallet):
        calls = []

        def op(session):
            calls.append(1)
            raise InvalidAmountError("credits", -1, "must be positive")

        with pytest.raises(InvalidAmountError):
            ledger.run_for_wallet(wallet.id, op)
        assert len(calls) == 1

    def test_single_attempt_ledger(self, session_factory, clock, wallet):
        strict = CreditLedger(session_factory, clock=clock, max_attempts=1)
        with pytest.raises(PersistenceConflictError):
            strict.run_for_wallet(wallet.id, _FlakyOperation(wallet.id, failures=1))

    def test_rejects_zero_attempts(self, session_factory):
        with pytest.raises(ValueError):
            CreditLedger(session_factory, max_attempts=0)


class TestWalletLookup:
    def test_wallet_for_owner(self, ledger, wallet, employer_id):
        found = ledger.wallet_for_owner("employer", employer_id)
        assert found.id == wallet.id

    def test_wallet_for_unknown_owner(self, ledger):
        assert ledger.wallet_for_owner("employer", uuid4()) is None


class TestConstruction:
    def test_keeps_an_empty_lock_registry(self, session_factory):
        registry = WalletLockRegistry()
        assert len(registry) == 0
        assert CreditLedger(session_factory, locks=registry).locks is registry

    def test_process_registry_by_default(self, session_factory):
        assert CreditLedger(session_factory).locks is default_wallet_locks

    def test_from_config_uses_ledger_settings(self, session_factory, clock, locks, wallet):
        config = PortalConfig(
            ledger=LedgerSettings(max_conflict_retries=2, default_validity_months=2)
        )
        configured = CreditLedger.from_config(config, session_factory, clock=clock, locks=locks)

        assert configured.locks is locks
        purchase = configured.purchase(wallet.id, 5)
        assert (purchase.expires_at.year, purchase.expires_at.month) == (2026, 3)

        op = _FlakyOperation(wallet.id, failures=10)
        with pytest.raises(PersistenceConflictError):
            configured.run_for_wallet(wallet.id, op)
        assert op.calls == 2
