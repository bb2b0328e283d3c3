"""
Tests for the ORM integrity listeners.

Each test tries to rewrite history through a plain session and expects the
flush to be refused before any SQL is sent.
"""

import importlib
from datetime import timedelta

import pytest
from sqlalchemy import event, select

import credit_kernel.models
from credit_kernel.db.engine import session_scope
from credit_kernel.db.immutability import (
    _check_transaction_update,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from credit_kernel.domain.values import VacancyStatus
from credit_kernel.exceptions import ImmutabilityViolationError
from credit_kernel.models.credit_batch import CreditBatch
from credit_kernel.models.credit_transaction import CreditTransaction
from credit_kernel.models.portal_event import PortalEvent
from credit_kernel.models.vacancy import Vacancy
from credit_kernel.models.wallet import Wallet


def _attempt(session_factory, fn):
    with pytest.raises(ImmutabilityViolationError) as exc_info:
        with session_scope(session_factory) as session:
            fn(session)
    return exc_info.value


class TestAppendOnlyRecords:
    def test_transaction_cannot_be_updated(self, session_factory, ledger, wallet):
        purchase = ledger.purchase(wallet.id, 5)

        def _edit(session):
            session.get(CreditTransaction, purchase.transaction_id).credits_amount = 500

        exc = _attempt(session_factory, _edit)
        assert exc.entity_type == "CreditTransaction"

    def test_transaction_cannot_be_deleted(self, session_factory, ledger, wallet):
        purchase = ledger.purchase(wallet.id, 5)
        _attempt(
            session_factory,
            lambda s: s.delete(s.get(CreditTransaction, purchase.transaction_id)),
        )

    def test_portal_event_cannot_be_deleted(self, session_factory, wallet):
        def _delete(session):
            event = session.execute(select(PortalEvent)).scalars().first()
            session.delete(event)

        _attempt(session_factory, _delete)


class TestBatchRules:
    def test_remaining_cannot_grow(self, session_factory, ledger, wallet):
        purchase = ledger.purchase(wallet.id, 5)
        ledger.spend(wallet.id, 2)

        def _refill(session):
            session.get(CreditBatch, purchase.batch_id).remaining = 5

        _attempt(session_factory, _refill)

    def test_expiry_is_frozen(self, session_factory, ledger, wallet):
        purchase = ledger.purchase(wallet.id, 5)

        def _extend(session):
            batch = session.get(CreditBatch, purchase.batch_id)
            batch.expires_at = batch.expires_at + timedelta(days=30)

        _attempt(session_factory, _extend)

    def test_remaining_may_decrease(self, session_factory, ledger, wallet):
        purchase = ledger.purchase(wallet.id, 5)
        with session_scope(session_factory) as session:
            session.get(CreditBatch, purchase.batch_id).remaining = 0


class TestWalletRules:
    def test_totals_never_decrease(self, session_factory, ledger, wallet):
        ledger.purchase(wallet.id, 5)

        def _shrink(session):
            session.get(Wallet, wallet.id).total_purchased = 0

        _attempt(session_factory, _shrink)

    def test_wallet_cannot_be_deleted(self, session_factory, wallet):
        _attempt(session_factory, lambda s: s.delete(s.get(Wallet, wallet.id)))


class TestVacancyRules:
    def test_illegal_status_jump(self, session_factory, make_vacancy, catalog):
        vacancy_id = make_vacancy(catalog.plus)

        def _jump(session):
            session.get(Vacancy, vacancy_id).status = VacancyStatus.GEPUBLICEERD

        exc = _attempt(session_factory, _jump)
        assert "concept -> gepubliceerd" in exc.reason

    def test_concept_may_be_deleted(self, session_factory, make_vacancy, catalog):
        vacancy_id = make_vacancy(catalog.plus)
        with session_scope(session_factory) as session:
            session.delete(session.get(Vacancy, vacancy_id))
        with session_scope(session_factory) as session:
            assert session.get(Vacancy, vacancy_id) is None

    def test_submitted_vacancy_is_kept(
        self, session_factory, lifecycle, make_vacancy, fund, wallet, catalog
    ):
        fund(wallet.id, 16)
        vacancy_id = make_vacancy(catalog.plus)
        lifecycle.submit(vacancy_id)

        _attempt(session_factory, lambda s: s.delete(s.get(Vacancy, vacancy_id)))


class TestRegistration:
    def test_importing_models_installs_guards(self):
        unregister_immutability_listeners()
        try:
            assert not event.contains(CreditTransaction, "before_update", _check_transaction_update)
            importlib.reload(credit_kernel.models)
            assert event.contains(CreditTransaction, "before_update", _check_transaction_update)
        finally:
            register_immutability_listeners()
