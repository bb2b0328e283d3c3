"""
Pytest fixtures for the credit ledger test suite.

Provides:
- A file-backed SQLite database per test (one connection per session, so
  units of work are isolated the way they are on PostgreSQL)
- A DeterministicClock shared by every service under test
- Ledger / lifecycle wiring and a small product catalogue

Every fixture that writes goes through ``session_scope`` and commits, so
assertions always read committed state in a fresh session.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

import credit_kernel.models  # noqa: F401  (populates Base.metadata)
from credit_kernel.db.base import Base
from credit_kernel.db.engine import session_scope
from credit_kernel.db.immutability import register_immutability_listeners
from credit_kernel.domain.clock import DeterministicClock
from credit_kernel.domain.values import (
    InvoiceDetails,
    OwnerType,
    ProductAvailability,
    ProductType,
    RepeatMode,
)
from credit_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from credit_kernel.models.product import Product
from credit_kernel.services.credit_ledger import CreditLedger
from credit_kernel.services.wallet_locks import WalletLockRegistry
from credit_services.vacancy_lifecycle import VacancyLifecycle

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)

TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture credit_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.spend(wallet_id, 5)
            assert any(r["message"] == "spend_completed" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("credit_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(fixed_time=T0)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def locks() -> WalletLockRegistry:
    return WalletLockRegistry()


@pytest.fixture
def ledger(session_factory, clock, locks) -> CreditLedger:
    return CreditLedger(session_factory, clock=clock, locks=locks)


class RecordingNotifier:
    """Sync notifier that remembers every vacancy it was told about."""

    def __init__(self, acknowledge: bool = True):
        self.acknowledge = acknowledge
        self.notified: list[UUID] = []

    def notify(self, vacancy_id: UUID) -> bool:
        self.notified.append(vacancy_id)
        return self.acknowledge


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def lifecycle(ledger, notifier) -> VacancyLifecycle:
    return VacancyLifecycle(ledger, notifier)


@pytest.fixture
def employer_id() -> UUID:
    return uuid4()


@pytest.fixture
def wallet(ledger, employer_id):
    return ledger.open_wallet(OwnerType.EMPLOYER, employer_id)


@pytest.fixture
def invoice_details() -> InvoiceDetails:
    return InvoiceDetails(
        contact_name="J. de Vries",
        email="facturen@example.nl",
        street="Stationsplein 1",
        postal_code="1012 AB",
        city="Amsterdam",
        reference_nr="PO-2026-001",
    )


# =============================================================================
# Product catalogue
# =============================================================================


def make_product(session_factory, **fields) -> UUID:
    fields.setdefault("is_active", True)
    with session_scope(session_factory) as session:
        product = Product(**fields)
        session.add(product)
        session.flush()
        return product.id


@dataclass
class Catalog:
    basis: UUID  # 10 credits, includes `social`
    plus: UUID  # 16 credits
    premium: UUID  # runs the full 365 days
    social: UUID  # included in basis
    top: UUID  # renewable boost, featured
    extend: UUID  # until_max closing-date extension
    spotlight: UUID  # once-only boost, same-day
    bundle: UUID  # 50-credit bundle
    extra: dict[str, UUID] = field(default_factory=dict)


BOTH = [ProductAvailability.VACANCY_CREATION.value, ProductAvailability.BOOST_OPTION.value]


@pytest.fixture
def catalog(session_factory) -> Catalog:
    social = make_product(
        session_factory,
        product_type=ProductType.UPSELL,
        display_name="Social media push",
        credits=5,
        price=Decimal("50.00"),
        availability=[ProductAvailability.VACANCY_CREATION.value],
        repeat_mode=RepeatMode.ONCE,
    )
    top = make_product(
        session_factory,
        product_type=ProductType.UPSELL,
        display_name="Top of list",
        credits=2,
        price=Decimal("20.00"),
        availability=BOTH,
        repeat_mode=RepeatMode.RENEWABLE,
        duration_days=7,
        sets_featured=True,
    )
    extend = make_product(
        session_factory,
        product_type=ProductType.UPSELL,
        display_name="Extend closing date",
        credits=3,
        price=Decimal("30.00"),
        availability=[ProductAvailability.BOOST_OPTION.value],
        repeat_mode=RepeatMode.UNTIL_MAX,
        max_value=365,
    )
    spotlight = make_product(
        session_factory,
        product_type=ProductType.UPSELL,
        display_name="Spotlight",
        credits=4,
        price=Decimal("40.00"),
        availability=BOTH,
        repeat_mode=RepeatMode.ONCE,
        sets_same_day=True,
    )
    basis = make_product(
        session_factory,
        product_type=ProductType.VACANCY_PACKAGE,
        display_name="Basis",
        credits=10,
        price=Decimal("100.00"),
        duration_days=30,
        included_upsell_ids=[str(social)],
    )
    plus = make_product(
        session_factory,
        product_type=ProductType.VACANCY_PACKAGE,
        display_name="Plus",
        credits=16,
        price=Decimal("160.00"),
        duration_days=60,
    )
    premium = make_product(
        session_factory,
        product_type=ProductType.VACANCY_PACKAGE,
        display_name="Premium",
        credits=40,
        price=Decimal("400.00"),
        duration_days=365,
    )
    bundle = make_product(
        session_factory,
        product_type=ProductType.CREDIT_BUNDLE,
        display_name="Bundle 50",
        credits=50,
        price=Decimal("450.00"),
        validity_months=12,
    )
    return Catalog(
        basis=basis,
        plus=plus,
        premium=premium,
        social=social,
        top=top,
        extend=extend,
        spotlight=spotlight,
        bundle=bundle,
    )


VACANCY_CONTENT = {
    "title": "Backend developer",
    "intro_txt": "Join our platform team.",
    "description": "Python, PostgreSQL and a lot of coffee.",
    "location": "Utrecht",
    "region_id": "utrecht",
    "sector_id": "ict",
    "function_type_id": "development",
    "apply_url": "https://jobs.example.nl/backend",
}


@pytest.fixture
def make_vacancy(lifecycle, employer_id):
    """Create a complete concept vacancy for the employer."""

    def _make(package_id=None, upsells=(), **overrides):
        content = {**VACANCY_CONTENT, **overrides}
        return lifecycle.create_vacancy(
            employer_id,
            created_by_id=TEST_ACTOR_ID,
            package_id=package_id,
            selected_upsells=upsells,
            **content,
        )

    return _make


@pytest.fixture
def fund(ledger, clock):
    """Purchase credits into a wallet, advancing the clock so batches order strictly."""

    def _fund(wallet_id, credits, validity_months=12):
        result = ledger.purchase(wallet_id, credits, validity_months)
        clock.tick()
        return result

    return _fund
