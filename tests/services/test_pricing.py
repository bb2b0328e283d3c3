"""
Tests for PricingResolver.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from credit_kernel.db.engine import session_scope
from credit_kernel.domain.values import ProductType
from credit_kernel.exceptions import InvalidProductError, UnknownProductError
from credit_services.pricing import PricingResolver
from tests.conftest import make_product


def _resolve(session_factory, package_id, upsell_ids=()):
    with session_scope(session_factory) as session:
        return PricingResolver(session).resolve(package_id, upsell_ids)


class TestPackagePricing:
    def test_package_only(self, session_factory, catalog):
        res = _resolve(session_factory, catalog.plus)
        assert res.total_credits == 16
        assert res.total_price == Decimal("160.00")
        assert res.charged_upsell_ids == ()
        assert res.package_duration_days == 60
        assert res.product_ids == (catalog.plus,)

    def test_package_with_upsells(self, session_factory, catalog):
        res = _resolve(session_factory, catalog.plus, [catalog.top, catalog.spotlight])
        assert res.total_credits == 16 + 2 + 4
        assert res.total_price == Decimal("220.00")
        assert res.charged_upsell_ids == (catalog.top, catalog.spotlight)
        assert res.is_featured
        assert res.same_day_priority

    def test_string_ids_accepted(self, session_factory, catalog):
        res = _resolve(session_factory, str(catalog.plus), [str(catalog.top)])
        assert res.total_credits == 18

    def test_duplicate_upsell_charged_per_occurrence(self, session_factory, catalog):
        res = _resolve(session_factory, catalog.plus, [catalog.top, catalog.top])
        assert res.total_credits == 20


class TestIncludedUpsells:
    def test_included_upsell_is_free(self, session_factory, catalog):
        res = _resolve(session_factory, catalog.basis, [catalog.social])
        assert res.total_credits == 10
        assert res.total_price == Decimal("100.00")
        assert res.charged_upsell_ids == ()
        assert res.included_upsell_ids == (catalog.social,)

    def test_included_upsell_listed_without_selection(self, session_factory, catalog):
        res = _resolve(session_factory, catalog.basis)
        assert res.included_upsell_ids == (catalog.social,)

    def test_included_flags_apply(self, session_factory, catalog):
        featured = make_product(
            session_factory,
            product_type=ProductType.UPSELL,
            display_name="Homepage",
            credits=3,
            price=Decimal("30.00"),
            sets_featured=True,
        )
        pkg = make_product(
            session_factory,
            product_type=ProductType.VACANCY_PACKAGE,
            display_name="Featured pkg",
            credits=12,
            price=Decimal("120.00"),
            included_upsell_ids=[str(featured)],
        )
        res = _resolve(session_factory, pkg)
        assert res.is_featured
        assert res.total_credits == 12


class TestUpsellOnly:
    def test_boost_pricing_without_package(self, session_factory, catalog):
        res = _resolve(session_factory, None, [catalog.top, catalog.extend])
        assert res.package_id is None
        assert res.total_credits == 5
        assert res.total_price == Decimal("50.00")
        assert res.product_ids == (catalog.top, catalog.extend)

    def test_nothing_selected(self, session_factory):
        res = _resolve(session_factory, None, [])
        assert res.total_credits == 0
        assert res.total_price == Decimal("0")


class TestPricingErrors:
    def test_unknown_upsell_fails_whole_resolution(self, session_factory, catalog):
        missing = uuid4()
        with pytest.raises(UnknownProductError) as exc_info:
            _resolve(session_factory, catalog.plus, [catalog.top, missing])
        assert str(missing) in str(exc_info.value)

    def test_unknown_package(self, session_factory):
        with pytest.raises(UnknownProductError):
            _resolve(session_factory, uuid4())

    def test_bundle_is_not_a_package(self, session_factory, catalog):
        with pytest.raises(InvalidProductError):
            _resolve(session_factory, catalog.bundle)

    def test_package_is_not_an_upsell(self, session_factory, catalog):
        with pytest.raises(InvalidProductError):
            _resolve(session_factory, catalog.plus, [catalog.basis])

    def test_inactive_upsell_rejected(self, session_factory, catalog):
        retired = make_product(
            session_factory,
            product_type=ProductType.UPSELL,
            display_name="Retired",
            credits=1,
            price=Decimal("10.00"),
            is_active=False,
        )
        with pytest.raises(InvalidProductError):
            _resolve(session_factory, catalog.plus, [retired])
