"""
Repeat-mode filtering of upsells for one vacancy.

Products without a repeat_mode behave as ``unlimited``.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from credit_kernel.domain.calculations import publication_ceiling
from credit_kernel.domain.values import RepeatMode, TransactionRecord
from credit_kernel.models.product import Product


@dataclass(frozen=True)
class RepeatModeContext:
    # Transactions already booked on the vacancy
    vacancy_transactions: Sequence[TransactionRecord]
    now: datetime
    first_published_on: date | None = None
    closing_date: date | None = None


@dataclass(frozen=True)
class UpsellAvailability:
    product: Product
    visible: bool
    # until_max only: latest selectable closing date
    max_date: date | None = None
    reason: str | None = None


def _transactions_for(product: Product, txs: Iterable[TransactionRecord]) -> list[TransactionRecord]:
    pid = str(product.id)
    return [tx for tx in txs if pid in tx.product_ids]


def _once(product: Product, ctx: RepeatModeContext) -> UpsellAvailability:
    if _transactions_for(product, ctx.vacancy_transactions):
        return UpsellAvailability(product, False, reason="already purchased for this vacancy")
    return UpsellAvailability(product, True)


def _renewable(product: Product, ctx: RepeatModeContext) -> UpsellAvailability:
    if not product.duration_days:
        return UpsellAvailability(product, True)
    previous = _transactions_for(product, ctx.vacancy_transactions)
    if not previous:
        return UpsellAvailability(product, True)
    latest = max(previous, key=lambda tx: tx.created_at)
    effect_ends = latest.created_at + timedelta(days=product.duration_days)
    if effect_ends > ctx.now:
        return UpsellAvailability(
            product, False, reason=f"still active until {effect_ends.date().isoformat()}"
        )
    return UpsellAvailability(product, True)


def _until_max(product: Product, ctx: RepeatModeContext) -> UpsellAvailability:
    if not product.max_value or ctx.first_published_on is None:
        return UpsellAvailability(product, True)
    max_date = publication_ceiling(ctx.first_published_on, product.max_value)
    if ctx.closing_date is not None and ctx.closing_date >= max_date:
        return UpsellAvailability(product, False, max_date=max_date, reason="maximum reached")
    return UpsellAvailability(product, True, max_date=max_date)


_RULES = {
    RepeatMode.ONCE: _once,
    RepeatMode.RENEWABLE: _renewable,
    RepeatMode.UNTIL_MAX: _until_max,
}


def filter_upsells_by_repeat_mode(
    upsells: Iterable[Product],
    context: RepeatModeContext,
) -> list[UpsellAvailability]:
    results = []
    for product in upsells:
        rule = _RULES.get(product.repeat_mode) if product.repeat_mode else None
        results.append(rule(product, context) if rule else UpsellAvailability(product, True))
    return results
