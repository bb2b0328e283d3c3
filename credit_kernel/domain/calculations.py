"""
Calculations -- calendar and invoicing arithmetic.

Pure functions, no I/O.  Used by the wallet service (batch expiry), the
vacancy lifecycle (closing dates, invoice amounts) and the upsell filters.
"""

import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal

from credit_kernel.db.types import round_money


def add_months(moment: datetime, months: int) -> datetime:
    """
    Shift a timestamp by whole calendar months.

    The day is clamped to the last day of the target month, so
    2026-01-31 + 1 month is 2026-02-28.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def invoice_amount(shortage: int, total_credits: int, total_price: Decimal) -> Decimal:
    """
    Invoice the uncovered share of a price.

    amount = round_half_up(shortage / total_credits * total_price) in whole
    currency units.  Zero when nothing is short or nothing is priced.
    """
    if shortage <= 0 or total_credits <= 0:
        return Decimal("0")
    share = Decimal(shortage) / Decimal(total_credits) * Decimal(total_price)
    return round_money(share, decimal_places=0)


def publication_ceiling(first_published: date, max_days: int) -> date:
    """Latest closing date allowed for a vacancy first published on first_published."""
    return first_published + timedelta(days=max_days)
