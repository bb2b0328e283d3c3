"""
Module: credit_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers shared by models,
    services and selectors.
Architecture position: Kernel > DB.  MUST NOT import from models/, domain/,
    services/ or selectors/.

Invariants enforced:
    - Credits are whole numbers.  Prices and invoice amounts are Decimal with
      two places; round_money() is the only sanctioned rounding function.
"""

import enum
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Enum as SAEnum, Integer, Numeric, String

# Price / invoice amount in the portal currency (EUR)
Money = Annotated[Decimal, Numeric(12, 2)]

# Whole credits
Credits = Annotated[int, Integer]

# Short identifier strings (statuses, types, contexts)
ShortCode = Annotated[str, String(50)]

# Long free text
LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    amount: Decimal | int,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary amount.

    Args:
        amount: Amount to round.
        decimal_places: Number of places to keep (0 rounds to whole units).
        rounding: Decimal rounding mode (half-up by default).
    """
    quantizer = Decimal(1).scaleb(-decimal_places)
    return Decimal(amount).quantize(quantizer, rounding=rounding)


def enum_column(enum_cls: type[enum.Enum], length: int = 30) -> SAEnum:
    """
    Column type storing a ``str`` Enum by value as VARCHAR.

    Rows read back are enum members, not bare strings.
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
