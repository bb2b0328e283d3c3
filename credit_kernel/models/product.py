"""
Module: credit_kernel.models.product
Responsibility: ORM persistence for the product catalogue: vacancy packages,
    credit bundles and upsells, with their credit prices and the behaviour
    flags the pricing resolver and the vacancy lifecycle read.
Architecture position: Kernel > Models.  May import from db/ and domain/values.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from credit_kernel.db.base import Base
from credit_kernel.db.types import enum_column
from credit_kernel.domain.values import ProductAvailability, ProductType, RepeatMode


class Product(Base):
    """
    Catalogue entry.

    credits is the price in credits, price the price in currency.  Packages
    list the upsells they already include (charged at zero).  Bundles carry
    validity_months.  Upsells carry availability, repeat_mode and the
    featured / same-day flags.
    """

    __tablename__ = "products"

    product_type: Mapped[ProductType] = mapped_column(
        enum_column(ProductType, length=20),
        nullable=False,
    )

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    credits: Mapped[int] = mapped_column(default=0, nullable=False)
    price: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    availability: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Packages only
    included_upsell_ids: Mapped[list[str]] = mapped_column(
        JSON, default=list, nullable=False
    )
    duration_days: Mapped[int | None] = mapped_column(nullable=True)

    # Credit bundles only
    validity_months: Mapped[int | None] = mapped_column(nullable=True)

    # Upsells only
    repeat_mode: Mapped[RepeatMode | None] = mapped_column(
        enum_column(RepeatMode, length=20),
        nullable=True,
    )
    max_value: Mapped[int | None] = mapped_column(nullable=True)
    sets_featured: Mapped[bool] = mapped_column(default=False, nullable=False)
    sets_same_day: Mapped[bool] = mapped_column(default=False, nullable=False)

    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)

    @property
    def included_upsell_uuids(self) -> list[UUID]:
        return [UUID(str(pid)) for pid in (self.included_upsell_ids or [])]

    def is_available_for(self, availability: ProductAvailability) -> bool:
        return availability.value in (self.availability or [])

    def __repr__(self) -> str:
        return f"<Product {self.product_type.value} '{self.display_name}' credits={self.credits}>"
