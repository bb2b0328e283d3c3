"""
PricingResolver -- credit and money totals for a package plus upsells.

Responsibility:
    Turns (package_id, upsell_ids) into a total in credits and in money,
    and works out which upsells the package already includes (charged at
    zero) and whether the vacancy becomes featured or same-day.

Architecture position:
    Services -- read-only over the product catalogue.  Called by
    VacancyLifecycle before any ledger mutation.

Invariants enforced:
    - All referenced products are fetched by id set, not one by one.
    - Any unknown id fails the whole resolution (UnknownProductError);
      nothing is priced partially.
    - An upsell included in the package is never charged, even when also
      selected explicitly.
    - Duplicate selected upsell ids are charged once per occurrence.

Failure modes:
    - UnknownProductError: an id is not in the catalogue.
    - InvalidProductError: the package is not a vacancy package, an upsell
      is not an upsell product, or a charged product is inactive.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from credit_kernel.domain.values import ProductType
from credit_kernel.exceptions import InvalidProductError, UnknownProductError
from credit_kernel.logging_config import get_logger
from credit_kernel.models.product import Product

logger = get_logger("services.pricing")


@dataclass(frozen=True)
class PricingResolution:
    """
    Priced selection.

    total_credits / total_price cover the package (if any) and every
    charged upsell.  product_ids is what a spend transaction records.
    """

    package_id: UUID | None
    total_credits: int
    total_price: Decimal
    charged_upsell_ids: tuple[UUID, ...]
    included_upsell_ids: tuple[UUID, ...]
    is_featured: bool
    same_day_priority: bool
    package_duration_days: int | None = None

    @property
    def product_ids(self) -> tuple[UUID, ...]:
        head = (self.package_id,) if self.package_id is not None else ()
        return head + self.charged_upsell_ids


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class PricingResolver:
    """Prices vacancy submissions and boosts against the catalogue."""

    def __init__(self, session: Session):
        self.session = session

    def _fetch(self, ids: Iterable[UUID]) -> dict[UUID, Product]:
        wanted = set(ids)
        if not wanted:
            return {}
        rows = self.session.execute(select(Product).where(Product.id.in_(wanted))).scalars()
        found = {p.id: p for p in rows}
        missing = sorted(str(i) for i in wanted - set(found))
        if missing:
            logger.info("pricing_unknown_products", extra={"product_ids": missing})
            raise UnknownProductError(missing)
        return found

    def resolve(
        self,
        package_id: UUID | str | None,
        upsell_ids: Sequence[UUID | str] = (),
    ) -> PricingResolution:
        """
        Price a package with selected upsells.

        ``package_id`` may be None for an upsell-only price (boosts).
        """
        selected = [_as_uuid(u) for u in upsell_ids]
        pkg_id = _as_uuid(package_id) if package_id is not None else None

        products = self._fetch(([pkg_id] if pkg_id else []) + selected)

        package: Product | None = None
        included: list[UUID] = []
        if pkg_id is not None:
            package = products[pkg_id]
            if package.product_type != ProductType.VACANCY_PACKAGE:
                raise InvalidProductError(str(pkg_id), "not a vacancy package")
            if not package.is_active:
                raise InvalidProductError(str(pkg_id), "package is inactive")
            included = package.included_upsell_uuids
            extra = [i for i in included if i not in products]
            products.update(self._fetch(extra))

        total_credits = package.credits if package is not None else 0
        total_price = Decimal(package.price) if package is not None else Decimal("0")
        charged: list[UUID] = []
        for upsell_id in selected:
            upsell = products[upsell_id]
            if upsell.product_type != ProductType.UPSELL:
                raise InvalidProductError(str(upsell_id), "not an upsell")
            if upsell_id in included:
                continue
            if not upsell.is_active:
                raise InvalidProductError(str(upsell_id), "upsell is inactive")
            charged.append(upsell_id)
            total_credits += upsell.credits
            total_price += Decimal(upsell.price)

        flagged = [products[i] for i in (*charged, *included)]
        resolution = PricingResolution(
            package_id=pkg_id,
            total_credits=total_credits,
            total_price=total_price,
            charged_upsell_ids=tuple(charged),
            included_upsell_ids=tuple(included),
            is_featured=any(p.sets_featured for p in flagged),
            same_day_priority=any(p.sets_same_day for p in flagged),
            package_duration_days=package.duration_days if package is not None else None,
        )
        logger.debug(
            "pricing_resolved",
            extra={
                "package_id": str(pkg_id) if pkg_id else None,
                "total_credits": total_credits,
                "total_price": total_price,
                "charged": len(charged),
                "included": len(included),
            },
        )
        return resolution
