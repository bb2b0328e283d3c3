"""
Closing-date rules for publication and extension.

A vacancy runs for its package's duration from publication.  A boost with
an ``until_max`` upsell may push the closing date out, but never past
``max_publication_days`` after first publication, and never for a package
whose own duration already reaches that ceiling.
"""

from dataclasses import dataclass
from datetime import date, timedelta

from credit_kernel.domain.calculations import publication_ceiling
from credit_kernel.exceptions import InvalidClosingDateError


@dataclass(frozen=True)
class ClosingDateRange:
    """Bounds for a new closing date: min_date exclusive, max_date inclusive."""

    min_date: date
    max_date: date

    def contains(self, candidate: date) -> bool:
        return self.min_date < candidate <= self.max_date


def initial_closing_date(published_on: date, duration_days: int) -> date:
    return published_on + timedelta(days=duration_days)


def extension_blocked(package_duration_days: int | None, max_publication_days: int) -> bool:
    """Premium packages already run to the ceiling; they cannot be extended."""
    return package_duration_days is not None and package_duration_days >= max_publication_days


def extension_range(
    first_published_on: date,
    current_closing_date: date | None,
    today: date,
    max_publication_days: int,
) -> ClosingDateRange:
    floor = max(current_closing_date, today) if current_closing_date else today
    return ClosingDateRange(
        min_date=floor,
        max_date=publication_ceiling(first_published_on, max_publication_days),
    )


def validate_extension(
    requested: date,
    *,
    first_published_on: date,
    current_closing_date: date | None,
    today: date,
    package_duration_days: int | None,
    max_publication_days: int,
) -> date:
    """
    Check a requested closing date.

    Raises:
        InvalidClosingDateError: the package cannot be extended, or the date
            is not after max(current closing date, today), or it is past the
            publication ceiling.
    """
    if extension_blocked(package_duration_days, max_publication_days):
        raise InvalidClosingDateError(
            requested, f"package already runs the maximum {max_publication_days} days"
        )
    bounds = extension_range(first_published_on, current_closing_date, today, max_publication_days)
    if requested <= bounds.min_date:
        raise InvalidClosingDateError(requested, f"must be after {bounds.min_date.isoformat()}")
    if requested > bounds.max_date:
        raise InvalidClosingDateError(requested, f"must be on or before {bounds.max_date.isoformat()}")
    return requested
