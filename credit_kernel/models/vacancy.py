"""
Module: credit_kernel.models.vacancy
Responsibility: ORM persistence for vacancies as far as the credit ledger
    and the lifecycle engine care: status, package and upsells, the content
    fields checked at submission, and the publication timestamps.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Created in concept only (VacancyLifecycle.create_vacancy).
    - status changes only along domain.vacancy_status.ALLOWED_TRANSITIONS
      (checked by the lifecycle service and again by a before_update listener).
    - Never deleted once it has left concept (before_delete listener).
    - selected_upsells is append-only.  Code must assign a new list rather
      than mutate in place so the JSON column is flushed.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from credit_kernel.db.base import Base, UUIDString
from credit_kernel.db.types import enum_column
from credit_kernel.domain.values import InputType, VacancyStatus


class Vacancy(Base):
    """A job vacancy published through the employer portal."""

    __tablename__ = "vacancies"

    __table_args__ = (
        Index("idx_vacancy_employer", "employer_id"),
        Index("idx_vacancy_status_closing", "status", "closing_date"),
        Index("idx_vacancy_needs_sync", "needs_sync"),
    )

    employer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # User who created the draft (an employer user or an intermediary)
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    status: Mapped[VacancyStatus] = mapped_column(
        enum_column(VacancyStatus),
        default=VacancyStatus.CONCEPT,
        nullable=False,
    )

    input_type: Mapped[InputType] = mapped_column(
        enum_column(InputType),
        default=InputType.SELF_SERVICE,
        nullable=False,
    )

    # Content
    title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    intro_txt: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    region_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sector_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    function_type_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Apply method
    show_apply_form: Mapped[bool] = mapped_column(default=False, nullable=False)
    apply_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    application_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # Products
    package_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=True,
    )
    selected_upsells: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    credits_spent: Mapped[int] = mapped_column(default=0, nullable=False)
    is_featured: Mapped[bool] = mapped_column(default=False, nullable=False)
    same_day_priority: Mapped[bool] = mapped_column(default=False, nullable=False)

    closing_date: Mapped[date | None] = mapped_column(nullable=True)

    # Lifecycle timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    first_published_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_published_at: Mapped[datetime | None] = mapped_column(nullable=True)
    depublished_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_status_changed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # External surface has not seen the latest state yet
    needs_sync: Mapped[bool] = mapped_column(default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Vacancy {self.id} status={self.status.value}>"
