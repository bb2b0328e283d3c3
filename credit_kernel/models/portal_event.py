"""
Module: credit_kernel.models.portal_event
Responsibility: Append-only business event log of the portal (credits
    purchased and expired, vacancy submitted, published, boosted...).  Feeds
    the employer's activity timeline.  Immutable like the transaction log.
Architecture position: Kernel > Models.  May import from db/ and domain/values.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from credit_kernel.db.base import Base, UUIDString
from credit_kernel.db.types import enum_column
from credit_kernel.domain.values import PortalEventType


class PortalEvent(Base):
    __tablename__ = "portal_events"

    __table_args__ = (
        Index("idx_portal_event_employer_created", "employer_id", "created_at"),
        Index("idx_portal_event_vacancy", "vacancy_id"),
    )

    event_type: Mapped[PortalEventType] = mapped_column(
        enum_column(PortalEventType, length=40),
        nullable=False,
    )

    actor_user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    employer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    vacancy_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # web, system (scheduled jobs), admin
    source: Mapped[str] = mapped_column(String(20), default="web", nullable=False)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<PortalEvent {self.event_type.value} at {self.created_at.isoformat()}>"
