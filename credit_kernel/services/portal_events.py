"""
PortalEventRecorder -- appends business events to the portal event log.

Events are written inside the same unit of work as the change they
describe, so a rolled-back submission leaves no ``vacancy_submitted`` row.
"""

from typing import Any
from uuid import UUID

from credit_kernel.domain.values import PortalEventType
from credit_kernel.logging_config import get_logger
from credit_kernel.models.portal_event import PortalEvent
from credit_kernel.services.base import BaseService

logger = get_logger("services.portal_events")


class PortalEventRecorder(BaseService[PortalEvent]):

    def record(
        self,
        event_type: PortalEventType,
        *,
        employer_id: UUID | None = None,
        vacancy_id: UUID | None = None,
        actor_user_id: UUID | None = None,
        source: str = "web",
        payload: dict[str, Any] | None = None,
    ) -> PortalEvent:
        evt = PortalEvent(
            event_type=event_type,
            employer_id=employer_id,
            vacancy_id=vacancy_id,
            actor_user_id=actor_user_id,
            source=source,
            payload=_jsonable(payload or {}),
            created_at=self.clock.now(),
        )
        self.session.add(evt)
        self.session.flush()
        logger.debug(
            "portal_event_recorded",
            extra={"event_type": event_type.value, "event_id": str(evt.id)},
        )
        return evt


def _jsonable(payload: dict[str, Any]) -> dict[str, Any]:
    """Stringify values the JSON column cannot store natively."""
    out: dict[str, Any] = {}
    for key, val in payload.items():
        if isinstance(val, (list, tuple)):
            out[key] = [v if isinstance(v, (int, str, bool)) or v is None else str(v) for v in val]
        elif isinstance(val, (int, str, bool, float)) or val is None:
            out[key] = val
        else:
            out[key] = str(val)
    return out
