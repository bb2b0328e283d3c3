"""
Best-effort notification of the public vacancy site.

After a vacancy's visible state changes (published, boosted, depublished,
expired) the portal posts ``{"vacancy_id": ...}`` to a webhook so the site
re-reads it.  Delivery is not guaranteed: failures are logged and the
vacancy keeps ``needs_sync`` so the ``vacancies.resync`` task tries again.
Notification never fails the ledger operation that triggered it.
"""

from typing import Protocol
from uuid import UUID

import httpx

from credit_kernel.logging_config import get_logger

logger = get_logger("services.sync_notifier")


class SyncNotifier(Protocol):
    def notify(self, vacancy_id: UUID) -> bool:
        """Return True when the external surface acknowledged the change."""
        ...


class NullSyncNotifier:
    """Used when no webhook is configured."""

    def notify(self, vacancy_id: UUID) -> bool:
        logger.debug("sync_notify_skipped", extra={"vacancy_id": str(vacancy_id)})
        return False


class WebhookSyncNotifier:
    """
    POSTs vacancy ids to a sync webhook with httpx.

    A ``client`` may be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise one is created per call.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 5.0,
        client: httpx.Client | None = None,
    ):
        self.webhook_url = webhook_url
        self._timeout = httpx.Timeout(timeout_seconds, connect=min(timeout_seconds, 3.0))
        self._client = client

    def _post(self, client: httpx.Client, vacancy_id: UUID) -> httpx.Response:
        return client.post(self.webhook_url, json={"vacancy_id": str(vacancy_id)})

    def notify(self, vacancy_id: UUID) -> bool:
        try:
            if self._client is not None:
                resp = self._post(self._client, vacancy_id)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    resp = self._post(client, vacancy_id)
            resp.raise_for_status()
        except httpx.HTTPError:
            logger.warning(
                "sync_webhook_failed",
                extra={"vacancy_id": str(vacancy_id), "webhook_url": self.webhook_url},
                exc_info=True,
            )
            return False
        logger.info(
            "sync_webhook_sent",
            extra={"vacancy_id": str(vacancy_id), "status_code": resp.status_code},
        )
        return True


def build_sync_notifier(webhook_url: str | None, timeout_seconds: float = 5.0) -> SyncNotifier:
    if not webhook_url:
        return NullSyncNotifier()
    return WebhookSyncNotifier(webhook_url, timeout_seconds)
