"""Notification client."""

import logging
from dataclasses import asdict
from typing import Optional

import httpx

from vectorqueue.config import settings
from vectorqueue.integrations.base import Notification, NotificationService

logger = logging.getLogger(__name__)


class HTTPNotificationService(NotificationService):
    """Posts notifications to ``POST {endpoint}/inform``. Delivery failures are logged, not raised."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        endpoint = endpoint if endpoint is not None else settings.notification_endpoint
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.timeout = timeout_seconds
        self._transport = transport

    async def notify(self, notification: Notification) -> None:
        if not self.endpoint:
            logger.warning(
                f"Notification endpoint not configured: {notification.title}",
                extra={"team_id": notification.team_id, "tmb_id": notification.tmb_id},
            )
            return

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.endpoint}/inform",
                    json=asdict(notification),
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                f"Notification delivery failed: {e}",
                extra={"team_id": notification.team_id, "tmb_id": notification.tmb_id},
            )
