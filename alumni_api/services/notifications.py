from __future__ import annotations

import logging
from functools import lru_cache

import httpx

from alumni_api.core.config import get_settings

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when the mail relay refuses a message."""


class MailRelayNotifier:
    """Best-effort email dispatch through an HTTP mail relay."""

    def __init__(
        self,
        relay_url: str | None,
        api_key: str | None,
        sender: str,
        timeout_seconds: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.relay_url = relay_url
        self.api_key = api_key
        self.sender = sender
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def send(self, *, recipient: str, subject: str, body: str) -> None:
        if not self.relay_url:
            logger.info("mail relay not configured; dropping notification to=%s subject=%s", recipient, subject)
            return

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "from": self.sender,
            "to": [recipient],
            "subject": subject,
            "text": body,
        }

        if self._client is not None:
            response = await self._client.post(self.relay_url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.relay_url, json=payload, headers=headers)

        if response.status_code >= 400:
            raise NotificationError(f"mail relay rejected message status={response.status_code}")
        logger.info("notification sent to=%s subject=%s", recipient, subject)


@lru_cache
def get_notifier() -> MailRelayNotifier:
    settings = get_settings()
    return MailRelayNotifier(
        relay_url=settings.mail_relay_url,
        api_key=settings.mail_relay_api_key,
        sender=settings.mail_sender,
        timeout_seconds=settings.mail_timeout_seconds,
    )
