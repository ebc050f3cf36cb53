"""Outbound email relay client.

The relay is a single HTTP endpoint accepting
``{"to": "a@x.com,b@y.com", "subject": ..., "htmlBody": ...}``.  When the
configured URL is a mock value the client only logs what it would send.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx

from quotedesk.common.exceptions import BadRequestError, ExternalServiceError
from quotedesk.config import settings
from quotedesk.integrations.base import BaseIntegration, is_mock_endpoint


class EmailRelayClient(BaseIntegration):
    def __init__(self, url: str | None = None, timeout: float | None = None) -> None:
        super().__init__("email_relay", timeout or settings.EMAIL_RELAY_TIMEOUT_SECONDS)
        self.url = url if url is not None else settings.EMAIL_RELAY_URL

    async def health_check(self) -> bool:
        if is_mock_endpoint(self.url):
            self.logger.info("Email relay health check: OK (mock)")
            return True
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self.url, follow_redirects=True)
                return resp.status_code < 500
        except httpx.HTTPError as e:
            self.logger.error("Email relay health check failed: %s", e)
            return False

    async def send_email(self, to: list[str], subject: str, html_body: str) -> dict[str, Any]:
        if not to:
            raise BadRequestError("At least one recipient is required")

        recipients = ",".join(to)
        sent = {
            "status": "sent",
            "message_id": str(uuid.uuid4()),
            "to": recipients,
            "subject": subject,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if is_mock_endpoint(self.url):
            self.logger.info("Mock email | to=%s | subject='%s'", recipients, subject)
            return sent

        self.logger.info("Sending email to=%s subject='%s'", recipients, subject)
        payload = {"to": recipients, "subject": subject, "htmlBody": html_body}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.url,
                    content=json.dumps(payload),
                    headers={"Content-Type": "text/plain;charset=utf-8"},
                    follow_redirects=True,
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error("Email relay request failed: %s", e)
            raise ExternalServiceError("email relay", str(e)) from e

        self.logger.info("Email request accepted by relay for %s", recipients)
        return sent
