"""Google sign-in: resolves an OAuth access token to the account behind it."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from quotedesk.common.exceptions import ExternalServiceError, PermissionDeniedError
from quotedesk.config import settings
from quotedesk.integrations.base import BaseIntegration


@dataclass(frozen=True)
class GoogleAccount:
    id: str
    email: str
    name: str | None = None
    picture: str | None = None


class GoogleIdentityClient(BaseIntegration):
    def __init__(self, userinfo_url: str | None = None) -> None:
        super().__init__("google_identity")
        self.userinfo_url = userinfo_url or settings.GOOGLE_USERINFO_URL

    async def health_check(self) -> bool:
        # The userinfo endpoint answers 401 without a token when it is up
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self.userinfo_url)
                return resp.status_code in (200, 401)
        except httpx.HTTPError as e:
            self.logger.error("Google userinfo health check failed: %s", e)
            return False

    async def fetch_account(self, access_token: str) -> GoogleAccount:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    self.userinfo_url,
                    params={"alt": "json"},
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            self.logger.error("Google userinfo request failed: %s", e)
            raise ExternalServiceError("google", str(e)) from e

        if resp.status_code != 200:
            self.logger.warning("Google rejected access token: HTTP %d", resp.status_code)
            raise PermissionDeniedError("Invalid Google access token")

        info = resp.json()
        email = info.get("email")
        if not email or info.get("verified_email") not in (True, "true", "True"):
            raise PermissionDeniedError("Google email not verified")

        return GoogleAccount(
            id=str(info.get("id") or info.get("sub") or email),
            email=email,
            name=info.get("name"),
            picture=info.get("picture"),
        )
