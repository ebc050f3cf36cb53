"""Outbound integration clients.

Every client implements ``BaseIntegration``; clients configured with a mock
endpoint log instead of calling out.
"""

from quotedesk.integrations.base import BaseIntegration
from quotedesk.integrations.email_relay import EmailRelayClient
from quotedesk.integrations.google_identity import GoogleAccount, GoogleIdentityClient

__all__ = [
    "BaseIntegration",
    "EmailRelayClient",
    "GoogleAccount",
    "GoogleIdentityClient",
]
