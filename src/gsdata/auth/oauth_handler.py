"""
OAuth 2.0 refresh-token handling for Google APIs.

Token acquisition (authorization URL and code exchange) happens outside this
tool; the handler starts from a client identity and a refresh token and trades
the refresh token for access tokens whenever asked.
"""

import asyncio
from datetime import timezone
from typing import Dict, Optional

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
import structlog

from .base import AccessToken, AuthenticationError, CredentialSupplier
from ..config.settings import get_settings
from ..performance import get_metrics_collector

logger = structlog.get_logger(__name__)


class GoogleOAuthHandler(CredentialSupplier):
    """Refreshes Google OAuth 2.0 access tokens for an installed application."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        access_token: Optional[str] = None,
        token_uri: Optional[str] = None
    ):
        settings = get_settings()
        self.client_id = client_id
        self.credentials = Credentials(
            token=access_token,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
            token_uri=token_uri or settings.google.token_uri,
        )
        self.metrics = get_metrics_collector()

    async def current_access_token(self) -> AccessToken:
        """
        Get a valid access token, refreshing if none is held or it has expired.
        """
        if not self.credentials.valid:
            return await self.refresh()
        return self._to_access_token()

    async def refresh(self) -> AccessToken:
        """
        Exchange the refresh token for a new access token.

        Raises:
            AuthenticationError: If Google rejects the refresh token or is unreachable
        """
        logger.info("Refreshing access token", client_id=self.client_id[:8] + "...")

        try:
            # google-auth uses a blocking transport
            await asyncio.get_running_loop().run_in_executor(None, self._refresh_blocking)
        except google.auth.exceptions.RefreshError as e:
            logger.error("Token refresh rejected", error=str(e))
            raise AuthenticationError(f"Token refresh failed: {e}") from e
        except google.auth.exceptions.TransportError as e:
            logger.error("Token endpoint unreachable", error=str(e))
            raise AuthenticationError(f"Token refresh failed: {e}") from e

        self.metrics.increment_counter("auth.refreshes")
        token = self._to_access_token()
        logger.info("Successfully refreshed token", expires_at=token.expires_at)
        return token

    def _refresh_blocking(self) -> None:
        self.credentials.refresh(Request())

    def _to_access_token(self) -> AccessToken:
        expiry = self.credentials.expiry
        # google-auth reports expiry as naive UTC
        if expiry is not None and expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return AccessToken(self.credentials.token, expiry)

    def to_dict(self) -> Dict:
        """Token set in the shape written by the ``oauth2-refresh`` command."""
        token = self._to_access_token()
        return {
            "access_token": token.value,
            "refresh_token": self.credentials.refresh_token,
            "token_type": "Bearer",
            "expires_at": token.expires_at.isoformat() if token.expires_at else None,
        }
