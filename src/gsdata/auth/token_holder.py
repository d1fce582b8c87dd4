"""Single-owner access token shared by concurrent storage operations."""

import asyncio
from typing import Optional

from .base import AccessToken, AuthenticationError, CredentialSupplier
from ..utils.logging import get_logger


class TokenHolder:
    """Holds the run's current token and coordinates refreshes.

    Refreshes go through one lock. A caller reports the token that failed;
    if another caller has already replaced it, the replacement is returned
    without contacting the supplier again, so any number of concurrent
    expiry failures on the same token produce exactly one refresh. A failed
    refresh is remembered for the token it tried to replace and re-raised to
    the other callers holding that token.
    """

    def __init__(self, supplier: CredentialSupplier):
        self._supplier = supplier
        self._token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()
        self._failed_token: Optional[AccessToken] = None
        self._failure: Optional[AuthenticationError] = None
        self.refresh_count = 0
        self.logger = get_logger(self.__class__.__name__)

    @property
    def current(self) -> Optional[AccessToken]:
        return self._token

    async def ensure_fresh_token(self) -> AccessToken:
        """Return a usable token, fetching or refreshing it if needed."""
        token = self._token
        if token is not None and not token.expired:
            return token

        async with self._lock:
            if self._token is None:
                self._token = await self._supplier.current_access_token()
            elif self._token.expired:
                if self._token is self._failed_token:
                    raise self._failure
                await self._refresh_locked()
            return self._token

    async def force_refresh(self, stale: Optional[AccessToken] = None) -> AccessToken:
        """Replace ``stale`` with a new token.

        Args:
            stale: The token an operation was rejected with. When omitted the
                refresh is unconditional.

        Raises:
            AuthenticationError: If the supplier cannot refresh
        """
        async with self._lock:
            if stale is not None and self._token is not None and self._token is not stale:
                self.logger.debug("Token already refreshed by another operation")
                return self._token
            if stale is not None and stale is self._failed_token:
                raise self._failure
            return await self._refresh_locked()

    async def _refresh_locked(self) -> AccessToken:
        previous = self._token
        try:
            token = await self._supplier.refresh()
        except AuthenticationError as e:
            self._failed_token = previous
            self._failure = e
            self.logger.error("Access token refresh failed", error=str(e))
            raise

        self._token = token
        self.refresh_count += 1
        self.logger.info("Access token refreshed", refresh_count=self.refresh_count)
        return token
