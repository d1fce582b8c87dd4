"""Access tokens and the credential supplier interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


# Tokens this close to expiry are treated as already expired
EXPIRY_SKEW = timedelta(seconds=60)


@dataclass(frozen=True)
class AccessToken:
    """An OAuth 2.0 bearer token."""

    value: str
    expires_at: Optional[datetime] = None

    @property
    def expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at - EXPIRY_SKEW

    def __str__(self) -> str:
        return self.value


class CredentialSupplier(ABC):
    """Source of access tokens for the object store."""

    @abstractmethod
    async def current_access_token(self) -> AccessToken:
        """Return the current token, obtaining one if none is held yet."""

    @abstractmethod
    async def refresh(self) -> AccessToken:
        """Obtain a new token, replacing the current one."""


class StaticTokenSupplier(CredentialSupplier):
    """Supplier for a pre-obtained token that cannot be refreshed."""

    def __init__(self, access_token: str):
        self._token = AccessToken(access_token)

    async def current_access_token(self) -> AccessToken:
        return self._token

    async def refresh(self) -> AccessToken:
        raise AuthenticationError("Access token expired and no refresh token was supplied")


class AuthenticationError(Exception):
    """Raised when an access token cannot be obtained or refreshed."""
    pass
