"""Authentication module."""

from .base import AccessToken, AuthenticationError, CredentialSupplier, StaticTokenSupplier
from .oauth_handler import GoogleOAuthHandler
from .token_holder import TokenHolder

__all__ = [
    "AccessToken",
    "AuthenticationError",
    "CredentialSupplier",
    "StaticTokenSupplier",
    "GoogleOAuthHandler",
    "TokenHolder",
]
