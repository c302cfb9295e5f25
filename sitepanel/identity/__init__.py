"""
Client side of the external identity provider: session-token verification,
token refresh and the admin API used by provisioning.

This package has no dependency on other sitepanel packages (db, access, security).
"""

from .config import IdentityConfig
from .context import Identity, SessionTokens, TokenClaims
from .errors import (
    IdentityProviderError,
    SessionExpired,
    SessionLookupFailure,
    SessionRefreshRejected,
    ValidationError,
)
from .provider_client import IdentityProviderClient
from .validator import SessionTokenValidator

__all__ = [
    "IdentityConfig",
    "Identity",
    "IdentityProviderClient",
    "IdentityProviderError",
    "SessionExpired",
    "SessionLookupFailure",
    "SessionRefreshRejected",
    "SessionTokenValidator",
    "SessionTokens",
    "TokenClaims",
    "ValidationError",
]
