"""Failure taxonomy for session lookup. The resolver absorbs all of these as "no identity"."""

from __future__ import annotations


class SessionLookupFailure(Exception):
    """Any failure while turning cookies into an identity. Do not log the token."""


class ValidationError(SessionLookupFailure):
    """Token signature, audience, issuer or format is invalid."""


class SessionExpired(ValidationError):
    """Token is structurally valid but past its ``exp``; a refresh may recover it."""


class IdentityProviderError(SessionLookupFailure):
    """The provider's HTTP API failed or returned an unexpected body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionRefreshRejected(IdentityProviderError):
    """The provider refused the refresh token (revoked, reused or expired)."""
