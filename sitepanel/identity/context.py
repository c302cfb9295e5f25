"""Small, serializable values produced by the identity provider."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """Authenticated user as issued by the identity provider; read-only here."""

    id: str
    email: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of an access token."""

    identity: Identity
    expires_at: int
    """Unix timestamp of the ``exp`` claim."""


@dataclass(frozen=True, repr=False)
class SessionTokens:
    """
    Token pair returned by sign-in, code exchange or refresh.

    Never log instances of this class.
    """

    access_token: str
    refresh_token: str
    expires_in: int
    identity: Identity | None = None

    def __repr__(self) -> str:
        return f"SessionTokens(identity={self.identity!r}, expires_in={self.expires_in})"
