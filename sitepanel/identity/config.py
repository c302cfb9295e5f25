"""Identity provider configuration from environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _getenv(key: str, default: str | None = None) -> str | None:
    return os.environ.get(key, default)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class IdentityConfig:
    """
    External identity provider settings.

    Required:
        IDP_URL: Base URL of the provider's auth API (e.g. https://xyz.example.co/auth/v1).
        IDP_JWT_SECRET or IDP_JWKS_URL: how session tokens are verified
            (HS256 shared secret, or asymmetric keys published as a JWKS).

    Optional:
        IDP_API_KEY: Public API key sent as the ``apikey`` header.
        IDP_SERVICE_ROLE_KEY: Privileged key for the admin API (provisioning only).
        IDP_AUDIENCE: Expected ``aud`` claim (default "authenticated").
        IDP_ISSUER: Expected ``iss`` claim; not checked when unset.
        CLOCK_SKEW_SECONDS: Tolerance for exp/nbf (default 30).
        JWKS_CACHE_TTL_SECONDS: How long to cache the JWKS (default 3600).
        IDP_HTTP_TIMEOUT_SECONDS: Timeout for every provider HTTP call (default 10).
    """

    url: str
    api_key: str | None
    service_role_key: str | None
    jwt_secret: str | None
    jwks_url: str | None
    audience: str
    issuer: str | None
    clock_skew_seconds: int
    jwks_cache_ttl_seconds: int
    http_timeout_seconds: int = 10

    @property
    def uses_jwks(self) -> bool:
        return self.jwt_secret is None and self.jwks_url is not None

    @classmethod
    def from_environ(cls) -> IdentityConfig:
        url = _strip_or_none(_getenv("IDP_URL"))
        if not url:
            raise _config_error("IDP_URL must be set")
        secret = _strip_or_none(_getenv("IDP_JWT_SECRET"))
        jwks_url = _strip_or_none(_getenv("IDP_JWKS_URL"))
        if not secret and not jwks_url:
            raise _config_error("IDP_JWT_SECRET or IDP_JWKS_URL must be set")
        return cls(
            url=url,
            api_key=_strip_or_none(_getenv("IDP_API_KEY")),
            service_role_key=_strip_or_none(_getenv("IDP_SERVICE_ROLE_KEY")),
            jwt_secret=secret,
            jwks_url=jwks_url,
            audience=_strip_or_none(_getenv("IDP_AUDIENCE")) or "authenticated",
            issuer=_strip_or_none(_getenv("IDP_ISSUER")),
            clock_skew_seconds=_getenv_int("CLOCK_SKEW_SECONDS", 30),
            jwks_cache_ttl_seconds=_getenv_int("JWKS_CACHE_TTL_SECONDS", 3600),
            http_timeout_seconds=_getenv_int("IDP_HTTP_TIMEOUT_SECONDS", 10),
        )


def _strip_or_none(s: str | None) -> str | None:
    if s is None:
        return None
    t = s.strip()
    return t if t else None


def _config_error(msg: str) -> Exception:
    return ValueError(msg)
