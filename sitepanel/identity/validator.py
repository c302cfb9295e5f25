"""
Verify provider-issued session (access) tokens and extract the identity.

Before anything in the token is trusted:

    1. the signature is verified (HS256 shared secret, or the provider's
       published JWKS for asymmetric algorithms),
    2. the audience (``aud``) must match,
    3. the issuer (``iss``) must match when one is configured,
    4. ``exp`` / ``nbf`` are checked with a small clock-skew leeway.

Only then are ``sub`` and ``email`` read into an ``Identity``.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt
from jwt import PyJWKClient, PyJWKClientConnectionError, PyJWKClientError

from .config import IdentityConfig
from .context import Identity, TokenClaims
from .errors import SessionExpired, SessionLookupFailure, ValidationError

logger = logging.getLogger(__name__)

_ASYMMETRIC_ALGORITHMS = ["RS256", "ES256"]


def _get_kid(token: str) -> str | None:
    """
    Read the ``kid`` from the JWT header without validating the token; used
    only to pick the verification key.
    """
    try:
        header = jwt.get_unverified_header(token)
        return header.get("kid") if isinstance(header, dict) else None
    except jwt.InvalidTokenError:
        return None


def _extract_claims(payload: dict[str, Any]) -> TokenClaims:
    """
    Build ``TokenClaims`` from a verified payload.

    * **sub** is the provider's user id and becomes ``Identity.id`` (and
      therefore ``Profile.id``).
    * **email** is informational; never used for authorization.
    """

    user_id = payload.get("sub")
    if user_id is None or user_id == "":
        raise ValidationError("Invalid token: missing subject")
    user_id = str(int(user_id)) if isinstance(user_id, (int, float)) else str(user_id)

    email = payload.get("email")
    if email is not None:
        email = str(email) or None

    return TokenClaims(
        identity=Identity(id=user_id, email=email),
        expires_at=int(payload.get("exp") or 0),
    )


class SessionTokenValidator:
    """
    Validates provider session tokens.

    A single instance is created at startup and shared across requests; with
    JWKS verification it owns the key client (keys cached for
    `JWKS_CACHE_TTL_SECONDS`, refetched once when an unknown `kid` shows up).
    """

    def __init__(self, config: IdentityConfig, jwks_client: PyJWKClient | None = None) -> None:
        self._config = config
        if jwks_client is None and config.uses_jwks:
            jwks_client = PyJWKClient(
                config.jwks_url,
                cache_keys=True,
                lifespan=config.jwks_cache_ttl_seconds,
                timeout=config.http_timeout_seconds,
            )
        self._jwks_client = jwks_client

    def _verification_key(self, token: str) -> tuple[Any, list[str]]:
        if self._config.jwt_secret is not None:
            return self._config.jwt_secret, ["HS256"]

        kid = _get_kid(token)
        if not kid:
            logger.debug("Token missing or invalid kid")
            raise ValidationError("Invalid token: missing key id")
        try:
            signing_key = self._jwks_client.get_signing_key(kid)
        except PyJWKClientConnectionError as e:
            logger.warning("JWKS fetch failed: %s", type(e).__name__)
            raise SessionLookupFailure("Signing keys unavailable") from e
        except PyJWKClientError as e:
            logger.debug("No signing key found for kid")
            raise ValidationError("Invalid token: unknown signing key") from e
        return signing_key.key, _ASYMMETRIC_ALGORITHMS

    def validate(self, token: str) -> TokenClaims:
        """
        Validate the access token and return its claims.

        Raises ``SessionExpired`` when only the lifetime check fails, and
        ``ValidationError`` for every other verification failure.
        """
        key, algorithms = self._verification_key(token)

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=algorithms,
                audience=self._config.audience,
                issuer=self._config.issuer,
                leeway=self._config.clock_skew_seconds,
                options={
                    "require": ["exp", "sub"],
                    "verify_signature": True,
                    "verify_exp": True,
                    "verify_nbf": True,
                    "verify_iss": self._config.issuer is not None,
                    "verify_aud": True,
                },
            )
        except jwt.ExpiredSignatureError as e:
            logger.debug("Session token expired")
            raise SessionExpired("Token expired") from e
        except jwt.InvalidIssuerError as e:
            logger.info("Session token invalid issuer")
            raise ValidationError("Invalid token: issuer") from e
        except jwt.InvalidAudienceError as e:
            logger.info("Session token invalid audience")
            raise ValidationError("Invalid token: audience") from e
        except jwt.InvalidTokenError as e:
            logger.info("Session token invalid: %s", type(e).__name__)
            raise ValidationError("Invalid token") from e

        return _extract_claims(payload)
