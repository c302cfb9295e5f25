"""
HTTP client for the external identity provider.

The provider owns passwords, token issuance and email verification; this
module only forwards credentials and parses the token pairs it returns.

Endpoints used (relative to ``IDP_URL``):

    POST /token?grant_type=password            sign in
    POST /token?grant_type=refresh_token       refresh an expiring session
    POST /token?grant_type=authorization_code  exchange an auth-callback code
    POST /signup                               create an account (self-service)
    POST /logout                               revoke the refresh token
    PUT  /user                                 change own email or password
    GET  /admin/users?email=...                find an identity (service role)
    POST /admin/users                          mint an identity (service role)

Successful token responses look like:

    {"access_token": "...", "refresh_token": "...", "expires_in": 3600,
     "user": {"id": "...", "email": "..."}}
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from .config import IdentityConfig
from .context import Identity, SessionTokens
from .errors import IdentityProviderError, SessionRefreshRejected

logger = logging.getLogger(__name__)

# Status codes meaning "the credential is bad", as opposed to "the provider is down".
_REJECTED_STATUSES = frozenset({400, 401, 403})


def _identity_from(user: Any) -> Identity | None:
    if not isinstance(user, dict) or not user.get("id"):
        return None
    email = user.get("email")
    return Identity(id=str(user["id"]), email=str(email) if email else None)


def _tokens_from(body: dict[str, Any]) -> SessionTokens:
    access_token = body.get("access_token")
    refresh_token = body.get("refresh_token")
    if not access_token or not refresh_token:
        raise IdentityProviderError("No token pair in provider response")
    return SessionTokens(
        access_token=str(access_token),
        refresh_token=str(refresh_token),
        expires_in=int(body.get("expires_in", 3600)),
        identity=_identity_from(body.get("user")),
    )


class IdentityProviderClient:
    """Thin ``requests`` wrapper; one instance per app, safe to share across threads."""

    def __init__(self, config: IdentityConfig) -> None:
        self._config = config

    # ---- Plumbing -------------------------------------------------------------------

    def _headers(self, *, service_role: bool = False, bearer: str | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        key = self._config.service_role_key if service_role else self._config.api_key
        if key:
            headers["apikey"] = key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        elif service_role and key:
            headers["Authorization"] = f"Bearer {key}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        service_role: bool = False,
        bearer: str | None = None,
    ) -> requests.Response:
        if service_role and not self._config.service_role_key:
            raise IdentityProviderError("IDP_SERVICE_ROLE_KEY required for the admin API")
        url = f"{self._config.url.rstrip('/')}{path}"
        try:
            return requests.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(service_role=service_role, bearer=bearer),
                timeout=self._config.http_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning("Identity provider request failed path=%s error=%s", path, type(e).__name__)
            raise IdentityProviderError(f"Identity provider unreachable: {type(e).__name__}") from e

    def _token_grant(self, grant_type: str, payload: dict[str, Any]) -> SessionTokens:
        resp = self._request("POST", "/token", params={"grant_type": grant_type}, json=payload)
        if resp.status_code in _REJECTED_STATUSES:
            logger.info("Identity provider rejected grant_type=%s status=%s", grant_type, resp.status_code)
            raise SessionRefreshRejected(f"Grant rejected: {grant_type}", status_code=resp.status_code)
        if resp.status_code != 200:
            logger.warning("Identity provider grant_type=%s returned status=%s", grant_type, resp.status_code)
            raise IdentityProviderError(f"Grant failed: {grant_type}", status_code=resp.status_code)
        return _tokens_from(resp.json())

    # ---- Sessions -------------------------------------------------------------------

    def refresh_session(self, refresh_token: str) -> SessionTokens:
        """Exchange a refresh token for a new token pair (refresh tokens are single-use)."""
        return self._token_grant("refresh_token", {"refresh_token": refresh_token})

    def sign_in_with_password(self, email: str, password: str) -> SessionTokens:
        return self._token_grant("password", {"email": email, "password": password})

    def exchange_code(self, code: str) -> SessionTokens:
        """Finish an email-link / OAuth flow that landed on the auth callback."""
        return self._token_grant("authorization_code", {"code": code})

    def sign_up(self, email: str, password: str) -> Identity:
        resp = self._request("POST", "/signup", json={"email": email, "password": password})
        if resp.status_code not in (200, 201):
            raise IdentityProviderError("Sign-up failed", status_code=resp.status_code)
        body = resp.json()
        identity = _identity_from(body.get("user") if "user" in body else body)
        if identity is None:
            raise IdentityProviderError("No user in sign-up response")
        return identity

    def update_user(self, access_token: str, *, email: str | None = None, password: str | None = None) -> None:
        """
        Change the signed-in user's email or password (acts as the user, not the service role).

        An email change only takes effect once the new address is confirmed.
        """
        payload: dict[str, Any] = {}
        if email is not None:
            payload["email"] = email
        if password is not None:
            payload["password"] = password
        if not payload:
            raise ValueError("update_user needs an email or a password")

        resp = self._request("PUT", "/user", json=payload, bearer=access_token)
        if resp.status_code != 200:
            logger.info("Identity provider user update returned status=%s", resp.status_code)
            raise IdentityProviderError("User update failed", status_code=resp.status_code)

    def sign_out(self, access_token: str) -> None:
        """Best effort: a failed revoke is logged, the caller clears cookies regardless."""
        try:
            resp = self._request("POST", "/logout", bearer=access_token)
        except IdentityProviderError:
            return
        if resp.status_code not in (200, 204):
            logger.info("Identity provider logout returned status=%s", resp.status_code)

    # ---- Admin (service role) -------------------------------------------------------

    def find_user_by_email(self, email: str) -> Identity | None:
        resp = self._request("GET", "/admin/users", params={"email": email}, service_role=True)
        if resp.status_code != 200:
            raise IdentityProviderError("User lookup failed", status_code=resp.status_code)
        body = resp.json()
        users = body.get("users") if isinstance(body, dict) else body
        for user in users or []:
            if isinstance(user, dict) and str(user.get("email", "")).lower() == email.lower():
                return _identity_from(user)
        return None

    def create_user(self, email: str, password: str, *, metadata: dict[str, Any] | None = None) -> Identity:
        """Mint a confirmed identity (no verification email) with a temporary password."""
        payload = {
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": metadata or {},
        }
        resp = self._request("POST", "/admin/users", json=payload, service_role=True)
        if resp.status_code not in (200, 201):
            raise IdentityProviderError("User creation failed", status_code=resp.status_code)
        body = resp.json()
        identity = _identity_from(body.get("user") if "user" in body else body)
        if identity is None:
            raise IdentityProviderError("No user in create response")
        return identity
