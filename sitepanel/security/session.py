"""
Session resolution: request cookies -> identity + profile (+ cookie refresh).

Contract:
    await resolver.resolve(request) -> ResolvedSession

- Absence of an identity is a normal outcome, never an exception.
- Any lookup failure (bad token, provider down, DB error, timeout) resolves
  to "no identity"; the gate then sends the user to login (fail closed).
- An expired or soon-to-expire access token is refreshed once through the
  identity provider; the new tokens are returned as cookie mutations so the
  caller can put them on whatever response it sends, redirect or not.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import anyio
import anyio.to_thread
from fastapi import Request, Response
from sqlalchemy.orm import Session

from sitepanel.access.roles import Role
from sitepanel.identity import (
    Identity,
    IdentityProviderClient,
    SessionExpired,
    SessionLookupFailure,
    SessionRefreshRejected,
    SessionTokens,
    SessionTokenValidator,
    TokenClaims,
)
from sitepanel.schemas.accounts import ProfileOut
from sitepanel.security.auth import get_profile, read_session_cookies
from sitepanel.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, repr=False)
class CookieMutation:
    """A Set-Cookie to emit; `value=None` deletes the cookie."""

    name: str
    value: str | None
    max_age: int | None = None
    secure: bool = False

    def apply(self, response: Response) -> None:
        if self.value is None:
            response.delete_cookie(self.name, path="/", secure=self.secure, httponly=True, samesite="lax")
            return
        response.set_cookie(
            self.name,
            self.value,
            max_age=self.max_age,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )

    def __repr__(self) -> str:
        action = "delete" if self.value is None else "set"
        return f"CookieMutation({action} {self.name})"


@dataclass(frozen=True)
class ResolvedSession:
    identity: Identity | None = None
    profile: ProfileOut | None = None
    cookies: tuple[CookieMutation, ...] = ()

    @property
    def authenticated(self) -> bool:
        return self.identity is not None

    @property
    def role(self) -> Role | None:
        return self.profile.role if self.profile is not None else None

    def apply_cookies(self, response: Response) -> Response:
        """Apply the mutations, leaving alone any cookie the endpoint already set (login, logout)."""
        already_set = {header.split("=", 1)[0].strip() for header in response.headers.getlist("set-cookie")}
        for cookie in self.cookies:
            if cookie.name not in already_set:
                cookie.apply(response)
        return response


ANONYMOUS = ResolvedSession()


class SessionResolver:
    """
    Per-app resolver; holds no per-request state.

    `session_factory` opens a short-lived DB session inside the worker thread
    (one `get_profile` query per request).
    """

    def __init__(
        self,
        validator: SessionTokenValidator,
        provider: IdentityProviderClient,
        session_factory: Callable[[], Session],
        *,
        access_cookie: str = "sp-access-token",
        refresh_cookie: str = "sp-refresh-token",
        cookie_secure: bool = False,
        refresh_cookie_max_age: int = 60 * 60 * 24 * 30,
        timeout_seconds: float = 5.0,
        refresh_margin_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._validator = validator
        self._provider = provider
        self._session_factory = session_factory
        self.access_cookie = access_cookie
        self.refresh_cookie = refresh_cookie
        self._cookie_secure = cookie_secure
        self._refresh_cookie_max_age = refresh_cookie_max_age
        self._timeout = timeout_seconds
        self._refresh_margin = refresh_margin_seconds
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        validator: SessionTokenValidator,
        provider: IdentityProviderClient,
        session_factory: Callable[[], Session],
    ) -> SessionResolver:
        return cls(
            validator,
            provider,
            session_factory,
            access_cookie=settings.access_cookie_name,
            refresh_cookie=settings.refresh_cookie_name,
            cookie_secure=settings.cookie_secure,
            refresh_cookie_max_age=settings.refresh_cookie_max_age_seconds,
            timeout_seconds=settings.session_lookup_timeout_seconds,
            refresh_margin_seconds=settings.session_refresh_margin_seconds,
        )

    # ---- Cookie helpers (also used by the login / callback / logout routes) ---------

    def token_cookies(self, tokens: SessionTokens) -> tuple[CookieMutation, ...]:
        return (
            CookieMutation(self.access_cookie, tokens.access_token, tokens.expires_in, self._cookie_secure),
            CookieMutation(self.refresh_cookie, tokens.refresh_token, self._refresh_cookie_max_age, self._cookie_secure),
        )

    def clear_cookies(self) -> tuple[CookieMutation, ...]:
        return (
            CookieMutation(self.access_cookie, None, secure=self._cookie_secure),
            CookieMutation(self.refresh_cookie, None, secure=self._cookie_secure),
        )

    def identity_from_tokens(self, tokens: SessionTokens) -> Identity:
        """Identity for a freshly issued token pair (from the response body, else the token)."""
        if tokens.identity is not None:
            return tokens.identity
        return self._validator.validate(tokens.access_token).identity

    def access_token_for(self, request: Request, session: ResolvedSession) -> str | None:
        """The access token this request acts with: a just-refreshed one wins over the cookie."""
        for cookie in session.cookies:
            if cookie.name == self.access_cookie and cookie.value is not None:
                return cookie.value
        if not session.authenticated:
            return None
        access, _ = read_session_cookies(request, self.access_cookie, self.refresh_cookie)
        return access

    # ---- Resolution -----------------------------------------------------------------

    async def resolve(self, request: Request) -> ResolvedSession:
        access, refresh = read_session_cookies(request, self.access_cookie, self.refresh_cookie)
        if access is None and refresh is None:
            return ANONYMOUS

        try:
            with anyio.fail_after(self._timeout):
                return await anyio.to_thread.run_sync(
                    self._resolve_sync,
                    access,
                    refresh,
                    abandon_on_cancel=True,
                )
        except TimeoutError:
            logger.warning("Session lookup timed out after %.1fs path=%s", self._timeout, request.url.path)
            return ANONYMOUS
        except Exception as e:
            logger.warning("Session lookup failed path=%s error=%s", request.url.path, type(e).__name__, exc_info=True)
            return ANONYMOUS

    def _resolve_sync(self, access: str | None, refresh: str | None) -> ResolvedSession:
        try:
            claims, cookies = self._verify_or_refresh(access, refresh)
        except SessionRefreshRejected:
            logger.info("Refresh token rejected; clearing session cookies")
            return ResolvedSession(cookies=self.clear_cookies())
        except SessionLookupFailure as e:
            logger.info("No session: %s", type(e).__name__)
            return ANONYMOUS

        identity = claims.identity
        try:
            with self._session_factory() as db:
                profile = get_profile(db, identity.id)
                snapshot = ProfileOut.model_validate(profile) if profile is not None else None
        except Exception:
            if not cookies:
                raise
            # The old refresh token is already spent; the rotated pair must reach the browser.
            logger.warning(
                "Profile lookup failed after a session refresh identity_id=%s; keeping rotated cookies",
                identity.id,
                exc_info=True,
            )
            return ResolvedSession(cookies=cookies)

        if snapshot is None:
            # Provisioning always creates the profile with the identity; treat role as undefined.
            logger.warning("Authenticated identity has no profile identity_id=%s", identity.id)

        return ResolvedSession(identity=identity, profile=snapshot, cookies=cookies)

    def _verify_or_refresh(
        self, access: str | None, refresh: str | None
    ) -> tuple[TokenClaims, tuple[CookieMutation, ...]]:
        current: TokenClaims | None = None
        if access is not None:
            try:
                current = self._validator.validate(access)
            except SessionExpired:
                current = None
            else:
                if refresh is None or current.expires_at - self._clock() > self._refresh_margin:
                    return current, ()

        if refresh is None:
            raise SessionExpired("Access token expired and no refresh token present")

        try:
            tokens = self._provider.refresh_session(refresh)
        except SessionLookupFailure as e:
            if current is not None:
                # Early refresh with a still-valid token. A rejection here may come from a
                # parallel request that already rotated the pair; its cookies must survive.
                logger.info("Session refresh failed (%s); keeping current token until it expires", type(e).__name__)
                return current, ()
            raise

        claims = self._validator.validate(tokens.access_token)
        logger.debug("Session refreshed identity_id=%s", claims.identity.id)
        return claims, self.token_cookies(tokens)
