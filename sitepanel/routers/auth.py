from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from sitepanel.access.policy import AccessPolicy
from sitepanel.db.session import get_db
from sitepanel.identity import IdentityProviderClient, IdentityProviderError, SessionLookupFailure, SessionRefreshRejected
from sitepanel.schemas.accounts import IdentityOut, LoginIn, SignupIn
from sitepanel.security.auth import get_profile, read_session_cookies
from sitepanel.security.dependencies import get_access_policy, get_identity_provider, get_session_resolver
from sitepanel.security.session import SessionResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def safe_redirect_target(target: str | None) -> str | None:
    """Only same-origin relative paths; anything else (//host, scheme://, backslashes) is dropped."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return None
    return target


def _provider_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Identity provider unavailable")


@router.get("/login")
def login_form(
    redirect_to: str | None = Query(default=None, alias="redirectTo"),
    policy: AccessPolicy = Depends(get_access_policy),
) -> dict[str, str | None]:
    return {
        "action": policy.rules.login_path,
        "method": "POST",
        "redirect_to": safe_redirect_target(redirect_to),
    }


@router.post("/login")
def login(
    body: LoginIn,
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
    provider: IdentityProviderClient = Depends(get_identity_provider),
    resolver: SessionResolver = Depends(get_session_resolver),
) -> RedirectResponse:
    try:
        tokens = provider.sign_in_with_password(body.email.strip(), body.password)
    except SessionRefreshRejected as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password") from exc
    except IdentityProviderError as exc:
        raise _provider_failure() from exc

    try:
        identity = resolver.identity_from_tokens(tokens)
    except SessionLookupFailure as exc:
        raise _provider_failure() from exc
    profile = get_profile(db, identity.id)
    target = safe_redirect_target(body.redirect_to) or policy.home_for(profile.role if profile else None)

    logger.info("Login succeeded identity_id=%s", identity.id)
    response = RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)
    for cookie in resolver.token_cookies(tokens):
        cookie.apply(response)
    return response


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=IdentityOut)
def signup(
    body: SignupIn,
    provider: IdentityProviderClient = Depends(get_identity_provider),
) -> IdentityOut:
    # The profile is created by provisioning; self-service accounts start without a site.
    try:
        identity = provider.sign_up(body.email.strip(), body.password)
    except IdentityProviderError as exc:
        if exc.status_code is not None and 400 <= exc.status_code < 500:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Sign-up rejected") from exc
        raise _provider_failure() from exc
    return IdentityOut.model_validate(identity)


@router.get("/auth/callback")
def auth_callback(
    code: str | None = None,
    next_path: str | None = Query(default=None, alias="next"),
    policy: AccessPolicy = Depends(get_access_policy),
    provider: IdentityProviderClient = Depends(get_identity_provider),
    resolver: SessionResolver = Depends(get_session_resolver),
) -> RedirectResponse:
    failure = RedirectResponse(f"{policy.rules.login_path}?error=auth_callback", status_code=status.HTTP_303_SEE_OTHER)
    if not code:
        return failure

    try:
        tokens = provider.exchange_code(code)
    except IdentityProviderError as exc:
        logger.info("Auth callback code exchange failed status=%s", exc.status_code)
        return failure

    response = RedirectResponse(safe_redirect_target(next_path) or "/", status_code=status.HTTP_303_SEE_OTHER)
    for cookie in resolver.token_cookies(tokens):
        cookie.apply(response)
    return response


@router.post("/logout")
def logout(
    request: Request,
    policy: AccessPolicy = Depends(get_access_policy),
    provider: IdentityProviderClient = Depends(get_identity_provider),
    resolver: SessionResolver = Depends(get_session_resolver),
) -> RedirectResponse:
    access, _refresh = read_session_cookies(request, resolver.access_cookie, resolver.refresh_cookie)
    if access is not None:
        provider.sign_out(access)

    response = RedirectResponse(policy.rules.login_path, status_code=status.HTTP_303_SEE_OTHER)
    for cookie in resolver.clear_cookies():
        cookie.apply(response)
    return response
