"""
Super-admin provisioning: a client site, and when needed the client's identity.

Steps for `create_client_site`:
    1. normalize the subdomain (lowercase, [a-z0-9-] only)
    2. find the client's identity by email, or mint one with a temporary password
    3. make sure the identity has a `client` profile
    4. insert the site with empty content
"""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sitepanel.access.roles import Role, SubscriptionStatus
from sitepanel.identity import Identity, IdentityProviderClient, IdentityProviderError
from sitepanel.models import Profile, Site
from sitepanel.schemas.sites import SiteCreateIn

logger = logging.getLogger(__name__)

_SUBDOMAIN_DISALLOWED = re.compile(r"[^a-z0-9-]")


def normalize_subdomain(raw: str) -> str:
    return _SUBDOMAIN_DISALLOWED.sub("", raw.strip().lower())


def generate_temp_password() -> str:
    """16 URL-safe characters (12 random bytes)."""
    return secrets.token_urlsafe(12)[:16]


@dataclass(frozen=True)
class ProvisionResult:
    site: Site
    temp_password: str | None


def ensure_profile(db: Session, identity: Identity, role: Role = Role.CLIENT) -> Profile:
    """
    Return the identity's profile, creating it when missing.

    Existing profiles are never modified (role changes are an external admin action).
    """

    profile = db.get(Profile, identity.id)
    if profile is not None:
        return profile

    profile = Profile(
        id=identity.id,
        email=identity.email,
        role=role,
        subscription_status=SubscriptionStatus.TRIAL,
    )
    db.add(profile)
    db.flush()
    logger.info("Profile created identity_id=%s role=%s", identity.id, role.value)
    return profile


def _resolve_client_identity(provider: IdentityProviderClient, email: str) -> tuple[Identity, str | None]:
    try:
        existing = provider.find_user_by_email(email)
        if existing is not None:
            return existing, None

        temp_password = generate_temp_password()
        identity = provider.create_user(email, temp_password, metadata={"role": Role.CLIENT.value})
    except IdentityProviderError as exc:
        logger.warning("Identity provider failed during provisioning status=%s", exc.status_code)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Identity provider error while provisioning the client account",
        ) from exc

    return identity, temp_password


def create_client_site(db: Session, provider: IdentityProviderClient, payload: SiteCreateIn) -> ProvisionResult:
    email = payload.client_email.strip()
    name = payload.site_name.strip()
    subdomain = normalize_subdomain(payload.subdomain)
    if not email or not name or not subdomain:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email, site name, and subdomain are required.",
        )

    if db.scalars(select(Site.id).where(Site.subdomain == subdomain)).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Subdomain {subdomain!r} is taken")

    identity, temp_password = _resolve_client_identity(provider, email)

    profile = ensure_profile(db, identity)
    if profile.role is not Role.CLIENT:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Sites can only be owned by client accounts",
        )

    site = Site(
        owner_id=profile.id,
        name=name,
        subdomain=subdomain,
        deploy_webhook_url=(payload.deploy_webhook_url or "").strip() or None,
        content={},
    )
    db.add(site)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Subdomain {subdomain!r} is taken") from exc

    db.refresh(site)
    logger.info(
        "Client site provisioned site_id=%s owner_id=%s new_identity=%s",
        site.id,
        profile.id,
        temp_password is not None,
    )
    return ProvisionResult(site=site, temp_password=temp_password)
