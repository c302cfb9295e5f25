from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from sitepanel.access.policy import RouteZone
from sitepanel.db.session import get_db
from sitepanel.identity import IdentityProviderClient, IdentityProviderError
from sitepanel.schemas.accounts import (
    AccountSettingsOut,
    EmailUpdateIn,
    PasswordUpdateIn,
    ProfileOut,
    SettingsMessageOut,
)
from sitepanel.schemas.sites import (
    AdminDashboardOut,
    ContentSectionOut,
    ProvisionedSiteOut,
    SectionCreateIn,
    SiteContentUpdateIn,
    SiteCreateIn,
    SiteDetailOut,
    SiteOut,
    SiteWithOwnerOut,
)
from sitepanel.security.dependencies import (
    ZoneGuard,
    get_current_profile,
    get_identity_provider,
    get_resolved_session,
    get_session_resolver,
)
from sitepanel.security.session import ResolvedSession, SessionResolver
from sitepanel.services import provisioning
from sitepanel.services import sites as site_service

logger = logging.getLogger(__name__)

# Every route below is re-checked by the super_admin zone guard.
router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(ZoneGuard(RouteZone.ADMIN))])


@router.get("/dashboard", response_model=AdminDashboardOut)
def admin_dashboard(db: Session = Depends(get_db)) -> AdminDashboardOut:
    return AdminDashboardOut(**site_service.dashboard_counts(db))


@router.get("/sites", response_model=list[SiteWithOwnerOut])
def list_sites(db: Session = Depends(get_db)) -> list[SiteWithOwnerOut]:
    return [
        SiteWithOwnerOut(**SiteOut.model_validate(site).model_dump(), owner_email=email)
        for site, email in site_service.list_sites_with_owner(db)
    ]


@router.post("/sites", status_code=status.HTTP_201_CREATED, response_model=ProvisionedSiteOut)
def create_site(
    body: SiteCreateIn,
    db: Session = Depends(get_db),
    provider: IdentityProviderClient = Depends(get_identity_provider),
) -> ProvisionedSiteOut:
    result = provisioning.create_client_site(db, provider, body)
    return ProvisionedSiteOut(site=SiteOut.model_validate(result.site), temp_password=result.temp_password)


@router.get("/sites/{site_id}", response_model=SiteDetailOut)
def get_site(site_id: str, db: Session = Depends(get_db)) -> SiteDetailOut:
    site = site_service.load_site_with_sections(db, site_id)
    return SiteDetailOut(
        site=SiteOut.model_validate(site),
        sections=[ContentSectionOut.model_validate(s) for s in site.sections],
    )


@router.put("/sites/{site_id}/content", response_model=SiteOut)
def update_site_content(site_id: str, body: SiteContentUpdateIn, db: Session = Depends(get_db)) -> SiteOut:
    site = site_service.get_site(db, site_id)
    return SiteOut.model_validate(site_service.merge_site_content(db, site, body.content))


@router.post("/sites/{site_id}/sections", status_code=status.HTTP_201_CREATED, response_model=ContentSectionOut)
def create_section(site_id: str, body: SectionCreateIn, db: Session = Depends(get_db)) -> ContentSectionOut:
    site = site_service.get_site(db, site_id)
    return ContentSectionOut.model_validate(site_service.create_section(db, site, body.section_key, body.content))


@router.get("/settings", response_model=AccountSettingsOut)
def account_settings(profile: ProfileOut = Depends(get_current_profile)) -> AccountSettingsOut:
    return AccountSettingsOut(
        email=profile.email,
        role=profile.role,
        subscription_status=profile.subscription_status,
    )


def _update_own_account(
    request: Request,
    session: ResolvedSession,
    resolver: SessionResolver,
    provider: IdentityProviderClient,
    **changes: str,
) -> None:
    access_token = resolver.access_token_for(request, session)
    if access_token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        provider.update_user(access_token, **changes)
    except IdentityProviderError as exc:
        logger.info("Account update failed fields=%s status=%s", sorted(changes), exc.status_code)
        if exc.status_code is not None and 400 <= exc.status_code < 500:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Update rejected") from exc
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Identity provider unavailable") from exc


@router.put("/settings/email", response_model=SettingsMessageOut)
def update_email(
    body: EmailUpdateIn,
    request: Request,
    session: ResolvedSession = Depends(get_resolved_session),
    resolver: SessionResolver = Depends(get_session_resolver),
    provider: IdentityProviderClient = Depends(get_identity_provider),
) -> SettingsMessageOut:
    # The profile email stays as is until the new address is confirmed.
    _update_own_account(request, session, resolver, provider, email=body.email)
    return SettingsMessageOut(message="Email update confirmation sent to new address.")


@router.put("/settings/password", response_model=SettingsMessageOut)
def update_password(
    body: PasswordUpdateIn,
    request: Request,
    session: ResolvedSession = Depends(get_resolved_session),
    resolver: SessionResolver = Depends(get_session_resolver),
    provider: IdentityProviderClient = Depends(get_identity_provider),
) -> SettingsMessageOut:
    if body.password != body.confirm_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords don't match")
    _update_own_account(request, session, resolver, provider, password=body.password)
    return SettingsMessageOut(message="Password updated successfully.")
