from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sitepanel.access.policy import RouteZone
from sitepanel.db.session import get_db
from sitepanel.schemas.accounts import ProfileOut
from sitepanel.schemas.sites import (
    ClientSectionCreateIn,
    ContentSectionOut,
    SectionBatchItemIn,
    SectionUpdateIn,
    SiteDetailOut,
    SiteOut,
)
from sitepanel.security.dependencies import ZoneGuard, get_current_profile
from sitepanel.services import sites as site_service

# Client zone. Ownership (`owner_id`) is verified on every read and write here.
router = APIRouter(prefix="/dashboard", tags=["dashboard"], dependencies=[Depends(ZoneGuard(RouteZone.CLIENT))])


@router.get("", response_model=list[SiteOut])
def my_sites(
    db: Session = Depends(get_db),
    profile: ProfileOut = Depends(get_current_profile),
) -> list[SiteOut]:
    return [SiteOut.model_validate(site) for site in site_service.list_owned_sites(db, profile.id)]


@router.get("/site/editor", response_model=SiteDetailOut)
def site_editor(
    site_id: str | None = None,
    db: Session = Depends(get_db),
    profile: ProfileOut = Depends(get_current_profile),
) -> SiteDetailOut:
    site = site_service.get_owned_site(db, profile.id, site_id)
    sections = site_service.list_sections(db, site.id)
    return SiteDetailOut(
        site=SiteOut.model_validate(site),
        sections=[ContentSectionOut.model_validate(s) for s in sections],
    )


@router.post("/site/editor/sections", status_code=status.HTTP_201_CREATED, response_model=ContentSectionOut)
def create_section(
    body: ClientSectionCreateIn,
    db: Session = Depends(get_db),
    profile: ProfileOut = Depends(get_current_profile),
) -> ContentSectionOut:
    site = site_service.get_owned_site(db, profile.id, body.site_id)
    return ContentSectionOut.model_validate(site_service.create_section(db, site, body.section_key, body.content))


@router.patch("/site/editor/sections/{section_id}", response_model=ContentSectionOut)
def update_section(
    section_id: str,
    body: SectionUpdateIn,
    db: Session = Depends(get_db),
    profile: ProfileOut = Depends(get_current_profile),
) -> ContentSectionOut:
    section = site_service.update_owned_section(db, profile.id, section_id, body.content)
    return ContentSectionOut.model_validate(section)


@router.put("/site/editor/sections", response_model=list[ContentSectionOut])
def batch_update_sections(
    body: list[SectionBatchItemIn],
    db: Session = Depends(get_db),
    profile: ProfileOut = Depends(get_current_profile),
) -> list[ContentSectionOut]:
    updated = site_service.batch_update_owned_sections(db, profile.id, [(item.id, item.content) for item in body])
    return [ContentSectionOut.model_validate(s) for s in updated]
