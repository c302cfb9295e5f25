from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from sitepanel.access.roles import Role
from sitepanel.models import ContentSection, Profile, Site
from sitepanel.schemas.accounts import ProfileOut

logger = logging.getLogger(__name__)


def _not_found(what: str) -> HTTPException:
    # Rows the caller does not own look exactly like missing rows.
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def can_edit_site(profile: ProfileOut, site: Site) -> bool:
    """Owning client or any super_admin."""
    return profile.role is Role.SUPER_ADMIN or (profile.role is Role.CLIENT and site.owner_id == profile.id)


# ---- Reads -----------------------------------------------------------------------------


def list_sites_with_owner(db: Session) -> list[tuple[Site, str | None]]:
    stmt = (
        select(Site, Profile.email)
        .join(Profile, Site.owner_id == Profile.id)
        .order_by(Site.created_at.desc(), Site.id)
    )
    return [(site, email) for site, email in db.execute(stmt).all()]


def dashboard_counts(db: Session) -> dict[str, int]:
    site_count = db.scalar(select(func.count(Site.id))) or 0
    published_count = db.scalar(select(func.count(Site.id)).where(Site.is_published.is_(True))) or 0
    client_count = db.scalar(select(func.count(Profile.id)).where(Profile.role == Role.CLIENT)) or 0
    return {"site_count": site_count, "published_count": published_count, "client_count": client_count}


def get_site(db: Session, site_id: str) -> Site:
    site = db.get(Site, site_id)
    if site is None:
        raise _not_found("Site")
    return site


def list_owned_sites(db: Session, owner_id: str) -> list[Site]:
    stmt = select(Site).where(Site.owner_id == owner_id).order_by(Site.created_at.desc(), Site.id)
    return list(db.scalars(stmt).all())


def get_owned_site(db: Session, owner_id: str, site_id: str | None = None) -> Site:
    """
    The caller's site by id, or their active (newest) site when `site_id` is None.
    """

    stmt = select(Site).where(Site.owner_id == owner_id)
    if site_id is not None:
        stmt = stmt.where(Site.id == site_id)
    else:
        stmt = stmt.order_by(Site.created_at.desc(), Site.id).limit(1)
    site = db.scalars(stmt).first()
    if site is None:
        raise _not_found("Site")
    return site


def get_editable_site(db: Session, profile: ProfileOut, site_id: str) -> Site:
    site = db.get(Site, site_id)
    if site is None or not can_edit_site(profile, site):
        raise _not_found("Site")
    return site


def list_sections(db: Session, site_id: str) -> list[ContentSection]:
    stmt = select(ContentSection).where(ContentSection.site_id == site_id).order_by(ContentSection.section_key)
    return list(db.scalars(stmt).all())


def sections_by_key(sections: list[ContentSection]) -> dict[str, dict[str, Any]]:
    """{"hero": {...}, "pricing": {...}} for API consumers of a site's content."""
    return {section.section_key: section.content for section in sections}


# ---- Writes ----------------------------------------------------------------------------


def merge_site_content(db: Session, site: Site, updates: dict[str, Any]) -> Site:
    """Shallow-merge `updates` into `site.content`; untouched keys are kept."""
    site.content = {**(site.content or {}), **updates}
    db.commit()
    db.refresh(site)
    logger.info("Site content updated site_id=%s keys=%s", site.id, sorted(updates))
    return site


def create_section(db: Session, site: Site, section_key: str, content: dict[str, Any]) -> ContentSection:
    section_key = section_key.strip()
    if not section_key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Section key is required")

    section = ContentSection(site_id=site.id, section_key=section_key, content=content)
    db.add(section)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Section {section_key!r} already exists for this site",
        ) from exc
    db.refresh(section)
    logger.info("Section created site_id=%s section_key=%s", site.id, section.section_key)
    return section


def _owned_section(db: Session, owner_id: str, section_id: str) -> ContentSection:
    stmt = (
        select(ContentSection)
        .join(Site, ContentSection.site_id == Site.id)
        .where(ContentSection.id == section_id, Site.owner_id == owner_id)
    )
    section = db.scalars(stmt).first()
    if section is None:
        raise _not_found("Section")
    return section


def update_owned_section(db: Session, owner_id: str, section_id: str, content: dict[str, Any]) -> ContentSection:
    section = _owned_section(db, owner_id, section_id)
    section.content = content
    db.commit()
    db.refresh(section)
    return section


def batch_update_owned_sections(
    db: Session, owner_id: str, updates: list[tuple[str, dict[str, Any]]]
) -> list[ContentSection]:
    """
    Replace the content of several sections in one transaction.

    Stops at the first missing or foreign section; nothing is written then.
    """

    updated: list[ContentSection] = []
    try:
        for section_id, content in updates:
            section = _owned_section(db, owner_id, section_id)
            section.content = content
            updated.append(section)
        db.commit()
    except HTTPException:
        db.rollback()
        raise

    for section in updated:
        db.refresh(section)
    logger.info("Sections updated owner_id=%s count=%d", owner_id, len(updated))
    return updated


def load_site_with_sections(db: Session, site_id: str) -> Site:
    stmt = select(Site).where(Site.id == site_id).options(selectinload(Site.sections))
    site = db.scalars(stmt).first()
    if site is None:
        raise _not_found("Site")
    return site
