from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from sitepanel.db.session import get_db
from sitepanel.rendering import SITE_TEMPLATE, site_context, templates
from sitepanel.schemas.accounts import ProfileOut
from sitepanel.security.dependencies import get_current_profile
from sitepanel.services import sites as site_service

router = APIRouter(tags=["sites"])


@router.get("/sites/{site_id}", response_class=HTMLResponse)
def published_site(request: Request, site_id: str, db: Session = Depends(get_db)) -> HTMLResponse:
    site = site_service.get_site(db, site_id)
    return templates.TemplateResponse(
        request=request,
        name=SITE_TEMPLATE,
        context=site_context(site.name, site.content),
    )


@router.get("/api/content/{site_id}")
def site_content(
    site_id: str,
    db: Session = Depends(get_db),
    profile: ProfileOut = Depends(get_current_profile),
) -> dict[str, Any]:
    site = site_service.get_editable_site(db, profile, site_id)
    return site_service.sections_by_key(site_service.list_sections(db, site.id))
