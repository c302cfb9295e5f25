from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints


class ContentSectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    site_id: str
    section_key: str
    content: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class SiteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    name: str
    subdomain: str
    content: dict[str, Any]
    deploy_webhook_url: str | None
    is_published: bool
    created_at: datetime
    updated_at: datetime


class SiteWithOwnerOut(SiteOut):
    owner_email: str | None = None


class SiteDetailOut(BaseModel):
    site: SiteOut
    sections: list[ContentSectionOut]


class SiteCreateIn(BaseModel):
    client_email: str = Field(min_length=3, max_length=255)
    site_name: str = Field(min_length=1, max_length=200)
    subdomain: str = Field(min_length=1, max_length=63)
    deploy_webhook_url: str | None = None


class ProvisionedSiteOut(BaseModel):
    site: SiteOut
    # Only set when a new identity was minted for the client.
    temp_password: str | None = None


class SiteContentUpdateIn(BaseModel):
    content: dict[str, Any]


class SectionCreateIn(BaseModel):
    section_key: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    content: dict[str, Any] = Field(default_factory=dict)


class ClientSectionCreateIn(SectionCreateIn):
    site_id: str


class SectionUpdateIn(BaseModel):
    content: dict[str, Any]


class SectionBatchItemIn(BaseModel):
    id: str
    content: dict[str, Any]


class AdminDashboardOut(BaseModel):
    site_count: int
    published_count: int
    client_count: int
