from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepanel.db.base import Base
from sitepanel.models.accounts import Profile


def _new_id() -> str:
    return str(uuid.uuid4())


class Site(Base):
    __tablename__ = "sites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Lowercase [a-z0-9-]; normalized by provisioning before insert.
    subdomain: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)

    # Site-level settings and hero/body copy (heroTitle, heroSubtitle, bodyText, theme, ...).
    content: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    deploy_webhook_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    owner: Mapped[Profile] = relationship(back_populates="sites")
    sections: Mapped[list["ContentSection"]] = relationship(
        back_populates="site",
        order_by="ContentSection.section_key",
    )


class ContentSection(Base):
    __tablename__ = "website_content"
    __table_args__ = (UniqueConstraint("site_id", "section_key"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    site_id: Mapped[str] = mapped_column(ForeignKey("sites.id"), nullable=False, index=True)
    section_key: Mapped[str] = mapped_column(String(100), nullable=False)

    content: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    site: Mapped[Site] = relationship(back_populates="sections")
