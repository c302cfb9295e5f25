from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepanel.access.roles import Role, SubscriptionStatus
from sitepanel.db.base import Base


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Profile(Base):
    """
    One row per identity-provider user (`id` is the provider's user id).

    Rows are created by provisioning (or the bootstrap seed), never by the
    access gate, which only reads them.
    """

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    role: Mapped[Role] = mapped_column(
        Enum(Role, name="profile_role", values_callable=_enum_values, validate_strings=True),
        default=Role.CLIENT,
        nullable=False,
    )
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus, name="subscription_status", values_callable=_enum_values),
        default=SubscriptionStatus.TRIAL,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    sites: Mapped[list["Site"]] = relationship(back_populates="owner")
