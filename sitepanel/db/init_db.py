from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from sitepanel.access.roles import Role, SubscriptionStatus
from sitepanel.db.base import Base
from sitepanel.db.session import SessionLocal, engine
from sitepanel.models import Profile
from sitepanel.settings import get_settings

logger = logging.getLogger(__name__)


def init_db() -> None:
    """
    Create tables, then bootstrap the first super_admin profile when
    `SITEPANEL_BOOTSTRAP_ADMIN_ID` is set and no super_admin exists yet.

    The identity itself must already exist at the identity provider.
    """

    Base.metadata.create_all(bind=engine)

    settings = get_settings()
    if not settings.bootstrap_admin_id:
        return

    with SessionLocal() as db:
        bootstrap_super_admin(db, settings.bootstrap_admin_id, settings.bootstrap_admin_email)


def bootstrap_super_admin(db: Session, identity_id: str, email: str | None = None) -> Profile | None:
    if db.execute(select(Profile.id).where(Profile.role == Role.SUPER_ADMIN).limit(1)).first() is not None:
        return None

    profile = db.get(Profile, identity_id)
    if profile is not None:
        # Existing row for this identity: leave it alone; role changes are an external admin action.
        logger.warning("Bootstrap admin id already has a %s profile; not promoting", profile.role.value)
        return None

    profile = Profile(
        id=identity_id,
        email=email,
        role=Role.SUPER_ADMIN,
        subscription_status=SubscriptionStatus.ACTIVE,
    )
    db.add(profile)
    db.commit()
    logger.info("Bootstrapped super_admin profile identity_id=%s", identity_id)
    return profile
