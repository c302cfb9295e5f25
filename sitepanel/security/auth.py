from __future__ import annotations

from fastapi import Request
from sqlalchemy.orm import Session

from sitepanel.models import Profile


def read_session_cookies(request: Request, access_cookie: str, refresh_cookie: str) -> tuple[str | None, str | None]:
    """
    Return the (access_token, refresh_token) pair from request cookies.

    Empty values count as absent. Tokens are opaque here; verification
    happens in `sitepanel.identity.validator`.
    """

    access = (request.cookies.get(access_cookie) or "").strip() or None
    refresh = (request.cookies.get(refresh_cookie) or "").strip() or None
    return access, refresh


def get_profile(db: Session, identity_id: str) -> Profile | None:
    """The only profile query the access core issues. Read-only."""
    return db.get(Profile, identity_id)
