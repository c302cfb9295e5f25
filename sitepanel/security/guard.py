"""
Zone guards: per-router re-enforcement of the access policy.

The gate covers the first navigation. A guard runs again inside each
role-specific router, so a stale role, a request that skipped the gate, or
an app assembled without the middleware still cannot reach the wrong zone.
It reuses `AccessPolicy.zone_decision`; the public-route bypass is not
repeated because a guarded router is never public.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import RedirectResponse

from sitepanel.access.policy import AccessPolicy, RouteZone
from sitepanel.security.context import SessionState

logger = logging.getLogger(__name__)


class GuardStatus(str, enum.Enum):
    PENDING = "pending"
    RENDER = "render"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardOutcome:
    status: GuardStatus
    redirect_to: str | None = None


PENDING = GuardOutcome(GuardStatus.PENDING)
RENDER = GuardOutcome(GuardStatus.RENDER)


class RouteGuard:
    """
    One guard per mounted zone layout.

    Lifecycle:
        guard.mount()    subscribe to the SessionState; settle now if already resolved
        ...              while `state.loading`: outcome stays PENDING, nothing navigates
        guard.unmount()  unsubscribe; an unsettled guard is discarded silently

    The guard settles exactly once per mount, to RENDER or to REDIRECT (in
    which case `navigate(target)` is called once).
    """

    def __init__(
        self,
        zone: RouteZone,
        path: str,
        policy: AccessPolicy,
        state: SessionState,
        navigate: Callable[[str], None] | None = None,
    ) -> None:
        self.zone = zone
        self.path = path
        self._policy = policy
        self._state = state
        self._navigate = navigate
        self._unsubscribe: Callable[[], None] | None = None
        self.outcome: GuardOutcome = PENDING

    @property
    def mounted(self) -> bool:
        return self._unsubscribe is not None

    def mount(self) -> None:
        if self.mounted:
            return
        self._unsubscribe = self._state.subscribe(self._on_state)
        self._on_state(self._state)

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_state(self, state: SessionState) -> None:
        if not self.mounted or state.loading or self.outcome is not PENDING:
            return

        if state.identity is None:
            target = self._policy.login_redirect(self.path)
        else:
            target = self._policy.zone_decision(self.zone, state.role).redirect_to

        if target is None:
            self.outcome = RENDER
            return

        self.outcome = GuardOutcome(GuardStatus.REDIRECT, target)
        logger.info("Guard redirect zone=%s path=%s target=%s", self.zone.value, self.path, target)
        if self._navigate is not None:
            self._navigate(target)


class GuardRedirect(Exception):
    """Raised by a zone dependency; rendered as a plain 302 (no error body)."""

    def __init__(self, target: str) -> None:
        super().__init__(target)
        self.target = target


async def guard_redirect_handler(request: Request, exc: GuardRedirect) -> RedirectResponse:
    response = RedirectResponse(exc.target, status_code=302)
    # Behind the gate, the gate applies the session cookies to this response itself.
    session = getattr(request.state, "session", None)
    if session is not None and not getattr(request.state, "gated", False):
        session.apply_cookies(response)
    return response
