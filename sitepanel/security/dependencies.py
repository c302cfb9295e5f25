from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from sitepanel.access.policy import AccessPolicy, RouteZone
from sitepanel.identity import IdentityProviderClient
from sitepanel.schemas.accounts import ProfileOut
from sitepanel.security.context import SessionState
from sitepanel.security.guard import GuardRedirect, GuardStatus, RouteGuard
from sitepanel.security.session import ResolvedSession, SessionResolver


def get_access_policy(request: Request) -> AccessPolicy:
    policy = getattr(request.app.state, "access_policy", None)
    if policy is None:
        raise RuntimeError("Access policy not loaded. Did app startup run?")
    return policy


def get_session_resolver(request: Request) -> SessionResolver:
    resolver = getattr(request.app.state, "session_resolver", None)
    if resolver is None:
        raise RuntimeError("Session resolver not configured. Did app startup run?")
    return resolver


def get_identity_provider(request: Request) -> IdentityProviderClient:
    provider = getattr(request.app.state, "identity_provider", None)
    if provider is None:
        raise RuntimeError("Identity provider not configured. Did app startup run?")
    return provider


async def get_resolved_session(request: Request) -> ResolvedSession:
    """
    The session the gate resolved for this request.

    Falls back to resolving here when the gate did not run for this path
    (e.g. the app was assembled without the middleware).
    """

    session = getattr(request.state, "session", None)
    if session is None:
        session = await get_session_resolver(request).resolve(request)
        request.state.session = session
    return session


async def get_session_state(session: ResolvedSession = Depends(get_resolved_session)) -> SessionState:
    return SessionState.resolved(session.identity, session.profile)


class ZoneGuard:
    """
    Router-level dependency: `APIRouter(dependencies=[Depends(ZoneGuard(RouteZone.ADMIN))])`.

    Mounts a RouteGuard for the request, and raises GuardRedirect when the
    guard settles on a redirect.
    """

    def __init__(self, zone: RouteZone) -> None:
        self.zone = zone

    async def __call__(
        self,
        request: Request,
        state: SessionState = Depends(get_session_state),
        policy: AccessPolicy = Depends(get_access_policy),
    ) -> SessionState:
        guard = RouteGuard(self.zone, request.url.path, policy, state)
        guard.mount()
        try:
            outcome = guard.outcome
        finally:
            guard.unmount()

        if outcome.status is GuardStatus.REDIRECT:
            raise GuardRedirect(outcome.redirect_to)
        return state


def get_current_profile(state: SessionState = Depends(get_session_state)) -> ProfileOut:
    if state.identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    if state.profile is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No profile for this account")
    return state.profile