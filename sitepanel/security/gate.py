from __future__ import annotations

import logging

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from sitepanel.security.dependencies import get_access_policy, get_session_resolver

logger = logging.getLogger(__name__)


class AccessGateMiddleware(BaseHTTPMiddleware):
    """
    Request gate: the single enforcement point for every inbound request.

    - Runs before routing: unknown paths are gated like any other.
    - Owns the session cookies for the whole response: cookie mutations
      from a refresh go on the redirect exactly as they would have gone on
      the pass-through response.

    Static-asset paths (see `gate.exclude` in the access policy YAML) are
    passed straight through without a session lookup.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        policy = get_access_policy(request)
        path = request.url.path

        if policy.is_excluded(path):
            return await call_next(request)

        session = await get_session_resolver(request).resolve(request)
        request.state.session = session
        request.state.gated = True

        decision = policy.decide(path, session.authenticated, session.role)

        if not decision.allowed:
            logger.info(
                "Gate redirect method=%s path=%s authenticated=%s role=%s target=%s",
                request.method,
                path,
                session.authenticated,
                session.role.value if session.role else None,
                decision.redirect_to,
            )
            response: Response = RedirectResponse(decision.redirect_to, status_code=302)
            return session.apply_cookies(response)

        logger.debug("Gate allow method=%s path=%s role=%s", request.method, path, session.role)
        response = await call_next(request)
        return session.apply_cookies(response)
