from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sitepanel.access.config import load_access_config
from sitepanel.access.policy import AccessPolicy
from sitepanel.db.init_db import init_db
from sitepanel.db.session import SessionLocal
from sitepanel.identity import IdentityConfig, IdentityProviderClient, SessionTokenValidator
from sitepanel.logging_config import configure_app_logging
from sitepanel.routers import admin, auth, dashboard, health, me, sites
from sitepanel.security.gate import AccessGateMiddleware
from sitepanel.security.guard import GuardRedirect, guard_redirect_handler
from sitepanel.security.session import SessionResolver
from sitepanel.settings import get_settings

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        # Anything already on app.state (tests, embedding apps) is left as is.
        if getattr(app.state, "access_policy", None) is None:
            policy_path = settings.resolved_access_policy_path()
            app.state.access_policy = AccessPolicy.from_config(load_access_config(policy_path))
            logger.info("Loaded access policy: %s", policy_path)

        if getattr(app.state, "session_resolver", None) is None:
            identity_config = IdentityConfig.from_environ()
            app.state.identity_provider = IdentityProviderClient(identity_config)
            app.state.session_resolver = SessionResolver.from_settings(
                settings,
                SessionTokenValidator(identity_config),
                app.state.identity_provider,
                SessionLocal,
            )
            logger.info("Identity provider configured url=%s", identity_config.url)

        init_db()
        logger.info("Database initialized (tables ensured + bootstrap admin if configured)")

        yield

    app = FastAPI(title="SitePanel", lifespan=lifespan)

    # Runs before routing for every request (static assets excluded by config).
    app.add_middleware(AccessGateMiddleware)
    app.add_exception_handler(GuardRedirect, guard_redirect_handler)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(me.router)
    app.include_router(admin.router)
    app.include_router(dashboard.router)
    app.include_router(sites.router)

    return app


app = create_app()
