"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. App-level tests get a
plain session factory on the same engine (the session resolver opens its own
sessions from a worker thread, hence the StaticPool).

Session tokens are HS256-signed with TEST_JWT_SECRET; the identity provider
is replaced by FakeIdentityProvider, so no test touches the network.
"""
from __future__ import annotations

import time
from typing import Any

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sitepanel.access.config import AccessConfigModel
from sitepanel.access.policy import AccessPolicy
from sitepanel.access.roles import Role, SubscriptionStatus
from sitepanel.identity import Identity, IdentityConfig, IdentityProviderError, SessionTokens, SessionTokenValidator


TEST_DB_URL = "sqlite://"
TEST_JWT_SECRET = "sitepanel-test-secret-" + "x" * 32
ACCESS_COOKIE = "sp-access-token"
REFRESH_COOKIE = "sp-refresh-token"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test (one shared connection)."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    import sitepanel.models  # noqa: F401
    from sitepanel.db.base import Base
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    Use this in tests that need a database (e.g. data layer tests). The
    transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def session_factory(tables):
    """Sessions that really commit and roll back (the engine is discarded after the test)."""
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def make_profile(session_factory):
    """Insert a Profile and return its id."""
    from sitepanel.models import Profile

    def _make(
        identity_id: str,
        role: Role = Role.CLIENT,
        email: str | None = None,
        subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    ) -> str:
        with session_factory() as db:
            db.add(
                Profile(
                    id=identity_id,
                    email=email or f"{identity_id}@example.com",
                    role=role,
                    subscription_status=subscription_status,
                )
            )
            db.commit()
        return identity_id

    return _make


# ---- Identity ---------------------------------------------------------------------------


@pytest.fixture
def identity_config() -> IdentityConfig:
    return IdentityConfig(
        url="https://idp.example.test/auth/v1",
        api_key="anon-key",
        service_role_key="service-key",
        jwt_secret=TEST_JWT_SECRET,
        jwks_url=None,
        audience="authenticated",
        issuer=None,
        clock_skew_seconds=30,
        jwks_cache_ttl_seconds=3600,
    )


@pytest.fixture
def make_token():
    """Signed access token for `sub`; negative `expires_in` gives an expired token."""

    def _make(sub: str, *, email: str | None = None, expires_in: int = 3600, **claims: Any) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": sub,
            "aud": "authenticated",
            "iat": now,
            "exp": now + expires_in,
        }
        if email is not None:
            payload["email"] = email
        payload.update(claims)
        return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")

    return _make


class FakeIdentityProvider:
    """
    In-memory stand-in for IdentityProviderClient.

    Each `*_result` attribute is either the value to return or an exception
    to raise; unset results raise IdentityProviderError. Every call is
    recorded in `calls`.
    """

    def __init__(self) -> None:
        self.refresh_result: SessionTokens | Exception | None = None
        self.sign_in_result: SessionTokens | Exception | None = None
        self.exchange_result: SessionTokens | Exception | None = None
        self.sign_up_result: Identity | Exception | None = None
        # None means the update succeeds.
        self.update_user_result: Exception | None = None
        self.updates: list[dict[str, str | None]] = []
        self.users: dict[str, Identity] = {}
        self.calls: list[tuple[str, str]] = []

    @staticmethod
    def _answer(result):
        if result is None:
            raise IdentityProviderError("no canned response", status_code=500)
        if isinstance(result, Exception):
            raise result
        return result

    def refresh_session(self, refresh_token: str) -> SessionTokens:
        self.calls.append(("refresh_session", refresh_token))
        return self._answer(self.refresh_result)

    def sign_in_with_password(self, email: str, password: str) -> SessionTokens:
        self.calls.append(("sign_in_with_password", email))
        return self._answer(self.sign_in_result)

    def exchange_code(self, code: str) -> SessionTokens:
        self.calls.append(("exchange_code", code))
        return self._answer(self.exchange_result)

    def sign_up(self, email: str, password: str) -> Identity:
        self.calls.append(("sign_up", email))
        return self._answer(self.sign_up_result)

    def sign_out(self, access_token: str) -> None:
        self.calls.append(("sign_out", access_token))

    def update_user(self, access_token: str, *, email: str | None = None, password: str | None = None) -> None:
        self.calls.append(("update_user", access_token))
        self.updates.append({"email": email, "password": password})
        if isinstance(self.update_user_result, Exception):
            raise self.update_user_result

    def find_user_by_email(self, email: str) -> Identity | None:
        self.calls.append(("find_user_by_email", email))
        return self.users.get(email.lower())

    def create_user(self, email: str, password: str, *, metadata: dict[str, Any] | None = None) -> Identity:
        self.calls.append(("create_user", email))
        identity = Identity(id=f"idp-user-{len(self.users) + 1}", email=email)
        self.users[email.lower()] = identity
        return identity


@pytest.fixture
def fake_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def resolver(identity_config, fake_provider, session_factory):
    from sitepanel.security.session import SessionResolver

    return SessionResolver(
        SessionTokenValidator(identity_config),
        fake_provider,
        session_factory,
        access_cookie=ACCESS_COOKIE,
        refresh_cookie=REFRESH_COOKIE,
    )


# ---- App --------------------------------------------------------------------------------


@pytest.fixture
def policy() -> AccessPolicy:
    return AccessPolicy.from_config(AccessConfigModel())


@pytest.fixture
def app(policy, resolver, fake_provider, session_factory):
    """
    The real app with the gate installed; lifespan is not run, so app.state
    is wired here and the DB dependency points at the test engine.
    """
    from sitepanel.db.session import get_db
    from sitepanel.main import create_app

    application = create_app()
    application.state.access_policy = policy
    application.state.session_resolver = resolver
    application.state.identity_provider = fake_provider

    def _get_test_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = _get_test_db
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def sign_in(client, make_token):
    """Put a valid access token for `identity_id` in the test client's cookie jar."""

    def _sign_in(identity_id: str, email: str | None = None) -> str:
        token = make_token(identity_id, email=email)
        client.cookies.set(ACCESS_COOKIE, token)
        return token

    return _sign_in
