"""
Request gate end to end: the real app, the gate middleware, and the zone guards.

Uses the `client` fixture (TestClient, redirects not followed).
"""
from __future__ import annotations

from sitepanel.access.roles import Role
from sitepanel.identity import SessionRefreshRejected, SessionTokens

ACCESS = "sp-access-token"
REFRESH = "sp-refresh-token"


def _set_cookie_headers(response) -> list[str]:
    return response.headers.get_list("set-cookie")


def test_unauthenticated_editor_redirects_to_login(client):
    response = client.get("/dashboard/site/editor")
    assert response.status_code == 302
    assert response.headers["location"] == "/login?redirectTo=/dashboard/site/editor"


def test_client_in_admin_zone_redirected_home(client, make_profile, sign_in):
    sign_in(make_profile("client-1", Role.CLIENT))
    response = client.get("/admin/sites")
    assert response.status_code == 302
    assert response.headers["location"] == "/dashboard"


def test_super_admin_in_client_zone_redirected_home(client, make_profile, sign_in):
    sign_in(make_profile("admin-1", Role.SUPER_ADMIN))
    response = client.get("/dashboard")
    assert response.status_code == 302
    assert response.headers["location"] == "/admin/dashboard"


def test_super_admin_in_admin_zone_allowed(client, make_profile, sign_in):
    sign_in(make_profile("admin-1", Role.SUPER_ADMIN))
    response = client.get("/admin/sites")
    assert response.status_code == 200
    assert response.json() == []


def test_login_page_allowed_without_session(client):
    response = client.get("/login", params={"redirectTo": "/dashboard"})
    assert response.status_code == 200
    assert response.json()["redirect_to"] == "/dashboard"


def test_public_prefix_with_trailing_slash_allowed(client):
    assert client.get("/login/").status_code != 302


def test_unknown_path_still_gated(client):
    response = client.get("/no/such/page")
    assert response.status_code == 302
    assert response.headers["location"] == "/login?redirectTo=/no/such/page"


def test_unknown_path_authenticated_falls_through_to_404(client, make_profile, sign_in):
    sign_in(make_profile("client-1"))
    assert client.get("/no/such/page").status_code == 404


def test_static_assets_skip_the_gate(client, fake_provider):
    # No route serves these; a 404 (not a login redirect) shows the gate stepped aside.
    assert client.get("/static/app.css").status_code == 404
    assert client.get("/favicon.ico").status_code == 404
    assert client.get("/images/logo.png").status_code == 404


def test_health_needs_no_session(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_refreshed_cookie_carried_on_redirect(client, fake_provider, make_profile, make_token):
    make_profile("client-1", Role.CLIENT)
    new_access = make_token("client-1")
    fake_provider.refresh_result = SessionTokens(new_access, "refresh-2", 3600)
    client.cookies.set(ACCESS, make_token("client-1", expires_in=-3600))
    client.cookies.set(REFRESH, "refresh-1")

    response = client.get("/admin/sites")

    assert response.status_code == 302
    assert response.headers["location"] == "/dashboard"
    assert response.cookies.get(ACCESS) == new_access
    assert response.cookies.get(REFRESH) == "refresh-2"


def test_refreshed_cookie_carried_on_allow(client, fake_provider, make_profile, make_token):
    make_profile("client-1", Role.CLIENT)
    new_access = make_token("client-1")
    fake_provider.refresh_result = SessionTokens(new_access, "refresh-2", 3600)
    client.cookies.set(ACCESS, make_token("client-1", expires_in=-3600))
    client.cookies.set(REFRESH, "refresh-1")

    response = client.get("/dashboard")

    assert response.status_code == 200
    assert response.cookies.get(ACCESS) == new_access
    headers = _set_cookie_headers(response)
    assert sum(h.startswith(f"{ACCESS}=") for h in headers) == 1
    assert all("httponly" in h.lower() for h in headers)


def test_rejected_refresh_clears_cookies_on_login_redirect(client, fake_provider, make_token):
    fake_provider.refresh_result = SessionRefreshRejected("revoked", status_code=400)
    client.cookies.set(ACCESS, make_token("client-1", expires_in=-3600))
    client.cookies.set(REFRESH, "refresh-1")

    response = client.get("/dashboard")

    assert response.status_code == 302
    assert response.headers["location"] == "/login?redirectTo=/dashboard"
    headers = _set_cookie_headers(response)
    assert any(h.startswith(f"{ACCESS}=") and "Max-Age=0" in h for h in headers)
    assert any(h.startswith(f"{REFRESH}=") and "Max-Age=0" in h for h in headers)


def test_identity_without_profile_denied_both_zones(client, sign_in):
    sign_in("orphan")
    assert client.get("/admin/dashboard").headers["location"] == "/dashboard"
    assert client.get("/dashboard").headers["location"] == "/"


def test_identity_without_profile_allowed_on_neutral_route(client, sign_in):
    sign_in("orphan")
    response = client.get("/me")
    assert response.status_code == 200
    assert response.json()["identity"]["id"] == "orphan"
    assert response.json()["profile"] is None


def test_me_reports_session(client, make_profile, sign_in):
    sign_in(make_profile("client-1", Role.CLIENT, email="c1@example.com"), email="c1@example.com")
    body = client.get("/me").json()
    assert body["loading"] is False
    assert body["identity"] == {"id": "client-1", "email": "c1@example.com"}
    assert body["profile"]["role"] == "client"


def test_no_lookup_when_no_cookies(client, fake_provider):
    client.get("/dashboard")
    assert fake_provider.calls == []
