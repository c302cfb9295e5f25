"""Tests for the client dashboard routes; every operation is scoped to the caller's sites."""
from __future__ import annotations

import pytest

from sitepanel.access.roles import Role
from sitepanel.models import Site
from sitepanel.services.sites import create_section


@pytest.fixture
def make_site(session_factory):
    def _make(owner_id: str, subdomain: str) -> str:
        with session_factory() as db:
            site = Site(owner_id=owner_id, name=subdomain.title(), subdomain=subdomain, content={})
            db.add(site)
            db.commit()
            return site.id

    return _make


@pytest.fixture
def make_section(session_factory):
    def _make(site_id: str, key: str, content: dict) -> str:
        with session_factory() as db:
            return create_section(db, db.get(Site, site_id), key, content).id

    return _make


@pytest.fixture
def two_clients(make_profile, make_site, make_section):
    mine = make_site(make_profile("client-1"), "mine")
    theirs = make_site(make_profile("client-2"), "theirs")
    return {
        "mine": mine,
        "theirs": theirs,
        "my_section": make_section(mine, "hero", {"title": "v1"}),
        "their_section": make_section(theirs, "hero", {"title": "x"}),
    }


def test_my_sites(client, sign_in, two_clients):
    sign_in("client-1")
    sites = client.get("/dashboard").json()
    assert [s["id"] for s in sites] == [two_clients["mine"]]


def test_editor_loads_own_site_by_default(client, sign_in, two_clients):
    sign_in("client-1")
    body = client.get("/dashboard/site/editor").json()
    assert body["site"]["id"] == two_clients["mine"]
    assert [s["content"] for s in body["sections"]] == [{"title": "v1"}]


def test_editor_hides_foreign_site(client, sign_in, two_clients):
    sign_in("client-1")
    response = client.get("/dashboard/site/editor", params={"site_id": two_clients["theirs"]})
    assert response.status_code == 404


def test_create_section(client, sign_in, two_clients):
    sign_in("client-1")
    response = client.post(
        "/dashboard/site/editor/sections",
        json={"site_id": two_clients["mine"], "section_key": "pricing", "content": {"plans": []}},
    )
    assert response.status_code == 201
    assert response.json()["section_key"] == "pricing"


def test_create_section_on_foreign_site(client, sign_in, two_clients):
    sign_in("client-1")
    response = client.post(
        "/dashboard/site/editor/sections",
        json={"site_id": two_clients["theirs"], "section_key": "pricing"},
    )
    assert response.status_code == 404


def test_update_own_section(client, sign_in, two_clients):
    sign_in("client-1")
    response = client.patch(
        f"/dashboard/site/editor/sections/{two_clients['my_section']}",
        json={"content": {"title": "v2"}},
    )
    assert response.status_code == 200
    assert response.json()["content"] == {"title": "v2"}


def test_update_foreign_section(client, sign_in, two_clients):
    sign_in("client-1")
    response = client.patch(
        f"/dashboard/site/editor/sections/{two_clients['their_section']}",
        json={"content": {"title": "hijack"}},
    )
    assert response.status_code == 404


def test_batch_update_rejects_foreign_section(client, sign_in, two_clients):
    sign_in("client-1")
    response = client.put(
        "/dashboard/site/editor/sections",
        json=[
            {"id": two_clients["my_section"], "content": {"title": "v2"}},
            {"id": two_clients["their_section"], "content": {"title": "hijack"}},
        ],
    )
    assert response.status_code == 404

    editor = client.get("/dashboard/site/editor").json()
    assert editor["sections"][0]["content"] == {"title": "v1"}


def test_client_without_site(client, make_profile, sign_in):
    sign_in(make_profile("client-3"))
    assert client.get("/dashboard").json() == []
    assert client.get("/dashboard/site/editor").status_code == 404


def test_super_admin_redirected_from_editor(client, make_profile, sign_in):
    sign_in(make_profile("admin-1", Role.SUPER_ADMIN))
    response = client.get("/dashboard/site/editor")
    assert response.status_code == 302
    assert response.headers["location"] == "/admin/dashboard"


def test_create_section_blank_key_rejected(client, sign_in, two_clients):
    sign_in("client-1")
    response = client.post(
        "/dashboard/site/editor/sections",
        json={"site_id": two_clients["mine"], "section_key": "   "},
    )
    assert response.status_code == 422


def test_create_section_key_is_stripped(client, sign_in, two_clients):
    sign_in("client-1")
    response = client.post(
        "/dashboard/site/editor/sections",
        json={"site_id": two_clients["mine"], "section_key": "  faq  "},
    )
    assert response.status_code == 201
    assert response.json()["section_key"] == "faq"
