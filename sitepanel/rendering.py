from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from fastapi.templating import Jinja2Templates

DEFAULT_COPY = {
    "heroTitle": "Welcome to our website",
    "heroSubtitle": "We build amazing things.",
    "bodyText": "Add your content here...",
}

SITE_TEMPLATE = "site.html"

# Autoescaping is on for every template loaded here.
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def _text(content: Mapping[str, Any], key: str, default: str) -> str:
    value = content.get(key)
    if value is None or value == "":
        return default
    return str(value)


def site_context(name: str, content: Mapping[str, Any] | None) -> dict[str, str]:
    """
    Template variables for the published site, from `Site.content`.

    Missing or empty keys fall back to DEFAULT_COPY.
    """

    content = content or {}
    return {
        "title": _text(content, "meta_title", name),
        "description": _text(content, "meta_description", ""),
        "name": name,
        "hero_title": _text(content, "heroTitle", DEFAULT_COPY["heroTitle"]),
        "hero_subtitle": _text(content, "heroSubtitle", DEFAULT_COPY["heroSubtitle"]),
        "body_text": _text(content, "bodyText", DEFAULT_COPY["bodyText"]),
    }


def render_site(name: str, content: Mapping[str, Any] | None) -> str:
    return templates.get_template(SITE_TEMPLATE).render(site_context(name, content))
