"""Jinja2 rendering for the HTML views."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

from openheart.reviews.models import render_stars

_TEMPLATES_DIR = Path(__file__).parent / "templates"


def _filter_stars(rating: int) -> str:
    return render_stars(int(rating))


def _filter_format_date(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime("%b %d, %Y")


def build_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["stars"] = _filter_stars
    env.filters["format_date"] = _filter_format_date
    return env


class PageRenderer:
    """Renders templates into HTML responses with shared site context."""

    def __init__(self, site_name: str, tagline: str):
        self._env = build_environment()
        self._globals = {"site_name": site_name, "tagline": tagline}

    def render(
        self, template_name: str, status_code: int = 200, **context
    ) -> HTMLResponse:
        template = self._env.get_template(template_name)
        html = template.render(**self._globals, **context)
        return HTMLResponse(html, status_code=status_code)
