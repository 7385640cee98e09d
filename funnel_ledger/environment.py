"""
environment.py — environment descriptors for recorded events.

The host (browser bridge, test, CLI) hands over what it knows about the page; this
module turns the URL into a page category and pulls UTM parameters out of it.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel, ConfigDict

from funnel_ledger.schemas import Page

UTM_PARAMS: tuple[str, ...] = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")

# (page, path markers) — first match wins
_PAGE_MARKERS: tuple[tuple[Page, tuple[str, ...]], ...] = (
    ("quiz", ("index", "quiz")),
    ("sales", ("vendas", "sales")),
    ("dashboard", ("dashboard", "analytics")),
)


def detect_page(url: Optional[str]) -> Page:
    """Classify a URL by its last path segment; a bare directory means index.html."""
    segment = urlparse(url or "").path.split("/")[-1] or "index.html"
    for page, markers in _PAGE_MARKERS:
        if any(marker in segment for marker in markers):
            return page
    return "unknown"


def extract_utm_params(url: Optional[str]) -> dict[str, str]:
    """Non-empty UTM values from the query string (first value wins)."""
    query = parse_qs(urlparse(url or "").query)
    return {param: query[param][0] for param in UTM_PARAMS if query.get(param) and query[param][0]}


class PageContext(BaseModel):
    """What the host knows about the page emitting events. Stored verbatim, never validated."""
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    screen_resolution: Optional[str] = None   # "1920x1080"

    @property
    def page(self) -> Page:
        return detect_page(self.url)
