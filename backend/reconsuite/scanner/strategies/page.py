# reconsuite/scanner/strategies/page.py
"""
Shared plumbing for the page-based strategies (tech, parameters, vulnerabilities).

Each of them fetches the target page once and matches the injected
SignatureCatalog against the snapshot. An unreachable page is a probe
failure: the strategy logs it and returns an empty list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from ..base import BaseStrategy
from ..probes import PageSnapshot, fetch_page
from ..signatures import DEFAULT_CATALOG, SignatureCatalog

logger = logging.getLogger(__name__)

HARVESTED_TAGS = [
    "meta", "a", "link", "form", "script", "iframe", "img",
    "input", "select", "textarea",
]


@dataclass
class ParsedPage:
    """Meta tags, link targets and form field names found on a page."""
    meta: Dict[str, str] = field(default_factory=dict)
    links: List[str] = field(default_factory=list)
    # (field name, input type, default value)
    fields: List[Tuple[str, str, str]] = field(default_factory=list)


def _attr(tag, name: str) -> str:
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value or ""


def parse_page(body: str) -> ParsedPage:
    parsed = ParsedPage()
    soup = BeautifulSoup(body or "", "html.parser")

    for tag in soup.find_all(HARVESTED_TAGS):
        if tag.name == "meta":
            key = (_attr(tag, "name") or _attr(tag, "property")).lower()
            if key and tag.has_attr("content"):
                parsed.meta.setdefault(key, _attr(tag, "content"))
        elif tag.name in ("a", "link") and _attr(tag, "href"):
            parsed.links.append(_attr(tag, "href"))
        elif tag.name == "form" and _attr(tag, "action"):
            parsed.links.append(_attr(tag, "action"))
        elif tag.name in ("script", "iframe", "img") and _attr(tag, "src"):
            parsed.links.append(_attr(tag, "src"))
        elif tag.name in ("input", "select", "textarea") and _attr(tag, "name"):
            parsed.fields.append((
                _attr(tag, "name"),
                (_attr(tag, "type") or "text").lower(),
                _attr(tag, "value"),
            ))

    return parsed


class PageStrategy(BaseStrategy):

    def __init__(self, settings=None, catalog: Optional[SignatureCatalog] = None,
                 page_fetcher: Callable[..., Optional[PageSnapshot]] = fetch_page):
        super().__init__(settings)
        self.catalog = catalog or DEFAULT_CATALOG
        self.page_fetcher = page_fetcher

    def fetch(self, url: str) -> Optional[PageSnapshot]:
        page = self.page_fetcher(
            url,
            timeout=self.settings.http_timeout,
            max_bytes=self.settings.max_body_bytes,
            headers={"User-Agent": self.settings.user_agent},
        )
        if page is None:
            logger.warning("%s: %s is unreachable, no results", self.name, url)
        return page
