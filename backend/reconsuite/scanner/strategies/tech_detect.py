# reconsuite/scanner/strategies/tech_detect.py
"""
Technology fingerprinting against the injected signature catalog.

Matching reads one page snapshot: response headers, Set-Cookie names,
<meta> tags, the body and the hostname. Matches for the same technology
from different signatures or categories merge into one entry (highest
confidence wins, first version seen is kept).

Coverage rule: when a trigger category matches (e.g. a JavaScript framework),
its follow-up categories (e.g. JavaScript libraries) are evaluated too, even
if the caller restricted detection to other categories.

Output is sorted by confidence, highest first.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlsplit

from ...utils.validation import validate_url
from ..base import Checkpoint, Emit, ResultType, TechMatch
from ..probes import PageSnapshot
from ..signatures import TechSignature
from .page import PageStrategy, ParsedPage, parse_page

logger = logging.getLogger(__name__)


def _cookie_names(page: PageSnapshot) -> List[str]:
    names = []
    for raw in page.set_cookies:
        name = raw.split("=", 1)[0].strip()
        if name:
            names.append(name)
    return names


def _version(match: re.Match, group: int) -> Optional[str]:
    if group <= 0:
        return None
    try:
        value = match.group(group)
    except IndexError:
        return None
    return value.strip() if value else None


def match_signature(sig: TechSignature, page: PageSnapshot, parsed: ParsedPage,
                    host: str) -> Optional[TechMatch]:
    texts: List[str] = []
    if sig.source == "header":
        value = page.header(sig.key)
        if value is not None:
            texts.append(value)
    elif sig.source == "cookie":
        texts.extend(n for n in _cookie_names(page) if re.search(sig.key, n, re.IGNORECASE))
    elif sig.source == "meta":
        value = parsed.meta.get(sig.key.lower())
        if value is not None:
            texts.append(value)
    elif sig.source == "body":
        texts.append(page.body)
    elif sig.source == "host":
        texts.append(host)
    else:
        logger.debug("Unknown signature source '%s' for %s", sig.source, sig.name)

    for text in texts:
        m = re.search(sig.pattern, text, re.IGNORECASE)
        if m:
            return TechMatch(
                name=sig.name,
                category=sig.category,
                confidence=max(0, min(100, sig.confidence)),
                version=_version(m, sig.version_group),
            )
    return None


class TechDetectStrategy(PageStrategy):
    name = "tech_detect"
    result_type = ResultType.TECHNOLOGY

    def run(self, target: str, emit: Optional[Emit] = None,
            checkpoint: Optional[Checkpoint] = None,
            categories: Optional[Iterable[str]] = None, **_ignored) -> List[TechMatch]:
        url = validate_url(target)
        self._checkpoint(checkpoint)()
        page = self.fetch(url)
        if page is None:
            return []

        results = self.detect(page, categories)
        emit = self._emitter(emit)
        for item in results:
            emit(item)
        logger.info("Tech detection for %s: %d technologies", url, len(results))
        return results

    def detect(self, page: PageSnapshot, categories: Optional[Iterable[str]] = None) -> List[TechMatch]:
        parsed = parse_page(page.body)
        host = (urlsplit(page.url).hostname or "").lower()

        queue = list(categories) if categories else self.catalog.tech_categories()
        evaluated = set()
        merged: Dict[str, TechMatch] = {}

        while queue:
            category = queue.pop(0)
            if category in evaluated:
                continue
            evaluated.add(category)

            hit = False
            for sig in self.catalog.technologies.get(category, []):
                found = match_signature(sig, page, parsed, host)
                if found is None:
                    continue
                hit = True
                merged[found.name] = self._merge(merged.get(found.name), found)

            if hit:
                for follow_up in self.catalog.coverage_rules.get(category, []):
                    if follow_up not in evaluated:
                        queue.append(follow_up)

        return sorted(merged.values(), key=lambda t: (-t.confidence, t.name.lower()))

    @staticmethod
    def _merge(current: Optional[TechMatch], new: TechMatch) -> TechMatch:
        if current is None:
            return new
        best = new if new.confidence > current.confidence else current
        version = current.version or new.version
        return TechMatch(
            name=best.name,
            category=best.category,
            confidence=best.confidence,
            version=version,
        )
