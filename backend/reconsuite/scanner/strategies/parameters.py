# reconsuite/scanner/strategies/parameters.py
"""
Parameter discovery.

Two phases:
    page       harvest parameter names from the page itself: query strings
               of same-host links, form actions and scripts, plus form fields
    reflection for catalog parameters not seen on the page, request
               url?<name>=<marker> and keep the ones whose marker comes back
               in the response body

Types come from the catalog when the name is known, otherwise they are
inferred from the observed value or the form field type.
"""

from __future__ import annotations

import logging
import re
import secrets
from typing import Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from ...utils.validation import validate_url
from ..base import Checkpoint, Emit, ParameterMatch, PhaseRunner, ResultType
from ..batcher import clamp_concurrency, run_batched
from ..probes import PageSnapshot
from .page import PageStrategy, parse_page

logger = logging.getLogger(__name__)

PAGE_CONFIDENCE = 90
REFLECTED_CONFIDENCE = 60
REFLECTION_CONCURRENCY = 5
NAME_RE = re.compile(r"^[A-Za-z0-9_.\-\[\]]{1,64}$")
FIELD_TYPES = {"number": "number", "range": "number", "url": "url"}


def infer_type(value: str) -> str:
    value = (value or "").strip()
    if re.fullmatch(r"-?\d+(\.\d+)?", value):
        return "number"
    if value.startswith(("http://", "https://", "//")):
        return "url"
    return "string"


def with_query_param(url: str, name: str, value: str) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append((name, value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


class ParameterStrategy(PageStrategy):
    name = "parameters"
    result_type = ResultType.PARAMETER

    def run(self, target: str, emit: Optional[Emit] = None,
            checkpoint: Optional[Checkpoint] = None,
            probe_reflection: bool = True, **_ignored) -> List[ParameterMatch]:
        url = validate_url(target)
        checkpoint = self._checkpoint(checkpoint)
        emit = self._emitter(emit)
        checkpoint()
        page = self.fetch(url)
        if page is None:
            return []

        runner = PhaseRunner(self.name, url)
        found: Dict[str, ParameterMatch] = {}

        def accept(match: ParameterMatch) -> None:
            if match.name in found:
                return
            found[match.name] = match
            emit(match)

        for match in runner.run("page", self.harvest, page) or []:
            accept(match)

        if probe_reflection:
            missing = [p for p in self.catalog.parameters if p.name not in found]
            if missing:
                runner.run("reflection", self._probe_reflection, url, missing, checkpoint, accept)

        runner.raise_if_all_failed()
        results = sorted(found.values(), key=lambda p: (-p.confidence, p.name))
        logger.info("Parameter discovery for %s: %d parameters", url, len(results))
        return results

    def _catalog_type(self, name: str) -> Optional[str]:
        for sig in self.catalog.parameters:
            if sig.name == name:
                return sig.type
        return None

    def harvest(self, page: PageSnapshot) -> List[ParameterMatch]:
        parsed = parse_page(page.body)
        host = urlsplit(page.url).hostname
        matches: List[ParameterMatch] = []
        seen = set()

        def add(name: str, observed_type: str) -> None:
            name = name.strip()
            if not name or name in seen or not NAME_RE.match(name):
                return
            seen.add(name)
            matches.append(ParameterMatch(
                name=name,
                type=self._catalog_type(name) or observed_type,
                confidence=PAGE_CONFIDENCE,
                source="page",
            ))

        for link in [page.url] + parsed.links:
            absolute = urljoin(page.url, link)
            parts = urlsplit(absolute)
            if parts.hostname != host:
                continue
            for name, value in parse_qsl(parts.query, keep_blank_values=True):
                add(name, infer_type(value))

        for name, field_type, value in parsed.fields:
            add(name, FIELD_TYPES.get(field_type) or infer_type(value))

        return matches

    def _probe_reflection(self, url: str, candidates, checkpoint: Checkpoint, accept) -> None:
        def probe(sig) -> Optional[ParameterMatch]:
            marker = f"rcn{secrets.token_hex(5)}"
            page = self.page_fetcher(
                with_query_param(url, sig.name, marker),
                timeout=self.settings.http_timeout,
                max_bytes=self.settings.max_body_bytes,
                headers={"User-Agent": self.settings.user_agent},
            )
            if page is None or marker not in page.body:
                return None
            return ParameterMatch(name=sig.name, type=sig.type,
                                  confidence=REFLECTED_CONFIDENCE, source="reflected")

        run_batched(
            candidates,
            clamp_concurrency(REFLECTION_CONCURRENCY, self.settings.max_concurrency),
            probe,
            timeout=self.settings.http_timeout * 2,
            checkpoint=checkpoint,
            on_outcome=accept,
            label="parameters",
        )
