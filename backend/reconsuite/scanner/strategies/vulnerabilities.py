# reconsuite/scanner/strategies/vulnerabilities.py
"""
Passive vulnerability flagging.

Every VulnSignature in the catalog names a check kind; CHECKS maps the kind
to a predicate over one page snapshot. Nothing here sends a payload: the
checks only read headers, cookies and the body of a normal GET.

Each catalog category runs as its own phase, so a broken entry in one
category cannot hide findings from the others.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from ...utils.validation import validate_url
from ..base import SEVERITY_RANK, Checkpoint, Emit, PhaseRunner, ResultType, Severity, VulnMatch
from ..probes import PageSnapshot
from ..signatures import VulnSignature
from .page import PageStrategy

logger = logging.getLogger(__name__)

VERSION_RE = re.compile(r"\d+\.\d+")


# ---------------------------------------------------------------------------
# Checks: (page, argument) -> bool
# ---------------------------------------------------------------------------

def _missing_header(page: PageSnapshot, header: str) -> bool:
    return page.header(header) is None


def _missing_hsts(page: PageSnapshot, _arg: Any) -> bool:
    return page.is_https and page.header("strict-transport-security") is None


def _version_disclosure(page: PageSnapshot, headers) -> bool:
    for name in headers:
        value = page.header(name)
        if value and VERSION_RE.search(value):
            return True
    return False


def _cookie_flag(page: PageSnapshot, flag: str) -> bool:
    flag = flag.lower()
    for raw in page.set_cookies:
        attrs = [a.strip().lower() for a in raw.split(";")[1:]]
        if not any(a == flag or a.startswith(flag + "=") for a in attrs):
            return True
    return False


def _body_pattern(page: PageSnapshot, pattern: str) -> bool:
    return bool(re.search(pattern, page.body or "", re.IGNORECASE))


def _header_value(page: PageSnapshot, arg) -> bool:
    name, pattern = arg
    value = page.header(name)
    return value is not None and bool(re.search(pattern, value.strip(), re.IGNORECASE))


CHECKS: Dict[str, Callable[[PageSnapshot, Any], bool]] = {
    "missing_header": _missing_header,
    "missing_hsts": _missing_hsts,
    "version_disclosure": _version_disclosure,
    "cookie_flag": _cookie_flag,
    "body_pattern": _body_pattern,
    "header_value": _header_value,
}


class VulnerabilityStrategy(PageStrategy):
    name = "vulnerabilities"
    result_type = ResultType.VULNERABILITY

    def severity_of(self, item: VulnMatch) -> Severity:
        return item.severity

    def run(self, target: str, emit: Optional[Emit] = None,
            checkpoint: Optional[Checkpoint] = None, **_ignored) -> List[VulnMatch]:
        url = validate_url(target)
        self._checkpoint(checkpoint)()
        page = self.fetch(url)
        if page is None:
            return []

        results = self.evaluate(page)
        emit = self._emitter(emit)
        for item in results:
            emit(item)
        logger.info("Vulnerability checks for %s: %d flagged", url, len(results))
        return results

    def evaluate(self, page: PageSnapshot) -> List[VulnMatch]:
        runner = PhaseRunner(self.name, page.url)
        matches: Dict[tuple, VulnMatch] = {}
        for category, sigs in self.catalog.vulnerabilities.items():
            for match in runner.run(category, self._evaluate_category, page, sigs) or []:
                matches.setdefault((match.type, match.description), match)
        runner.raise_if_all_failed()
        return sorted(
            matches.values(),
            key=lambda v: (-v.confidence, SEVERITY_RANK[v.severity], v.type),
        )

    @staticmethod
    def _evaluate_category(page: PageSnapshot, sigs: List[VulnSignature]) -> List[VulnMatch]:
        found = []
        for sig in sigs:
            check = CHECKS.get(sig.check)
            if check is None:
                raise ValueError(f"Unknown vulnerability check '{sig.check}' for {sig.type}")
            if check(page, sig.argument):
                found.append(VulnMatch(
                    type=sig.type,
                    description=sig.description,
                    severity=Severity.parse(sig.severity, "severity"),
                    confidence=sig.confidence,
                ))
        return found
