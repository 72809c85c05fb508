# reconsuite/scanner/strategies/subdomain.py
"""
Subdomain enumeration.

Three phases, merged into one de-duplicated list (first-seen order):

    1. dns          NS / MX / TXT(SPF include:) records of the base domain;
                    keeps any embedded hostname containing the domain
    2. bruteforce   resolve <prefix>.<domain> for every wordlist prefix
    3. permutations only when phase 2 found something: combine each
                    discovered first label with each prefix, both orders,
                    separators "-" and "."

Technique selector:
    all          -> dns + bruteforce + permutations
    dns          -> dns
    bruteforce   -> bruteforce
    permutations -> bruteforce (as seed) + permutations
    custom       -> bruteforce + permutations driven by `custom_prefixes`

Brute-force and permutation hits that resolve to the same address set as a
random never-registered label (wildcard DNS) are discarded.
"""

from __future__ import annotations

import logging
import re
import secrets
from typing import Callable, List, Optional, Sequence, Set

from ...errors import ValidationError
from ..base import (
    BaseStrategy, Checkpoint, Emit, PhaseRunner, ResultType,
    SubdomainTechnique, WordlistTier,
)
from ..batcher import clamp_concurrency, run_batched
from ..probes import lookup_records, resolve_name
from ..wordlists import subdomain_prefixes

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
SEPARATORS = ("-", ".")
MAX_PERMUTATIONS = 5000
TXT_INCLUDE_RE = re.compile(r"include:([a-zA-Z0-9_.-]+\.[a-zA-Z0-9.-]+)")

PHASES = {
    SubdomainTechnique.ALL: ("dns", "bruteforce", "permutations"),
    SubdomainTechnique.DNS: ("dns",),
    SubdomainTechnique.BRUTEFORCE: ("bruteforce",),
    SubdomainTechnique.PERMUTATIONS: ("bruteforce", "permutations"),
    SubdomainTechnique.CUSTOM: ("bruteforce", "permutations"),
}


def _normalize(name: str) -> str:
    return (name or "").strip().lower().rstrip(".")


class SubdomainStrategy(BaseStrategy):
    name = "subdomain"
    result_type = ResultType.SUBDOMAIN

    def __init__(self, settings=None,
                 resolver: Callable[[str], List[str]] = resolve_name,
                 record_lookup: Callable[..., List[str]] = lookup_records,
                 detect_wildcard: bool = True):
        super().__init__(settings)
        self.resolver = resolver
        self.record_lookup = record_lookup
        self.detect_wildcard = detect_wildcard

    def details_of(self, item: str):
        return {"domain": item}

    def run(self, target: str, emit: Optional[Emit] = None,
            checkpoint: Optional[Checkpoint] = None,
            technique="all", wordlist="default",
            custom_prefixes: Optional[Sequence[str]] = None, **_ignored) -> List[str]:
        domain = _normalize(target)
        if not domain:
            raise ValidationError("Domain is required")
        technique = SubdomainTechnique.parse(technique, "technique")
        wordlist = WordlistTier.parse(wordlist, "wordlist")
        if technique == SubdomainTechnique.CUSTOM:
            wordlist = WordlistTier.CUSTOM
        prefixes = subdomain_prefixes(wordlist, custom_prefixes)
        phases = PHASES[technique]

        emit = self._emitter(emit)
        checkpoint = self._checkpoint(checkpoint)
        runner = PhaseRunner(self.name, domain)

        found: List[str] = []
        seen: Set[str] = set()

        def accept(name: str) -> bool:
            name = _normalize(name)
            if not name or name in seen:
                return False
            seen.add(name)
            found.append(name)
            emit(name)
            return True

        logger.info(
            "Subdomain enumeration for %s: technique=%s wordlist=%s (%d prefixes)",
            domain, technique.value, wordlist.value, len(prefixes),
        )

        if "dns" in phases:
            checkpoint()
            for rtype in ("NS", "MX", "TXT"):
                hosts = runner.run(f"dns-{rtype.lower()}", self._record_hosts, domain, rtype) or []
                for host in hosts:
                    accept(host)

        brute_hits: List[str] = []
        wildcard_ips: Optional[Set[str]] = None
        if "bruteforce" in phases or "permutations" in phases:
            wildcard_ips = self._wildcard_addresses(domain)

        if "bruteforce" in phases:
            candidates = [f"{p}.{domain}" for p in prefixes]
            brute_hits = runner.run(
                "bruteforce", self._resolve_batch, candidates, wildcard_ips, checkpoint, accept,
            ) or []

        # Permutations are seeded only by brute-force hits
        if "permutations" in phases and brute_hits:
            candidates = self._permutation_candidates(domain, found, prefixes, seen)
            runner.run(
                "permutations", self._resolve_batch, candidates, wildcard_ips, checkpoint, accept,
            )

        runner.raise_if_all_failed()
        logger.info("Subdomain enumeration for %s: %d found", domain, len(found))
        return found

    # ── Phase 1 ──

    def _record_hosts(self, domain: str, rtype: str) -> List[str]:
        values = self.record_lookup(domain, rtype, timeout=self.settings.dns_timeout)
        if rtype == "TXT":
            hosts = []
            for txt in values:
                if "include:" in txt:
                    hosts.extend(m.group(1) for m in TXT_INCLUDE_RE.finditer(txt))
        else:
            hosts = list(values)
        return [
            _normalize(h) for h in hosts
            if domain in _normalize(h) and _normalize(h) != domain
        ]

    # ── Phases 2 and 3 ──

    def _wildcard_addresses(self, domain: str) -> Optional[Set[str]]:
        if not self.detect_wildcard:
            return None
        probe = f"{secrets.token_hex(8)}.{domain}"
        ips = set(self.resolver(probe))
        if ips:
            logger.info("Wildcard DNS detected for %s (%s)", domain, ", ".join(sorted(ips)))
        return ips or None

    def _resolve_batch(self, candidates: List[str], wildcard_ips: Optional[Set[str]],
                       checkpoint: Checkpoint, accept: Callable[[str], bool]) -> List[str]:
        def probe(name: str) -> Optional[str]:
            ips = self.resolver(name)
            if not ips:
                return None
            if wildcard_ips and set(ips) == wildcard_ips:
                return None
            return name

        hits: List[str] = []

        def on_outcome(name: str) -> None:
            hits.append(name)
            accept(name)

        run_batched(
            candidates,
            clamp_concurrency(BATCH_SIZE, self.settings.max_concurrency),
            probe,
            timeout=self.settings.dns_timeout * 2,
            checkpoint=checkpoint,
            on_outcome=on_outcome,
            label="subdomain",
        )
        return hits

    @staticmethod
    def _permutation_candidates(domain: str, found: List[str], prefixes: List[str],
                                seen: Set[str]) -> List[str]:
        suffix = "." + domain
        discovered = []
        for name in found:
            if name.endswith(suffix):
                label = name[: -len(suffix)].split(".")[0]
                if label and label not in discovered:
                    discovered.append(label)

        candidates: List[str] = []
        queued: Set[str] = set()
        for label in discovered:
            for prefix in prefixes:
                for sep in SEPARATORS:
                    for combo in (f"{label}{sep}{prefix}", f"{prefix}{sep}{label}"):
                        name = f"{combo}{suffix}"
                        if name in seen or name in queued:
                            continue
                        queued.add(name)
                        candidates.append(name)
                        if len(candidates) >= MAX_PERMUTATIONS:
                            logger.warning(
                                "Permutations for %s capped at %d candidates", domain, MAX_PERMUTATIONS,
                            )
                            return candidates
        return candidates
