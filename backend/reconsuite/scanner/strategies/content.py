# reconsuite/scanner/strategies/content.py
"""
Content (path) discovery.

Candidates are every wordlist path combined with every requested extension
plus the bare path. Each candidate gets one Path Probe through the batcher;
only responses whose status is in the accepted set are kept.

With recursion enabled, each directory-looking hit has a fixed chance of
having one canonical subdirectory appended and probed once. Recursion never
goes deeper than that single extra level.
"""

from __future__ import annotations

import logging
import random
import re
from typing import Any, Callable, Iterable, List, Optional, Set

from ...errors import ValidationError
from ...utils.validation import validate_url
from ..base import BaseStrategy, Checkpoint, Emit, PathResult, PhaseRunner, ResultType
from ..batcher import clamp_concurrency, run_batched
from ..probes import probe_path
from ..wordlists import content_paths

logger = logging.getLogger(__name__)

DEFAULT_STATUS_CODES = "200,204,301,302,307,401,403"
DEFAULT_THREADS = 5
RECURSION_PROBABILITY = 0.3
RECURSION_DIRS = ("config", "includes", "old", "backup", "test")
EXTENSION_RE = re.compile(r"^[a-z0-9]{1,10}$")


def parse_status_codes(value: Any) -> Set[int]:
    """Accepts "200,301,403" or an iterable of ints."""
    if value is None or value == "":
        value = DEFAULT_STATUS_CODES
    tokens: Iterable[Any] = value.split(",") if isinstance(value, str) else value
    codes: Set[int] = set()
    for token in tokens:
        raw = str(token).strip()
        if not raw:
            continue
        if not raw.isdigit() or not 100 <= int(raw) <= 599:
            raise ValidationError(f"Invalid status code '{raw}'")
        codes.add(int(raw))
    if not codes:
        raise ValidationError("At least one status code is required")
    return codes


def parse_extensions(value: Any) -> List[str]:
    """Accepts "php,bak" or a list. The bare (empty) extension always comes first."""
    tokens: Iterable[Any]
    if value is None:
        tokens = []
    elif isinstance(value, str):
        tokens = value.split(",")
    else:
        tokens = value
    extensions = [""]
    for token in tokens:
        ext = str(token).strip().lower().lstrip(".")
        if not ext:
            continue
        if not EXTENSION_RE.match(ext):
            raise ValidationError(f"Invalid file extension '{token}'")
        if ext not in extensions:
            extensions.append(ext)
    return extensions


def is_directory_candidate(path: str) -> bool:
    last = path.rstrip("/").rsplit("/", 1)[-1]
    return bool(last) and "." not in last


class ContentStrategy(BaseStrategy):
    name = "content"
    result_type = ResultType.DIRECTORY

    def __init__(self, settings=None,
                 path_probe: Callable[..., Optional[PathResult]] = probe_path,
                 rng: Optional[random.Random] = None):
        super().__init__(settings)
        self.path_probe = path_probe
        self.rng = rng or random.Random()

    def run(self, target: str, emit: Optional[Emit] = None,
            checkpoint: Optional[Checkpoint] = None,
            wordlist_type="default", recursive: bool = False, extensions: Any = "",
            threads: Any = DEFAULT_THREADS, status_codes: Any = DEFAULT_STATUS_CODES,
            **_ignored) -> List[PathResult]:
        base_url = validate_url(target)
        accepted = parse_status_codes(status_codes)
        exts = parse_extensions(extensions)
        paths = content_paths(wordlist_type)
        concurrency = clamp_concurrency(threads, self.settings.max_concurrency)

        emit = self._emitter(emit)
        checkpoint = self._checkpoint(checkpoint)
        runner = PhaseRunner(self.name, base_url)

        candidates: List[str] = []
        queued: Set[str] = set()
        for path in paths:
            for ext in exts:
                candidate = path if not ext else f"{path}.{ext}"
                if candidate not in queued:
                    queued.add(candidate)
                    candidates.append(candidate)

        logger.info(
            "Content discovery for %s: %d candidates, concurrency=%d, recursive=%s",
            base_url, len(candidates), concurrency, recursive,
        )

        results: List[PathResult] = []
        seen: Set[str] = set()

        def accept(result: PathResult) -> None:
            if result.status_code not in accepted or result.path in seen:
                return
            seen.add(result.path)
            results.append(result)
            emit(result)

        runner.run("paths", self._probe_all, base_url, candidates, concurrency, checkpoint, accept)

        if recursive:
            nested = self._recursion_candidates(results, queued)
            if nested:
                runner.run("recursion", self._probe_all, base_url, nested, concurrency, checkpoint, accept)

        runner.raise_if_all_failed()
        logger.info("Content discovery for %s: %d hits", base_url, len(results))
        return results

    def _probe_all(self, base_url: str, candidates: List[str], concurrency: int,
                   checkpoint: Checkpoint, accept: Callable[[PathResult], None]) -> None:
        headers = {"User-Agent": self.settings.user_agent}

        def probe(path: str) -> Optional[PathResult]:
            return self.path_probe(base_url, path, timeout=self.settings.http_timeout, headers=headers)

        run_batched(
            candidates, concurrency, probe,
            timeout=self.settings.http_timeout * 2,
            checkpoint=checkpoint,
            on_outcome=accept,
            label="content",
        )

    def _recursion_candidates(self, hits: List[PathResult], queued: Set[str]) -> List[str]:
        nested: List[str] = []
        for hit in list(hits):
            if not is_directory_candidate(hit.path):
                continue
            if self.rng.random() >= RECURSION_PROBABILITY:
                continue
            candidate = f"{hit.path.rstrip('/')}/{self.rng.choice(RECURSION_DIRS)}"
            if candidate not in queued:
                queued.add(candidate)
                nested.append(candidate)
        return nested
