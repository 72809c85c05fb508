# reconsuite/scanner/batcher.py
"""
Technique Batcher: bounded-concurrency runner for one kind of probe.

Candidates are processed in windows of `concurrency`. Every probe in a
window starts together on a short-lived thread pool and the window is
awaited for at most `timeout` seconds, so a batch of N candidates costs at
most ceil(N / concurrency) * timeout in the worst case.

    - a probe returning None is a negative result and is dropped
    - a probe that raises is logged and counted as absent
    - a probe still running at the window deadline is abandoned as absent
    - `checkpoint()` runs before each window; raising from it stops the batch

Outcomes are reported in completion order, not input order.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENCY = 50


@dataclass
class BatchStats:
    candidates: int = 0
    hits: int = 0
    misses: int = 0
    errors: int = 0
    timed_out: int = 0
    windows: int = 0
    duration_seconds: float = 0.0


def clamp_concurrency(requested: Any, ceiling: int = DEFAULT_MAX_CONCURRENCY) -> int:
    """Bound a speed/threads hint to [1, ceiling]."""
    try:
        value = int(requested)
    except (TypeError, ValueError):
        value = 1
    return max(1, min(value, max(1, ceiling)))


def run_batched(
    candidates: Iterable[T],
    concurrency: int,
    probe_fn: Callable[[T], Optional[Any]],
    timeout: Optional[float] = None,
    checkpoint: Optional[Callable[[], None]] = None,
    on_outcome: Optional[Callable[[Any], None]] = None,
    label: str = "batch",
    stats: Optional[BatchStats] = None,
) -> List[Any]:
    """
    Run `probe_fn` over every candidate and return the non-None outcomes.

    Args:
        candidates:  homogeneous probe inputs
        concurrency: window size (already clamped by the caller's ceiling)
        probe_fn:    single-target probe; None means "nothing found"
        timeout:     per-window deadline in seconds (None waits indefinitely)
        checkpoint:  called before every window; may raise to stop the batch
        on_outcome:  called on the calling thread for each outcome as it completes
        label:       name used in log lines
        stats:       optional BatchStats filled in place
    """
    items = list(candidates)
    window = max(1, int(concurrency))
    stats = stats if stats is not None else BatchStats()
    stats.candidates = len(items)
    outcomes: List[Any] = []
    start = time.monotonic()

    for offset in range(0, len(items), window):
        if checkpoint is not None:
            checkpoint()

        chunk = items[offset:offset + window]
        stats.windows += 1
        pool = ThreadPoolExecutor(max_workers=len(chunk), thread_name_prefix=f"probe-{label}")
        try:
            futures = {pool.submit(probe_fn, c): c for c in chunk}
            pending = set(futures)
            try:
                for future in as_completed(futures, timeout=timeout):
                    pending.discard(future)
                    candidate = futures[future]
                    try:
                        outcome = future.result()
                    except Exception as e:
                        stats.errors += 1
                        logger.debug("%s: probe %r raised %s: %s", label, candidate, type(e).__name__, e)
                        continue
                    if outcome is None:
                        stats.misses += 1
                        continue
                    stats.hits += 1
                    outcomes.append(outcome)
                    if on_outcome is not None:
                        on_outcome(outcome)
            except FutureTimeout:
                for future in pending:
                    future.cancel()
                stats.timed_out += len(pending)
                logger.debug(
                    "%s: %d probe(s) still running after %.1fs, abandoned",
                    label, len(pending), timeout,
                )
        finally:
            # Never block on abandoned probes; their threads finish on their own
            pool.shutdown(wait=False, cancel_futures=True)

    stats.duration_seconds = round(time.monotonic() - start, 2)
    logger.debug(
        "%s: %d candidates, %d hits, %d errors, %d timed out in %d window(s), %.2fs",
        label, stats.candidates, stats.hits, stats.errors, stats.timed_out,
        stats.windows, stats.duration_seconds,
    )
    return outcomes
