# reconsuite/scanner/orchestrator.py
"""
Scan Orchestrator: owns the scan state machine.

    create_scan()  validate → persist PENDING → submit to the worker pool → return
    worker         PENDING → IN_PROGRESS → run the plan → COMPLETED
                                         ↘ FAILED     (anything escapes a step)
                                         ↘ CANCELLED  (set externally, seen at a checkpoint)

Key design: INCREMENTAL RESULT SAVING
- Every item a strategy accepts is written as a Finding straight away
- The scan's findings summary is rewritten after each step
- A client polling /api/scans/<id>/results sees partial results mid-scan,
  and a FAILED scan keeps everything persisted before the failure

Plans run their steps sequentially (FULL = subdomain → parameter →
vulnerability). The only parallelism inside a scan is the batcher window.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from ..config import ReconSettings
from ..errors import (
    InvalidStatusTransition, PersistenceError, ScanCancelled, ScanNotFound, ValidationError,
)
from ..storage.base import ScanRecord, StorageGateway
from ..utils.validation import host_of, is_ip, url_of, validate_depth, validate_domain, validate_target
from .base import ResultType, ScanStatus, ScanType, now_utc

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Scan plans
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanStep:
    strategy: str       # attribute on StrategySet
    summary_key: str    # key in the scan's findings summary
    target_kind: str    # domain, host or url


STEPS: Dict[str, ScanStep] = {
    "subdomain": ScanStep("subdomain", "subdomains", "domain"),
    "parameter": ScanStep("parameters", "parameters", "url"),
    "vulnerability": ScanStep("vulnerabilities", "vulnerabilities", "url"),
    "content": ScanStep("content", "directories", "url"),
    "port_scan": ScanStep("ports", "ports", "host"),
    "tech_detection": ScanStep("tech_detect", "technologies", "url"),
}

SCAN_PLANS: Dict[ScanType, List[str]] = {
    ScanType.FULL: ["subdomain", "parameter", "vulnerability"],
    ScanType.SUBDOMAIN: ["subdomain"],
    ScanType.PARAMETER: ["parameter"],
    ScanType.VULNERABILITY: ["vulnerability"],
    ScanType.CONTENT: ["content"],
    ScanType.PORT_SCAN: ["port_scan"],
    ScanType.TECH_DETECTION: ["tech_detection"],
}


def wordlist_tier(depth: int) -> str:
    if depth <= 2:
        return "default"
    if depth <= 4:
        return "common"
    return "large"


def step_options(step: str, depth: int) -> Dict[str, Any]:
    """Strategy keyword options implied by the scan depth (1-5)."""
    if step == "subdomain":
        return {"technique": "all", "wordlist": wordlist_tier(depth)}
    if step == "content":
        return {"wordlist_type": wordlist_tier(depth), "recursive": depth >= 4}
    if step == "port_scan":
        return {
            "port_spec": "common" if depth <= 3 else "1-1000",
            "version_detect": depth >= 3,
        }
    return {}


def step_target(step: ScanStep, target: str) -> str:
    """Shape a scan target for one step; raises ValidationError if it cannot."""
    if step.target_kind == "url":
        return url_of(target)
    host = host_of(target)
    if step.target_kind == "domain":
        if is_ip(host):
            raise ValidationError("Subdomain enumeration requires a domain name, not an IP address.")
        return validate_domain(host)
    return host


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ScanOrchestrator:

    def __init__(
        self,
        storage: StorageGateway,
        strategies,
        settings: Optional[ReconSettings] = None,
        app=None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.storage = storage
        self.strategies = strategies
        self.settings = settings or ReconSettings()
        self.app = app
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.scan_workers,
            thread_name_prefix="scan-worker",
        )
        self._futures: Dict[int, Future] = {}
        self._lock = threading.Lock()

    # ── Request surface ──

    def create_scan(self, target: Any, scan_type: Any, depth: Any) -> ScanRecord:
        """Validate, persist PENDING and schedule the run. Never waits for probing."""
        target = validate_target(target)
        scan_type = ScanType.parse(scan_type, "scan type")
        depth = validate_depth(depth)
        for name in SCAN_PLANS[scan_type]:
            step_target(STEPS[name], target)

        scan = self.storage.create_scan(target, scan_type, depth)
        logger.info(
            "Scan #%d created: %s scan of %s (depth %d)",
            scan.id, scan_type.value, target, depth,
        )
        try:
            future = self.executor.submit(self._run, scan.id)
        except Exception:
            logger.exception("Scan #%d could not be scheduled", scan.id)
            self._safely(scan.id, "mark failed", self.storage.set_scan_status, scan.id, ScanStatus.FAILED)
            raise
        with self._lock:
            self._futures[scan.id] = future
        future.add_done_callback(lambda _f, sid=scan.id: self._forget(sid))
        return scan

    def get_scan(self, scan_id: int) -> Optional[ScanRecord]:
        return self.storage.get_scan(scan_id)

    def list_scans(self) -> List[ScanRecord]:
        return self.storage.list_scans()

    def get_findings(self, scan_id: int):
        if self.storage.get_scan(scan_id) is None:
            raise ScanNotFound(scan_id)
        return self.storage.get_findings(scan_id)

    def cancel_scan(self, scan_id: int) -> ScanRecord:
        scan = self.storage.get_scan(scan_id)
        if scan is None:
            raise ScanNotFound(scan_id)
        if scan.status.is_terminal:
            raise InvalidStatusTransition(scan_id, scan.status, ScanStatus.CANCELLED)
        cancelled = self.storage.set_scan_status(scan_id, ScanStatus.CANCELLED)
        logger.info("Scan #%d cancelled (was %s)", scan_id, scan.status.value)
        return cancelled

    def wait(self, scan_id: int, timeout: Optional[float] = None) -> Optional[ScanRecord]:
        """Block until the scan's background task ends (or timeout), then return the scan."""
        with self._lock:
            future = self._futures.get(scan_id)
        if future is not None:
            wait_futures([future], timeout=timeout)
        return self.storage.get_scan(scan_id)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=wait)

    def _forget(self, scan_id: int) -> None:
        with self._lock:
            self._futures.pop(scan_id, None)

    # ── Background task ──

    def _run(self, scan_id: int) -> None:
        if self.app is not None:
            with self.app.app_context():
                self._execute(scan_id)
        else:
            self._execute(scan_id)

    def _execute(self, scan_id: int) -> None:
        summary: Dict[str, List[dict]] = {}
        try:
            scan = self.storage.get_scan(scan_id)
            if scan is None:
                logger.error("Scan #%d vanished before it started", scan_id)
                return
            if scan.status.is_terminal:
                logger.info("Scan #%d is already %s, not starting", scan_id, scan.status.value)
                return

            self.storage.set_scan_status(scan_id, ScanStatus.IN_PROGRESS)
            checkpoint = self._checkpoint_for(scan_id)

            for name in SCAN_PLANS[scan.scan_type]:
                checkpoint()
                self._run_step(scan, name, summary, checkpoint)
                self.storage.set_scan_findings(scan_id, summary)

            self.storage.set_scan_status(scan_id, ScanStatus.COMPLETED)
            logger.info(
                "Scan #%d completed: %s",
                scan_id, ", ".join(f"{k}={len(v)}" for k, v in summary.items()) or "no steps",
            )

        except ScanCancelled:
            logger.info("Scan #%d stopped at a checkpoint (cancelled)", scan_id)
            self._safely(scan_id, "save partial summary", self.storage.set_scan_findings, scan_id, summary)

        except InvalidStatusTransition as e:
            # The scan went terminal underneath us, e.g. cancelled after the last checkpoint
            logger.info("Scan #%d finished early: %s", scan_id, e)
            self._safely(scan_id, "save partial summary", self.storage.set_scan_findings, scan_id, summary)

        except Exception:
            logger.exception("Scan #%d failed", scan_id)
            self._safely(scan_id, "save partial summary", self.storage.set_scan_findings, scan_id, summary)
            self._safely(scan_id, "mark failed", self.storage.set_scan_status, scan_id, ScanStatus.FAILED)

    def _run_step(self, scan: ScanRecord, name: str, summary: Dict[str, List[dict]],
                  checkpoint: Callable[[], None]) -> None:
        step = STEPS[name]
        strategy = self.strategies.get(step.strategy)
        target = step_target(step, scan.target)
        collected = summary.setdefault(step.summary_key, [])

        def emit(item: Any) -> None:
            severity = strategy.severity_of(item)
            try:
                finding = self.storage.create_finding(
                    scan.id, strategy.result_type, severity, strategy.details_of(item),
                )
            except Exception as e:
                raise PersistenceError(scan.id, e) from e
            entry = dict(finding.details)
            if strategy.result_type == ResultType.VULNERABILITY:
                entry["severity"] = severity.value
            collected.append(entry)

        logger.info("Scan #%d: running %s against %s", scan.id, name, target)
        strategy.run(target, emit=emit, checkpoint=checkpoint, **step_options(name, scan.depth))
        logger.info("Scan #%d: %s produced %d finding(s)", scan.id, name, len(collected))

    def _checkpoint_for(self, scan_id: int) -> Callable[[], None]:
        def checkpoint() -> None:
            scan = self.storage.get_scan(scan_id)
            if scan is None:
                raise ScanNotFound(scan_id)
            if scan.status == ScanStatus.CANCELLED:
                raise ScanCancelled(scan_id)
        return checkpoint

    @staticmethod
    def _safely(scan_id: int, what: str, fn: Callable, *args) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("Scan #%d: could not %s", scan_id, what)


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------

def find_stale_scans(storage: StorageGateway, older_than: timedelta) -> List[ScanRecord]:
    """Non-terminal scans started before now - older_than (their worker is gone)."""
    cutoff = now_utc() - older_than
    return [
        s for s in storage.list_scans()
        if not s.status.is_terminal and s.started_at < cutoff
    ]


def fail_stale_scans(storage: StorageGateway, older_than: timedelta) -> List[ScanRecord]:
    failed = []
    for scan in find_stale_scans(storage, older_than):
        try:
            record = storage.set_scan_status(scan.id, ScanStatus.FAILED)
        except InvalidStatusTransition:
            continue
        if record is not None:
            failed.append(record)
            logger.warning("Scan #%d was %s since %s, marked failed",
                           scan.id, scan.status.value, scan.started_at.isoformat())
    return failed
