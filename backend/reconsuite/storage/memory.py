# reconsuite/storage/memory.py
"""
In-process storage arena.

Scans and findings live in dicts keyed by ids drawn from counters owned by
this store. One lock guards every read and write, so concurrent probe
completions can append findings safely. Used for tests and for running
without a database (RECON_STORAGE=memory).
"""

from __future__ import annotations

import copy
import itertools
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional

from ..errors import ScanNotFound
from ..scanner.base import ResultType, ScanStatus, ScanType, Severity, now_utc, validate_details
from .base import FindingRecord, ScanRecord, StorageGateway, check_transition


class MemoryStorage(StorageGateway):

    def __init__(self):
        self._lock = threading.RLock()
        self._scan_ids = itertools.count(1)
        self._finding_ids = itertools.count(1)
        self._scans: Dict[int, ScanRecord] = {}
        self._findings: Dict[int, List[FindingRecord]] = {}

    @staticmethod
    def _snapshot(scan: ScanRecord) -> ScanRecord:
        return replace(scan, findings=copy.deepcopy(scan.findings))

    def create_scan(self, target: str, scan_type: ScanType, depth: int) -> ScanRecord:
        with self._lock:
            scan = ScanRecord(
                id=next(self._scan_ids),
                target=target,
                scan_type=ScanType.parse(scan_type, "scan type"),
                depth=depth,
                status=ScanStatus.PENDING,
                started_at=now_utc(),
            )
            self._scans[scan.id] = scan
            self._findings[scan.id] = []
            return self._snapshot(scan)

    def get_scan(self, scan_id: int) -> Optional[ScanRecord]:
        with self._lock:
            scan = self._scans.get(scan_id)
            return self._snapshot(scan) if scan else None

    def list_scans(self) -> List[ScanRecord]:
        with self._lock:
            scans = sorted(self._scans.values(), key=lambda s: (s.started_at, s.id), reverse=True)
            return [self._snapshot(s) for s in scans]

    def set_scan_status(self, scan_id: int, status: ScanStatus) -> Optional[ScanRecord]:
        status = ScanStatus.parse(status, "status")
        with self._lock:
            scan = self._scans.get(scan_id)
            if scan is None:
                return None
            if check_transition(scan_id, scan.status, status):
                scan = replace(
                    scan,
                    status=status,
                    completed_at=now_utc() if status.is_terminal else None,
                )
                self._scans[scan_id] = scan
            return self._snapshot(scan)

    def set_scan_findings(self, scan_id: int, summary: Optional[Dict[str, Any]]) -> Optional[ScanRecord]:
        with self._lock:
            scan = self._scans.get(scan_id)
            if scan is None:
                return None
            scan = replace(scan, findings=copy.deepcopy(summary))
            self._scans[scan_id] = scan
            return self._snapshot(scan)

    def create_finding(self, scan_id: int, category: ResultType,
                       severity: Optional[Severity], details: Dict[str, Any]) -> FindingRecord:
        category = ResultType.parse(category, "result type")
        severity = Severity.parse(severity, "severity") if severity is not None else None
        clean = validate_details(category, copy.deepcopy(details))
        with self._lock:
            if scan_id not in self._scans:
                raise ScanNotFound(scan_id)
            finding = FindingRecord(
                id=next(self._finding_ids),
                scan_id=scan_id,
                category=category,
                severity=severity,
                details=clean,
                created_at=now_utc(),
            )
            self._findings[scan_id].append(finding)
            return replace(finding, details=copy.deepcopy(clean))

    def get_findings(self, scan_id: int) -> List[FindingRecord]:
        with self._lock:
            findings = sorted(
                self._findings.get(scan_id, []),
                key=lambda f: (f.created_at, f.id),
                reverse=True,
            )
            return [replace(f, details=copy.deepcopy(f.details)) for f in findings]
