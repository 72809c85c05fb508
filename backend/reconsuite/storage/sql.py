# reconsuite/storage/sql.py
"""
Flask-SQLAlchemy storage adapter (tables `scans` and `scan_results`).

Every call must run inside an app context. Each write commits on its own so
a concurrent reader (the results endpoint polling a running scan) sees
findings as they land. Reads that decide a transition reload the row with
populate_existing, because a cancel request may have committed from another
thread since this session last looked. Status writes are compare-and-set on
the status that was read, so a terminal status is never overwritten.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from ..errors import InvalidStatusTransition, ScanNotFound
from ..extensions import db
from ..models import Scan, ScanResult
from ..scanner.base import ResultType, ScanStatus, ScanType, Severity, now_utc, validate_details
from .base import FindingRecord, ScanRecord, StorageGateway, check_transition

logger = logging.getLogger(__name__)


def scan_to_record(scan: Scan) -> ScanRecord:
    return ScanRecord(
        id=scan.id,
        target=scan.target_domain,
        scan_type=ScanType.parse(scan.scan_type, "scan type"),
        depth=scan.scan_depth,
        status=ScanStatus.parse(scan.status, "status"),
        started_at=scan.started_at,
        completed_at=scan.completed_at,
        findings=copy.deepcopy(scan.findings),
    )


def result_to_record(row: ScanResult) -> FindingRecord:
    return FindingRecord(
        id=row.id,
        scan_id=row.scan_id,
        category=ResultType.parse(row.result_type, "result type"),
        severity=Severity.parse(row.severity, "severity") if row.severity else None,
        details=copy.deepcopy(row.details),
        created_at=row.created_at,
    )


class SqlStorage(StorageGateway):

    def _commit(self) -> None:
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def _load(self, scan_id: int, fresh: bool = False) -> Optional[Scan]:
        return db.session.get(Scan, scan_id, populate_existing=fresh)

    def create_scan(self, target: str, scan_type: ScanType, depth: int) -> ScanRecord:
        scan = Scan(
            target_domain=target,
            scan_type=ScanType.parse(scan_type, "scan type").value,
            scan_depth=depth,
            status=ScanStatus.PENDING.value,
            started_at=now_utc(),
            completed_at=None,
            findings=None,
        )
        db.session.add(scan)
        self._commit()
        return scan_to_record(scan)

    def get_scan(self, scan_id: int) -> Optional[ScanRecord]:
        scan = self._load(scan_id, fresh=True)
        return scan_to_record(scan) if scan else None

    def list_scans(self) -> List[ScanRecord]:
        rows = Scan.query.order_by(Scan.started_at.desc(), Scan.id.desc()).all()
        return [scan_to_record(s) for s in rows]

    def set_scan_status(self, scan_id: int, status: ScanStatus) -> Optional[ScanRecord]:
        status = ScanStatus.parse(status, "status")
        scan = self._load(scan_id, fresh=True)
        if scan is None:
            return None
        current = ScanStatus.parse(scan.status, "status")
        if check_transition(scan_id, current, status):
            updated = (
                Scan.query
                .filter_by(id=scan_id, status=current.value)
                .update(
                    {"status": status.value, "completed_at": now_utc() if status.is_terminal else None},
                    synchronize_session=False,
                )
            )
            self._commit()
            scan = self._load(scan_id, fresh=True)
            if not updated:
                # Another writer moved the scan first
                raise InvalidStatusTransition(scan_id, scan.status if scan else current, status)
            logger.debug("Scan #%d -> %s", scan_id, status.value)
        return scan_to_record(scan)

    def set_scan_findings(self, scan_id: int, summary: Optional[Dict[str, Any]]) -> Optional[ScanRecord]:
        scan = self._load(scan_id)
        if scan is None:
            return None
        # Assign a new object so the JSON column is flagged dirty
        scan.findings = copy.deepcopy(summary)
        self._commit()
        return scan_to_record(scan)

    def create_finding(self, scan_id: int, category: ResultType,
                       severity: Optional[Severity], details: Dict[str, Any]) -> FindingRecord:
        category = ResultType.parse(category, "result type")
        severity = Severity.parse(severity, "severity") if severity is not None else None
        clean = validate_details(category, copy.deepcopy(details))
        if self._load(scan_id) is None:
            raise ScanNotFound(scan_id)

        row = ScanResult(
            scan_id=scan_id,
            result_type=category.value,
            severity=severity.value if severity else None,
            details=clean,
            created_at=now_utc(),
        )
        db.session.add(row)
        self._commit()
        return result_to_record(row)

    def get_findings(self, scan_id: int) -> List[FindingRecord]:
        rows = (
            ScanResult.query
            .filter_by(scan_id=scan_id)
            .order_by(ScanResult.created_at.desc(), ScanResult.id.desc())
            .all()
        )
        return [result_to_record(r) for r in rows]
