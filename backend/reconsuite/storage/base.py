# reconsuite/storage/base.py
"""
Storage Gateway contract.

The orchestrator is the only writer. Every adapter must:
    - hand out ScanRecord / FindingRecord snapshots, never live objects
    - set completed_at exactly when a scan enters a terminal status
    - refuse transitions not listed in ALLOWED_TRANSITIONS
    - validate finding details against the category's fixed shape
    - order list_scans() by started_at desc and get_findings() by created_at desc
      (id desc breaks ties)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..errors import InvalidStatusTransition
from ..scanner.base import ALLOWED_TRANSITIONS, ResultType, ScanStatus, ScanType, Severity


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


@dataclass(frozen=True)
class ScanRecord:
    id: int
    target: str
    scan_type: ScanType
    depth: int
    status: ScanStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    findings: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "targetDomain": self.target,
            "scanType": self.scan_type.value,
            "scanDepth": self.depth,
            "status": self.status.value,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "findings": self.findings,
        }


@dataclass(frozen=True)
class FindingRecord:
    id: int
    scan_id: int
    category: ResultType
    severity: Optional[Severity]
    details: Dict[str, Any]
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scanId": self.scan_id,
            "resultType": self.category.value,
            "severity": self.severity.value if self.severity else None,
            "details": self.details,
            "timestamp": _iso(self.created_at),
        }


def check_transition(scan_id: int, current: ScanStatus, new: ScanStatus) -> bool:
    """
    True if the status must change, False for a no-op (same status).
    Raises InvalidStatusTransition for anything ALLOWED_TRANSITIONS forbids.
    """
    if current == new:
        return False
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(scan_id, current, new)
    return True


class StorageGateway(ABC):
    """Keyed persistence for scans and their findings."""

    @abstractmethod
    def create_scan(self, target: str, scan_type: ScanType, depth: int) -> ScanRecord:
        """Persist a PENDING scan with no completed_at and no findings."""
        ...

    @abstractmethod
    def get_scan(self, scan_id: int) -> Optional[ScanRecord]:
        ...

    @abstractmethod
    def list_scans(self) -> List[ScanRecord]:
        ...

    @abstractmethod
    def set_scan_status(self, scan_id: int, status: ScanStatus) -> Optional[ScanRecord]:
        """Move a scan to `status`; sets completed_at iff the status is terminal."""
        ...

    @abstractmethod
    def set_scan_findings(self, scan_id: int, summary: Optional[Dict[str, Any]]) -> Optional[ScanRecord]:
        ...

    @abstractmethod
    def create_finding(self, scan_id: int, category: ResultType,
                       severity: Optional[Severity], details: Dict[str, Any]) -> FindingRecord:
        """Append one immutable finding. Raises ScanNotFound / FindingSchemaError."""
        ...

    @abstractmethod
    def get_findings(self, scan_id: int) -> List[FindingRecord]:
        ...
