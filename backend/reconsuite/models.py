# reconsuite/models.py
from __future__ import annotations

from .extensions import db
from .scanner.base import ScanStatus, now_utc


class Scan(db.Model):
    __tablename__ = "scans"

    id = db.Column(db.Integer, primary_key=True)
    target_domain = db.Column(db.String(2048), nullable=False)
    # full, subdomain, parameter, vulnerability, content, port_scan, tech_detection
    scan_type = db.Column(db.String(30), nullable=False)
    scan_depth = db.Column(db.Integer, nullable=False, default=1)
    # pending, in_progress, completed, failed, cancelled
    status = db.Column(db.String(20), nullable=False, default=ScanStatus.PENDING.value, index=True)
    started_at = db.Column(db.DateTime, nullable=False, default=now_utc, index=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    findings = db.Column(db.JSON, nullable=True)

    results = db.relationship(
        "ScanResult",
        backref="scan",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="dynamic",
    )


class ScanResult(db.Model):
    __tablename__ = "scan_results"

    id = db.Column(db.Integer, primary_key=True)
    scan_id = db.Column(
        db.Integer,
        db.ForeignKey("scans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # subdomain, parameter, vulnerability, port, directory, technology
    result_type = db.Column(db.String(20), nullable=False)
    # critical, high, medium, low, info (null when the category has no severity)
    severity = db.Column(db.String(10), nullable=True)
    details = db.Column(db.JSON, nullable=False)
    created_at = db.Column("timestamp", db.DateTime, nullable=False, default=now_utc, index=True)
