# =============================================================================
# File: reconsuite/scans/routes.py
# Description: Scan routes: create, list, inspect and cancel scans.
#   POST returns as soon as the PENDING record exists; probing runs on the
#   orchestrator's worker pool and the client polls for status / results.
#
#   GET  /api/scans                 list, newest first
#   POST /api/scans                 create (201, PENDING)
#   GET  /api/scans/<id>            one scan
#   GET  /api/scans/<id>/results    findings, newest first
#   POST /api/scans/<id>/cancel     cancel a pending / running scan
# =============================================================================

from __future__ import annotations

import logging
from flask import Blueprint, current_app, jsonify, request

from ..errors import InvalidStatusTransition, ScanNotFound

logger = logging.getLogger(__name__)

scans_bp = Blueprint("scans", __name__, url_prefix="/api/scans")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _orchestrator():
    return current_app.extensions["scan_orchestrator"]


def _scan_id(raw: str):
    """Returns (scan_id, error_response). If valid, error is None."""
    try:
        return int(raw), None
    except (TypeError, ValueError):
        return None, (jsonify(error="Invalid scan ID"), 400)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@scans_bp.get("")
def list_scans():
    return jsonify([s.to_dict() for s in _orchestrator().list_scans()]), 200


@scans_bp.post("")
def create_scan():
    body = request.get_json(silent=True) or {}
    target = body.get("targetDomain") or body.get("target")
    scan_type = body.get("scanType")
    depth = body.get("scanDepth", 1)

    if not target:
        return jsonify(error="targetDomain is required"), 400
    if not scan_type:
        return jsonify(error="scanType is required"), 400

    # ValidationError → 400 via the app-level handler
    scan = _orchestrator().create_scan(target, scan_type, depth)
    return jsonify(scan.to_dict()), 201


@scans_bp.get("/<scan_id>")
def get_scan(scan_id):
    sid, err = _scan_id(scan_id)
    if err:
        return err
    scan = _orchestrator().get_scan(sid)
    if scan is None:
        return jsonify(error="Scan not found"), 404
    return jsonify(scan.to_dict()), 200


@scans_bp.get("/<scan_id>/results")
def get_scan_results(scan_id):
    sid, err = _scan_id(scan_id)
    if err:
        return err
    try:
        findings = _orchestrator().get_findings(sid)
    except ScanNotFound:
        return jsonify(error="Scan not found"), 404
    return jsonify([f.to_dict() for f in findings]), 200


@scans_bp.post("/<scan_id>/cancel")
def cancel_scan(scan_id):
    sid, err = _scan_id(scan_id)
    if err:
        return err
    try:
        scan = _orchestrator().cancel_scan(sid)
    except ScanNotFound:
        return jsonify(error="Scan not found"), 404
    except InvalidStatusTransition as e:
        return jsonify(error=str(e)), 409
    return jsonify(scan.to_dict()), 200
