# reconsuite/tools/routes.py
"""
Single-shot tool API routes.

Each endpoint runs one strategy synchronously against one target and
returns its raw output. Nothing is persisted and no scan is created.

Tools:
    - Subdomain Finder      (domain input)
    - Port Scanner          (host / IP input)
    - Content Discovery     (URL input)
    - Technology Detector   (URL input)
    - Parameter Discovery   (URL input)
    - Vulnerability Scan    (URL input, passive checks only)
"""

from __future__ import annotations

import logging
from flask import Blueprint, current_app, jsonify, request

from ..scanner.base import ParameterMatch, VulnMatch
from ..scanner.strategies.content import DEFAULT_STATUS_CODES, DEFAULT_THREADS
from ..scanner.strategies.ports import DEFAULT_SPEED
from ..scanner.wordlists import describe_content_wordlists
from ..utils.validation import parse_bool

logger = logging.getLogger(__name__)

tools_bp = Blueprint("tools", __name__, url_prefix="/api")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _strategy(name: str):
    return current_app.extensions["recon_strategies"].get(name)


def _required(body: dict, key: str, label: str) -> tuple:
    """Returns (value, error_response). If present, error is None."""
    value = body.get(key)
    if isinstance(value, str):
        value = value.strip()
    if not value:
        return None, (jsonify(error=f"{label} is required"), 400)
    return value, None


def _tool_view(item) -> dict:
    view = item.to_details()
    if isinstance(item, ParameterMatch):
        view["confidence"] = item.confidence
        view["source"] = item.source
    elif isinstance(item, VulnMatch):
        view["severity"] = item.severity.value
        view["confidence"] = item.confidence
    return view


def _port_spec(body: dict):
    """
    portSpec wins when given. Otherwise follow the legacy form fields:
    commonPortsOnly (default on) → scanSpecificPorts + specificPorts → portRange.
    """
    if body.get("portSpec") not in (None, ""):
        return body["portSpec"]
    if parse_bool(body.get("commonPortsOnly"), default=True):
        return "common"
    specific = body.get("specificPorts")
    if parse_bool(body.get("scanSpecificPorts")) and specific:
        return specific
    return body.get("portRange") or "1-1000"


# ---------------------------------------------------------------------------
# Subdomain Finder
# ---------------------------------------------------------------------------

@tools_bp.post("/tools/subdomain-finder")
def subdomain_finder():
    body = request.get_json(silent=True) or {}
    domain, err = _required(body, "domain", "Domain")
    if err:
        return err

    technique = body.get("techniques", "all")
    wordlist = body.get("wordlist", "default")
    custom_prefixes = body.get("customPrefixes")

    # Older clients send the prefix list in `techniques` when wordlist=custom
    if isinstance(technique, list):
        if custom_prefixes is None and str(wordlist).lower() == "custom":
            custom_prefixes = technique
        technique = "all"

    subdomains = _strategy("subdomain").run(
        domain,
        technique=technique,
        wordlist=wordlist,
        custom_prefixes=custom_prefixes,
    )
    return jsonify(subdomains=subdomains), 200


# ---------------------------------------------------------------------------
# Port Scanner
# ---------------------------------------------------------------------------

@tools_bp.post("/tools/port-scanner")
def port_scanner():
    body = request.get_json(silent=True) or {}
    target, err = _required(body, "target", "Target")
    if err:
        return err

    ports = _strategy("ports").run(
        target,
        port_spec=_port_spec(body),
        speed=body.get("scanSpeed", DEFAULT_SPEED),
        version_detect=parse_bool(body.get("scanVersion")),
    )
    return jsonify(ports=[_tool_view(p) for p in ports]), 200


# ---------------------------------------------------------------------------
# Content Discovery
# ---------------------------------------------------------------------------

@tools_bp.post("/tools/content-discovery")
def content_discovery():
    body = request.get_json(silent=True) or {}
    url, err = _required(body, "url", "URL")
    if err:
        return err

    paths = _strategy("content").run(
        url,
        wordlist_type=body.get("wordlistType", "default"),
        recursive=parse_bool(body.get("recursive")),
        extensions=body.get("fileExtensions", ""),
        threads=body.get("threads", DEFAULT_THREADS),
        status_codes=body.get("statusCodesToInclude", DEFAULT_STATUS_CODES),
    )
    return jsonify(paths=[_tool_view(p) for p in paths]), 200


@tools_bp.get("/wordlists")
def wordlists():
    catalogue = {
        w["id"]: {"name": w["name"], "count": w["count"], "description": w["description"]}
        for w in describe_content_wordlists()
    }
    return jsonify(wordlists=catalogue), 200


# ---------------------------------------------------------------------------
# Page analysis tools
# ---------------------------------------------------------------------------

@tools_bp.post("/tools/tech-detector")
def tech_detector():
    body = request.get_json(silent=True) or {}
    url, err = _required(body, "url", "URL")
    if err:
        return err
    categories = body.get("categories")
    if isinstance(categories, str):
        categories = [c.strip() for c in categories.split(",") if c.strip()]
    technologies = _strategy("tech_detect").run(url, categories=categories)
    return jsonify(technologies=[_tool_view(t) for t in technologies]), 200


@tools_bp.post("/tools/parameter-discovery")
def parameter_discovery():
    body = request.get_json(silent=True) or {}
    url, err = _required(body, "url", "URL")
    if err:
        return err
    parameters = _strategy("parameters").run(url)
    return jsonify(parameters=[_tool_view(p) for p in parameters]), 200


@tools_bp.post("/tools/vulnerability-scan")
def vulnerability_scan():
    body = request.get_json(silent=True) or {}
    url, err = _required(body, "url", "URL")
    if err:
        return err
    vulnerabilities = _strategy("vulnerabilities").run(url)
    return jsonify(vulnerabilities=[_tool_view(v) for v in vulnerabilities]), 200
