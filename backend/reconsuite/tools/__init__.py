"""
Single-shot recon tools.

These are NOT scans. They don't create scan records or findings.
They run synchronously and return the strategy output immediately.

Endpoints:
    POST /api/tools/subdomain-finder
    POST /api/tools/port-scanner
    POST /api/tools/content-discovery
    POST /api/tools/tech-detector
    POST /api/tools/parameter-discovery
    POST /api/tools/vulnerability-scan
    GET  /api/wordlists
"""

from .routes import tools_bp

__all__ = ["tools_bp"]
