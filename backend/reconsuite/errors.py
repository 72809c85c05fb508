# reconsuite/errors.py
"""
Exception hierarchy shared by the scanner, storage and HTTP layers.

    ReconError
    ├── ValidationError          bad caller input, rejected before probing (HTTP 400)
    │   └── FindingSchemaError   details payload does not match its category
    ├── StrategyError            every sub-phase of a strategy failed
    ├── PersistenceError         a finding could not be saved; always fails the scan
    ├── ScanCancelled            raised at a checkpoint once a scan is cancelled
    ├── ScanNotFound             unknown scan id
    └── InvalidStatusTransition  illegal state-machine move (HTTP 409)

Per-probe failures (timeouts, refused connections, NXDOMAIN) are never
raised. Probes fold them into a negative result.
"""

from __future__ import annotations


class ReconError(Exception):
    """Base class for all reconsuite errors."""


class ValidationError(ReconError, ValueError):
    """Malformed target, URL, port spec or scan request."""


class FindingSchemaError(ValidationError):
    """A finding's details do not match the fixed shape of its category."""


class StrategyError(ReconError):
    """Raised when every sub-phase of a strategy failed."""


class PersistenceError(ReconError):
    """Saving a finding failed. Never absorbed by a sub-phase."""

    def __init__(self, scan_id, cause):
        super().__init__(f"Scan {scan_id}: could not save finding: {type(cause).__name__}: {cause}")
        self.scan_id = scan_id
        self.cause = cause


class ScanCancelled(ReconError):
    """The scan was cancelled while the pipeline was running."""

    def __init__(self, scan_id):
        super().__init__(f"Scan {scan_id} was cancelled")
        self.scan_id = scan_id


class ScanNotFound(ReconError, LookupError):
    def __init__(self, scan_id):
        super().__init__(f"Scan {scan_id} not found")
        self.scan_id = scan_id


class InvalidStatusTransition(ReconError):
    def __init__(self, scan_id, current, requested):
        current = getattr(current, "value", current)
        requested = getattr(requested, "value", requested)
        super().__init__(
            f"Scan {scan_id} cannot move from '{current}' to '{requested}'"
        )
        self.scan_id = scan_id
        self.current = current
        self.requested = requested
