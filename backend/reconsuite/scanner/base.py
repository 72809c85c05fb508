# reconsuite/scanner/base.py
"""
Shared vocabulary for the scan pipeline.

    Probes → Technique Batcher → Strategies → ScanOrchestrator → StorageGateway

Strategies never touch storage. They hand each accepted item to an `emit`
callback (the orchestrator persists it as a Finding straight away) and call
`checkpoint()` between phases and batch windows so a cancelled scan stops
at the next window.

Every Finding's `details` payload has exactly one shape per ResultType,
declared in DETAILS_SCHEMA and enforced by validate_details().
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import ReconSettings
from ..errors import FindingSchemaError, PersistenceError, ScanCancelled, StrategyError, ValidationError

logger = logging.getLogger(__name__)

Emit = Callable[[Any], None]
Checkpoint = Callable[[], None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_utc() -> datetime:
    """Naive UTC timestamp (matches the DateTime columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _noop_checkpoint() -> None:
    return None


# ---------------------------------------------------------------------------
# Enumerations: wire values are the lowercase strings used by the API
# ---------------------------------------------------------------------------

class _WireEnum(str, Enum):

    @classmethod
    def parse(cls, value, field_name: str = ""):
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        for member in cls:
            if member.value == raw:
                return member
        allowed = ", ".join(m.value for m in cls)
        label = field_name or cls.__name__
        raise ValidationError(f"Invalid {label} '{value}'. Allowed: {allowed}")

    def __str__(self) -> str:
        return self.value


class ScanType(_WireEnum):
    FULL = "full"
    SUBDOMAIN = "subdomain"
    PARAMETER = "parameter"
    VULNERABILITY = "vulnerability"
    CONTENT = "content"
    PORT_SCAN = "port_scan"
    TECH_DETECTION = "tech_detection"


class ScanStatus(_WireEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED})

# current status -> statuses it may move to
ALLOWED_TRANSITIONS: Dict[ScanStatus, frozenset] = {
    ScanStatus.PENDING: frozenset({ScanStatus.IN_PROGRESS, ScanStatus.CANCELLED, ScanStatus.FAILED}),
    ScanStatus.IN_PROGRESS: frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED}),
    ScanStatus.COMPLETED: frozenset(),
    ScanStatus.FAILED: frozenset(),
    ScanStatus.CANCELLED: frozenset(),
}


class ResultType(_WireEnum):
    SUBDOMAIN = "subdomain"
    PARAMETER = "parameter"
    VULNERABILITY = "vulnerability"
    PORT = "port"
    DIRECTORY = "directory"
    TECHNOLOGY = "technology"


class Severity(_WireEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFO: 4,
}


class PortState(_WireEnum):
    OPEN = "open"
    CLOSED = "closed"
    FILTERED = "filtered"


class SubdomainTechnique(_WireEnum):
    ALL = "all"
    DNS = "dns"
    BRUTEFORCE = "bruteforce"
    PERMUTATIONS = "permutations"
    CUSTOM = "custom"


class WordlistTier(_WireEnum):
    DEFAULT = "default"
    COMMON = "common"
    LARGE = "large"
    CUSTOM = "custom"


# ---------------------------------------------------------------------------
# Strategy output items
# ---------------------------------------------------------------------------

def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass(frozen=True)
class PortResult:
    port: int
    state: PortState
    service: Optional[str] = None
    banner: Optional[str] = None

    def to_details(self) -> Dict[str, Any]:
        return _compact({
            "port": self.port,
            "state": self.state.value,
            "service": self.service,
            "banner": self.banner,
        })


@dataclass(frozen=True)
class PathResult:
    path: str
    status_code: int
    content_type: Optional[str] = None
    content_length: Optional[int] = None

    def to_details(self) -> Dict[str, Any]:
        return _compact({
            "path": self.path,
            "statusCode": self.status_code,
            "contentType": self.content_type,
            "contentLength": self.content_length,
        })


@dataclass(frozen=True)
class TechMatch:
    name: str
    category: str
    confidence: int
    version: Optional[str] = None

    def to_details(self) -> Dict[str, Any]:
        return _compact({
            "name": self.name,
            "category": self.category,
            "version": self.version,
            "confidence": self.confidence,
        })


@dataclass(frozen=True)
class ParameterMatch:
    name: str
    type: str
    confidence: int
    source: str = "page"        # page, reflected

    def to_details(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type}


@dataclass(frozen=True)
class VulnMatch:
    type: str
    description: str
    severity: Severity
    confidence: int

    def to_details(self) -> Dict[str, Any]:
        return {"type": self.type, "description": self.description}


# ---------------------------------------------------------------------------
# Finding details schema
# ---------------------------------------------------------------------------

# category -> (required {key: type}, optional {key: type})
DETAILS_SCHEMA: Dict[ResultType, Tuple[Dict[str, type], Dict[str, type]]] = {
    ResultType.SUBDOMAIN: ({"domain": str}, {}),
    ResultType.PARAMETER: ({"name": str, "type": str}, {}),
    ResultType.VULNERABILITY: ({"type": str, "description": str}, {}),
    ResultType.PORT: ({"port": int, "state": str}, {"service": str, "banner": str}),
    ResultType.DIRECTORY: ({"path": str, "statusCode": int}, {"contentType": str, "contentLength": int}),
    ResultType.TECHNOLOGY: ({"name": str, "category": str, "confidence": int}, {"version": str}),
}


def _type_ok(value: Any, expected: type) -> bool:
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected)


def validate_details(category: ResultType, details: Any) -> Dict[str, Any]:
    """
    Check a details payload against its category's fixed shape.

    Optional keys holding None are dropped. Returns the normalized copy;
    raises FindingSchemaError on missing, extra or mistyped keys.
    """
    category = ResultType.parse(category, "result type")
    if not isinstance(details, dict):
        raise FindingSchemaError(f"{category.value} details must be an object")

    required, optional = DETAILS_SCHEMA[category]
    clean = {k: v for k, v in details.items() if not (k in optional and v is None)}

    extra = set(clean) - set(required) - set(optional)
    if extra:
        raise FindingSchemaError(
            f"Unexpected keys for {category.value} details: {', '.join(sorted(extra))}"
        )
    for key, expected in required.items():
        if key not in clean:
            raise FindingSchemaError(f"{category.value} details missing '{key}'")
        if not _type_ok(clean[key], expected):
            raise FindingSchemaError(f"{category.value} details '{key}' must be {expected.__name__}")
    for key, expected in optional.items():
        if key in clean and not _type_ok(clean[key], expected):
            raise FindingSchemaError(f"{category.value} details '{key}' must be {expected.__name__}")

    if category == ResultType.PORT:
        if clean["state"] not in {s.value for s in PortState}:
            raise FindingSchemaError(f"port details 'state' must be one of: {', '.join(s.value for s in PortState)}")
        if not 1 <= clean["port"] <= 65535:
            raise FindingSchemaError("port details 'port' must be within 1-65535")
    if category == ResultType.TECHNOLOGY and not 0 <= clean["confidence"] <= 100:
        raise FindingSchemaError("technology details 'confidence' must be within 0-100")

    return clean


# ---------------------------------------------------------------------------
# Strategy base
# ---------------------------------------------------------------------------

class PhaseRunner:
    """
    Runs the independent sub-phases of one strategy invocation.

    A phase that raises contributes nothing and is logged; the strategy
    continues with the next phase. Once every attempted phase has failed,
    raise_if_all_failed() escalates with StrategyError. Cancellation and
    failures to save a finding are never swallowed.
    """

    def __init__(self, strategy: str, target: str):
        self.strategy = strategy
        self.target = target
        self.attempted: List[str] = []
        self.failed: List[str] = []

    def run(self, phase: str, fn: Callable, *args, **kwargs):
        self.attempted.append(phase)
        try:
            return fn(*args, **kwargs)
        except (ScanCancelled, PersistenceError):
            raise
        except Exception as e:
            self.failed.append(phase)
            logger.warning(
                "%s: phase '%s' failed for %s: %s: %s",
                self.strategy, phase, self.target, type(e).__name__, e,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            return None

    def raise_if_all_failed(self) -> None:
        if self.attempted and len(self.failed) == len(self.attempted):
            raise StrategyError(
                f"{self.strategy}: every phase failed for {self.target} "
                f"({', '.join(self.failed)})"
            )


class BaseStrategy(ABC):
    """
    Abstract base for enumeration strategies.

    To add a strategy:
        1. Subclass BaseStrategy and set `name` and `result_type`
        2. Implement `run(target, emit=None, checkpoint=None, **options)`
        3. Register it in scanner.strategies.build_strategies()

    `run()` returns the strategy's complete output list and, while running,
    passes each accepted item to `emit` exactly once. Unlike a probe, a
    strategy lets unexpected errors propagate so the orchestrator can fail
    the scan.
    """

    name: str = ""
    result_type: ResultType

    def __init__(self, settings: Optional[ReconSettings] = None):
        self.settings = settings or ReconSettings()

    @abstractmethod
    def run(self, target: str, emit: Optional[Emit] = None,
            checkpoint: Optional[Checkpoint] = None, **options) -> List[Any]:
        ...

    def severity_of(self, item: Any) -> Severity:
        """Severity recorded on the Finding for one output item."""
        return Severity.INFO

    def details_of(self, item: Any) -> Dict[str, Any]:
        """Details payload recorded on the Finding for one output item."""
        return item.to_details()

    @staticmethod
    def _emitter(emit: Optional[Emit]) -> Emit:
        return emit if emit is not None else (lambda item: None)

    @staticmethod
    def _checkpoint(checkpoint: Optional[Checkpoint]) -> Checkpoint:
        return checkpoint if checkpoint is not None else _noop_checkpoint
