# reconsuite/storage/__init__.py
"""
Storage Gateway adapters.

    sql     SqlStorage     Flask-SQLAlchemy (production)
    memory  MemoryStorage  in-process arena (tests, no database)
"""

from __future__ import annotations

from ..errors import ValidationError
from .base import FindingRecord, ScanRecord, StorageGateway, check_transition
from .memory import MemoryStorage
from .sql import SqlStorage

BACKENDS = {
    "sql": SqlStorage,
    "memory": MemoryStorage,
}


def build_storage(kind: str) -> StorageGateway:
    cls = BACKENDS.get((kind or "").strip().lower())
    if cls is None:
        raise ValidationError(f"Unknown storage backend '{kind}'. Allowed: {', '.join(BACKENDS)}")
    return cls()


__all__ = [
    "BACKENDS",
    "FindingRecord",
    "MemoryStorage",
    "ScanRecord",
    "SqlStorage",
    "StorageGateway",
    "build_storage",
    "check_transition",
]
