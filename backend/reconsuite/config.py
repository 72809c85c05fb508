# reconsuite/config.py
"""
Runtime settings, read from environment variables at call time.

    SQLALCHEMY_DATABASE_URI      database for the SQL storage adapter
    RECON_STORAGE                "sql" (default) or "memory"
    RECON_ENV                    "production" switches logging to INFO
    RECON_LOG_LEVEL              explicit log level override
    CORS_ORIGINS                 comma-separated allowed origins
    RECON_SCAN_WORKERS           background scan worker threads
    RECON_MAX_CONCURRENCY        ceiling for any batcher concurrency hint
    RECON_DNS_TIMEOUT            seconds per DNS lookup
    RECON_HTTP_TIMEOUT           seconds per HTTP request
    RECON_PORT_RANGE_CEILING     max ports expanded from a single a-b range
    RECON_MAX_PORTS              max ports in one port scan
    RECON_MAX_BODY_BYTES         max response body read for page analysis
    RECON_USER_AGENT             User-Agent sent with HTTP probes
    RECON_REPRESENTATIVE_BANNERS fill missing banners from the static table
    RECON_AUTO_CREATE_SCHEMA     run db.create_all() at startup (dev / sqlite)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

DEFAULT_USER_AGENT = "reconsuite-scanner/1.0"


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ReconSettings:
    database_uri: Optional[str] = None
    storage: str = "sql"
    environment: str = "development"
    log_level: Optional[str] = None
    cors_origins: Optional[str] = None
    scan_workers: int = 4
    max_concurrency: int = 50
    dns_timeout: float = 3.0
    http_timeout: float = 5.0
    port_range_ceiling: int = 1000
    max_ports: int = 5000
    max_body_bytes: int = 2 * 1024 * 1024
    user_agent: str = DEFAULT_USER_AGENT
    representative_banners: bool = False
    auto_create_schema: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "ReconSettings":
        """Create settings from environment variables (evaluated at call time)."""
        return cls(
            database_uri=os.getenv("SQLALCHEMY_DATABASE_URI"),
            storage=os.getenv("RECON_STORAGE", cls.storage).strip().lower(),
            environment=os.getenv("RECON_ENV", cls.environment),
            log_level=os.getenv("RECON_LOG_LEVEL"),
            cors_origins=os.getenv("CORS_ORIGINS"),
            scan_workers=max(1, _int_env("RECON_SCAN_WORKERS", cls.scan_workers)),
            max_concurrency=max(1, _int_env("RECON_MAX_CONCURRENCY", cls.max_concurrency)),
            dns_timeout=_float_env("RECON_DNS_TIMEOUT", cls.dns_timeout),
            http_timeout=_float_env("RECON_HTTP_TIMEOUT", cls.http_timeout),
            port_range_ceiling=max(1, _int_env("RECON_PORT_RANGE_CEILING", cls.port_range_ceiling)),
            max_ports=max(1, _int_env("RECON_MAX_PORTS", cls.max_ports)),
            max_body_bytes=max(1024, _int_env("RECON_MAX_BODY_BYTES", cls.max_body_bytes)),
            user_agent=os.getenv("RECON_USER_AGENT", cls.user_agent),
            representative_banners=_bool_env("RECON_REPRESENTATIVE_BANNERS", cls.representative_banners),
            auto_create_schema=_bool_env("RECON_AUTO_CREATE_SCHEMA", cls.auto_create_schema),
        )

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "ReconSettings":
        """Return a copy with known fields replaced; unknown keys are ignored."""
        if not overrides:
            return self
        names = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in overrides.items() if k in names})
