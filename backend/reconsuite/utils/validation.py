# reconsuite/utils/validation.py
"""
Input validation for scan targets and tool parameters.

Everything here raises ValidationError (HTTP 400) and runs before any probe
is sent or any scan record is created.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

from ..errors import ValidationError

DOMAIN_RE = re.compile(r"^([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$", re.IGNORECASE)
HOSTNAME_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$", re.IGNORECASE)

MIN_DEPTH = 1
MAX_DEPTH = 5


def normalize_domain(d: str) -> str:
    d = (d or "").strip().lower()
    if d.startswith("http://") or d.startswith("https://"):
        d = d.split("://", 1)[1]
    d = d.split("/", 1)[0].split("?", 1)[0].split("#", 1)[0]
    if d.startswith("["):
        d = d[1:].split("]", 1)[0]
    elif d.count(":") == 1:
        d = d.split(":", 1)[0]
    d = d.strip().strip(".")
    return d


def is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def is_domain(value: str) -> bool:
    return bool(value) and len(value) <= 253 and bool(DOMAIN_RE.match(value))


def validate_domain(raw: Any) -> str:
    domain = normalize_domain(str(raw or ""))
    if not domain:
        raise ValidationError("Domain is required.")
    if not is_domain(domain):
        raise ValidationError("Invalid domain format.")
    return domain


def validate_host(raw: Any) -> str:
    """A domain name, single-label hostname or IP address."""
    host = normalize_domain(str(raw or ""))
    if not host:
        raise ValidationError("Target is required.")
    if is_ip(host) or is_domain(host) or HOSTNAME_RE.match(host):
        return host
    raise ValidationError("Invalid target. Provide a valid IP address or domain name.")


def validate_url(raw: Any, default_scheme: str = "https") -> str:
    """Normalize to scheme://host[:port][/path]; bare hosts get `default_scheme`."""
    value = str(raw or "").strip()
    if not value:
        raise ValidationError("URL is required.")
    if "://" not in value:
        value = f"{default_scheme}://{value}"

    parts = urlsplit(value)
    if parts.scheme.lower() not in ("http", "https"):
        raise ValidationError("URL must use http or https.")
    try:
        port = parts.port
    except ValueError:
        raise ValidationError("Invalid port in URL.")
    host = (parts.hostname or "").strip(".")
    if not host or not (is_ip(host) or is_domain(host) or HOSTNAME_RE.match(host)):
        raise ValidationError("Invalid URL host.")

    netloc = f"[{host}]" if ":" in host else host
    if port is not None:
        netloc = f"{netloc}:{port}"
    return urlunsplit((parts.scheme.lower(), netloc, parts.path or "/", parts.query, ""))


def validate_target(raw: Any) -> str:
    """A scan target: domain, host, IP or http(s) URL. Returned trimmed."""
    value = str(raw or "").strip()
    if not value:
        raise ValidationError("Target domain is required.")
    if len(value) > 2048:
        raise ValidationError("Target is too long.")
    if "://" in value:
        validate_url(value)
    else:
        validate_host(value)
    return value


def host_of(target: str) -> str:
    return validate_host(target)


def url_of(target: str) -> str:
    return validate_url(target)


def parse_int(value: Any, name: str, minimum: int, maximum: int,
              default: Optional[int] = None) -> int:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{name} is required.")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer.")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer.")
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{name} must be an integer.")
    if not minimum <= number <= maximum:
        raise ValidationError(f"{name} must be between {minimum} and {maximum}.")
    return number


def validate_depth(value: Any) -> int:
    return parse_int(value, "Scan depth", MIN_DEPTH, MAX_DEPTH)


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
