# reconsuite/scanner/probes.py
"""
Single-target network probes.

Each probe makes one attempt against one target and returns one outcome.
Operational failures (timeouts, refused connections, unresolved names,
TLS errors) are folded into a negative result and never raised:

    resolve_name(name)                 -> [ip, ...]        empty = unresolved
    lookup_records(domain, rtype)      -> [text, ...]      NS / MX / TXT values
    probe_port(host, port, ...)        -> PortResult       open / closed / filtered
    probe_path(base_url, path, ...)    -> PathResult|None  None = transport failure
    fetch_page(url, ...)               -> PageSnapshot|None

Strategies receive these as constructor arguments so tests can swap in fakes.
"""

from __future__ import annotations

import logging
import socket
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urljoin, urlsplit

import dns.exception
import dns.resolver
import requests
import urllib3

from .base import PathResult, PortResult, PortState

logger = logging.getLogger(__name__)

urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

DNS_TIMEOUT = 3.0
HTTP_TIMEOUT = 5.0
PORT_TIMEOUT = 1.5
BANNER_TIMEOUT = 2.0
MAX_BANNER_BYTES = 1024
MAX_BODY_BYTES = 2 * 1024 * 1024
HEADERS = {"User-Agent": "reconsuite-scanner/1.0"}

# ── Port → service table ──
SERVICE_MAP: Dict[int, str] = {
    21: "ftp",
    22: "ssh",
    23: "telnet",
    25: "smtp",
    53: "dns",
    80: "http",
    110: "pop3",
    143: "imap",
    443: "https",
    445: "smb",
    3306: "mysql",
    3389: "rdp",
    5432: "postgresql",
    8080: "http-proxy",
    8443: "https-alt",
}

COMMON_PORTS = [
    20, 21, 22, 23, 25, 53, 80, 110, 111, 135, 139, 143,
    443, 445, 993, 995, 1723, 3306, 3389, 5900, 8080, 8443,
]

# Services whose greeting can be read as a banner.
#   None  -> server speaks first, just read
#   bytes -> send this request, then read
BANNER_GRAMMARS: Dict[str, Optional[bytes]] = {
    "ftp": None,
    "ssh": None,
    "smtp": None,
    "pop3": None,
    "imap": None,
    "mysql": None,
    "http": b"HEAD / HTTP/1.0\r\nHost: %(host)s\r\nUser-Agent: reconsuite-scanner/1.0\r\n\r\n",
    "http-proxy": b"HEAD / HTTP/1.0\r\nHost: %(host)s\r\nUser-Agent: reconsuite-scanner/1.0\r\n\r\n",
}

NEGATIVE_DNS_ERRORS = (
    dns.resolver.NXDOMAIN,
    dns.resolver.NoAnswer,
    dns.resolver.NoNameservers,
    dns.exception.Timeout,
)


def service_for_port(port: int) -> Optional[str]:
    return SERVICE_MAP.get(port)


# ---------------------------------------------------------------------------
# DNS
# ---------------------------------------------------------------------------

def resolve_name(name: str) -> List[str]:
    """Resolve a hostname to its addresses. Empty list means unresolved."""
    try:
        results = socket.getaddrinfo(name, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except (socket.gaierror, socket.herror, UnicodeError, OSError):
        return []
    ips: List[str] = []
    for _family, _type, _proto, _canon, sockaddr in results:
        ip = sockaddr[0]
        if ip not in ips:
            ips.append(ip)
    return ips


def _make_resolver(timeout: float) -> dns.resolver.Resolver:
    resolver = dns.resolver.Resolver()
    resolver.timeout = timeout
    resolver.lifetime = timeout * 2
    return resolver


def lookup_records(domain: str, rtype: str, timeout: float = DNS_TIMEOUT) -> List[str]:
    """
    Query one record type and return its values as text.

    NS  -> nameserver hostnames
    MX  -> exchange hostnames
    TXT -> joined character strings

    NXDOMAIN / NoAnswer / timeouts are negative results (empty list).
    Any other resolver error propagates to the calling phase.
    """
    rtype = rtype.upper()
    try:
        answers = _make_resolver(timeout).resolve(domain, rtype)
    except NEGATIVE_DNS_ERRORS as e:
        logger.debug("DNS %s %s: %s", rtype, domain, type(e).__name__)
        return []

    values: List[str] = []
    for rdata in answers:
        if rtype == "NS":
            values.append(rdata.target.to_text().rstrip(".").lower())
        elif rtype == "MX":
            values.append(rdata.exchange.to_text().rstrip(".").lower())
        elif rtype == "TXT":
            values.append(b"".join(rdata.strings).decode("utf-8", errors="replace"))
        else:
            values.append(rdata.to_text())
    return values


# ---------------------------------------------------------------------------
# TCP ports
# ---------------------------------------------------------------------------

def _parse_mysql_greeting(data: bytes) -> Optional[str]:
    # 3-byte length, sequence id, protocol version, NUL-terminated server version
    if len(data) < 6:
        return None
    (length,) = struct.unpack("<I", data[:3] + b"\x00")
    payload = data[4:4 + length]
    if not payload or payload[0] != 10:
        return None
    version = payload[1:].split(b"\x00", 1)[0]
    if not version:
        return None
    return f"MySQL {version.decode('ascii', errors='replace')}"


def _parse_http_server(data: bytes) -> Optional[str]:
    text = data.decode("iso-8859-1", errors="replace")
    for line in text.split("\r\n")[1:]:
        if line.lower().startswith("server:"):
            return line.split(":", 1)[1].strip() or None
    first = text.split("\r\n", 1)[0].strip()
    return first or None


def _read_banner(sock: socket.socket, host: str, service: str) -> Optional[str]:
    request = BANNER_GRAMMARS[service]
    try:
        sock.settimeout(BANNER_TIMEOUT)
        if request is not None:
            sock.sendall(request % {b"host": host.encode("idna")})
        data = sock.recv(MAX_BANNER_BYTES)
    except (socket.timeout, OSError, UnicodeError):
        return None
    if not data:
        return None

    if service == "mysql":
        return _parse_mysql_greeting(data)
    if service in ("http", "http-proxy"):
        return _parse_http_server(data)

    line = data.decode("utf-8", errors="replace").strip().splitlines()
    return line[0][:200] if line else None


def probe_port(host: str, port: int, timeout: float = PORT_TIMEOUT,
               attempt_banner: bool = False) -> PortResult:
    """
    TCP connect to host:port.

    connected -> open, refused -> closed, timeout / unreachable /
    unresolvable -> filtered. A banner is read only when requested and only
    for services listed in BANNER_GRAMMARS.
    """
    service = service_for_port(port)
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except ConnectionRefusedError:
        return PortResult(port=port, state=PortState.CLOSED, service=service)
    except (socket.timeout, socket.gaierror, OSError):
        return PortResult(port=port, state=PortState.FILTERED, service=service)

    banner = None
    try:
        if attempt_banner and service in BANNER_GRAMMARS:
            banner = _read_banner(sock, host, service)
    finally:
        sock.close()

    return PortResult(port=port, state=PortState.OPEN, service=service, banner=banner)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

def join_url(base_url: str, path: str) -> str:
    """Append `path` beneath the base URL's path (never replaces it)."""
    base = base_url if base_url.endswith("/") else base_url + "/"
    return urljoin(base, path.lstrip("/"))


def _content_length(headers) -> Optional[int]:
    raw = headers.get("Content-Length")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _content_type(headers) -> Optional[str]:
    raw = headers.get("Content-Type")
    if not raw:
        return None
    return raw.split(";", 1)[0].strip().lower() or None


def probe_path(base_url: str, path: str, timeout: float = HTTP_TIMEOUT,
               headers: Optional[Dict[str, str]] = None) -> Optional[PathResult]:
    """
    GET one candidate path without following redirects.

    Any HTTP status (4xx/5xx included) is a result. Transport failures
    return None. The body is never downloaded.
    """
    url = join_url(base_url, path)
    try:
        with requests.get(
            url,
            timeout=timeout,
            headers=headers or HEADERS,
            allow_redirects=False,
            verify=False,
            stream=True,
        ) as r:
            return PathResult(
                path=path,
                status_code=r.status_code,
                content_type=_content_type(r.headers),
                content_length=_content_length(r.headers),
            )
    except requests.RequestException as e:
        logger.debug("Path probe %s failed: %s", url, type(e).__name__)
        return None


@dataclass
class PageSnapshot:
    """One fetched page: what tech / parameter / vulnerability checks read."""
    url: str
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)     # lower-cased names
    set_cookies: List[str] = field(default_factory=list)      # raw Set-Cookie values
    body: str = ""

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def is_https(self) -> bool:
        return urlsplit(self.url).scheme == "https"


def _raw_set_cookies(r: requests.Response) -> List[str]:
    raw_headers = getattr(r.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    value = r.headers.get("Set-Cookie")
    return [value] if value else []


def fetch_page(url: str, timeout: float = HTTP_TIMEOUT, max_bytes: int = MAX_BODY_BYTES,
               headers: Optional[Dict[str, str]] = None) -> Optional[PageSnapshot]:
    """GET a page (following redirects) and capture headers, cookies and a capped body."""
    try:
        with requests.get(
            url,
            timeout=timeout,
            headers=headers or HEADERS,
            allow_redirects=True,
            verify=False,
            stream=True,
        ) as r:
            content = r.raw.read(max_bytes, decode_content=True) or b""
            body = content.decode(r.encoding or "utf-8", errors="replace")
            return PageSnapshot(
                url=r.url or url,
                status_code=r.status_code,
                headers={k.lower(): v for k, v in r.headers.items()},
                set_cookies=_raw_set_cookies(r),
                body=body,
            )
    except (requests.RequestException, urllib3.exceptions.HTTPError, LookupError, OSError) as e:
        logger.debug("Page fetch %s failed: %s", url, type(e).__name__)
        return None
