# reconsuite/scanner/strategies/ports.py
"""
TCP port scan.

Port specification forms:
    "common"            the fixed COMMON_PORTS list (also for None / "")
    "22,80,8000-8100"   comma list of ports and a-b ranges
    [22, 80, 443]       explicit list

Speed dial 1-5 sets both the per-probe timeout ((6 - speed) * 0.5 s) and
the window size (speed * 20, clamped). Results come back sorted by port.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, List, Optional

from ...errors import ValidationError
from ...utils.validation import parse_int, validate_host
from ..base import BaseStrategy, Checkpoint, Emit, PhaseRunner, PortResult, PortState, ResultType
from ..batcher import clamp_concurrency, run_batched
from ..probes import COMMON_PORTS, probe_port, service_for_port

logger = logging.getLogger(__name__)

DEFAULT_SPEED = 3

# Representative banners per service, used only when no live banner was read
REPRESENTATIVE_BANNERS: Dict[str, List[str]] = {
    "ssh": ["SSH-2.0-OpenSSH_8.4p1", "SSH-2.0-OpenSSH_7.9p1", "SSH-2.0-OpenSSH_8.2p1"],
    "http": ["Apache/2.4.41 (Ubuntu)", "nginx/1.18.0", "Microsoft-IIS/10.0"],
    "https": ["Apache/2.4.41 (Ubuntu)", "nginx/1.18.0", "Microsoft-IIS/10.0"],
    "ftp": ["220 ProFTPD 1.3.5e Server", "220 vsFTPd 3.0.3", "220 FileZilla Server 0.9.60 beta"],
    "smtp": ["220 mail.example.com ESMTP Postfix", "220 mail.example.com ESMTP Exim 4.94",
             "220 mail.example.com Microsoft ESMTP MAIL Service"],
    "mysql": ["5.7.34-log MySQL Community Server", "8.0.25 MySQL Community Server",
              "5.5.5-10.5.10-MariaDB"],
}


def _check_port(value: Any) -> int:
    raw = str(value).strip()
    if isinstance(value, bool) or not raw.isdigit():
        raise ValidationError(f"Invalid port '{value}'")
    port = int(raw)
    if not 1 <= port <= 65535:
        raise ValidationError(f"Port {port} is out of range (1-65535)")
    return port


def expand_port_spec(spec: Any, range_ceiling: int = 1000, max_ports: int = 5000) -> List[int]:
    """
    Expand a port specification into a sorted, de-duplicated port list.

    A range wider than `range_ceiling` ports is clamped to its first
    `range_ceiling` ports; the whole list is capped at `max_ports`.
    """
    if spec is None or (isinstance(spec, str) and spec.strip().lower() in ("", "common")):
        return sorted(COMMON_PORTS)

    ports: List[int] = []
    if isinstance(spec, str):
        for token in spec.split(","):
            token = token.strip()
            if not token:
                continue
            if "-" in token:
                start_raw, _, end_raw = token.partition("-")
                start, end = _check_port(start_raw), _check_port(end_raw)
                if start > end:
                    raise ValidationError(f"Invalid port range '{token}'")
                if end - start + 1 > range_ceiling:
                    clamped = start + range_ceiling - 1
                    logger.warning(
                        "Port range %s clamped to %d-%d (ceiling %d)", token, start, clamped, range_ceiling,
                    )
                    end = clamped
                ports.extend(range(start, end + 1))
            else:
                ports.append(_check_port(token))
    elif isinstance(spec, (list, tuple, set)):
        ports = [_check_port(p) for p in spec]
    else:
        raise ValidationError("Port specification must be a string or a list of ports")

    unique = sorted(set(ports))
    if not unique:
        raise ValidationError("Port specification contains no ports")
    if len(unique) > max_ports:
        logger.warning("Port list capped at %d of %d ports", max_ports, len(unique))
        unique = unique[:max_ports]
    return unique


def speed_timeout(speed: int) -> float:
    return (6 - speed) * 0.5


class PortScanStrategy(BaseStrategy):
    name = "ports"
    result_type = ResultType.PORT

    def __init__(self, settings=None,
                 port_probe: Callable[..., PortResult] = probe_port,
                 rng: Optional[random.Random] = None):
        super().__init__(settings)
        self.port_probe = port_probe
        self.rng = rng or random.Random()

    def run(self, target: str, emit: Optional[Emit] = None,
            checkpoint: Optional[Checkpoint] = None,
            port_spec: Any = "common", speed: Any = DEFAULT_SPEED,
            version_detect: bool = False,
            representative_banners: Optional[bool] = None, **_ignored) -> List[PortResult]:
        host = validate_host(target)
        speed = parse_int(speed, "Scan speed", 1, 5, default=DEFAULT_SPEED)
        ports = expand_port_spec(port_spec, self.settings.port_range_ceiling, self.settings.max_ports)
        if representative_banners is None:
            representative_banners = self.settings.representative_banners

        timeout = speed_timeout(speed)
        concurrency = clamp_concurrency(speed * 20, self.settings.max_concurrency)
        emit = self._emitter(emit)
        runner = PhaseRunner(self.name, host)

        logger.info(
            "Port scan for %s: %d ports, speed=%d (timeout %.1fs, concurrency %d), version=%s",
            host, len(ports), speed, timeout, concurrency, version_detect,
        )

        def probe(port: int) -> PortResult:
            return self.port_probe(host, port, timeout=timeout, attempt_banner=version_detect)

        results: List[PortResult] = []

        def accept(result: PortResult) -> None:
            if version_detect and representative_banners:
                result = self._with_representative_banner(result)
            results.append(result)
            emit(result)

        # Window deadline leaves room for the banner read after connect
        window_timeout = timeout + (2.5 if version_detect else 0.5)
        runner.run(
            "tcp-connect", run_batched, ports, concurrency, probe,
            timeout=window_timeout, checkpoint=self._checkpoint(checkpoint),
            on_outcome=accept, label="ports",
        )
        runner.raise_if_all_failed()

        # Probes abandoned at the window deadline (or that raised) never answered
        answered = {r.port for r in results}
        for port in ports:
            if port not in answered:
                accept(PortResult(port=port, state=PortState.FILTERED, service=service_for_port(port)))

        results.sort(key=lambda r: r.port)
        open_count = sum(1 for r in results if r.state == PortState.OPEN)
        logger.info("Port scan for %s: %d open of %d probed", host, open_count, len(results))
        return results

    def _with_representative_banner(self, result: PortResult) -> PortResult:
        if result.state != PortState.OPEN or result.banner or not result.service:
            return result
        choices = REPRESENTATIVE_BANNERS.get(result.service)
        if not choices:
            return result
        return PortResult(
            port=result.port,
            state=result.state,
            service=result.service,
            banner=self.rng.choice(choices),
        )
