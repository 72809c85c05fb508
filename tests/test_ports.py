import random
import threading

import pytest

from conftest import FakePortProbe
from reconsuite.config import ReconSettings
from reconsuite.errors import ScanCancelled, ValidationError
from reconsuite.scanner.base import PortResult, PortState
from reconsuite.scanner.probes import COMMON_PORTS
from reconsuite.scanner.strategies.ports import (
    REPRESENTATIVE_BANNERS,
    PortScanStrategy,
    expand_port_spec,
    speed_timeout,
)


# ---------------------------------------------------------------------------
# Port specification
# ---------------------------------------------------------------------------

def test_common_spec_is_the_fixed_list():
    assert expand_port_spec("common") == sorted(COMMON_PORTS)
    assert expand_port_spec(None) == sorted(COMMON_PORTS)
    assert expand_port_spec("") == sorted(COMMON_PORTS)


def test_list_and_ranges_are_sorted_and_deduplicated():
    assert expand_port_spec("443, 22,80-82,81") == [22, 80, 81, 82, 443]
    assert expand_port_spec([8080, 22, 22]) == [22, 8080]


def test_wide_range_is_clamped_to_the_ceiling():
    ports = expand_port_spec("1-65535", range_ceiling=1000)
    assert ports[0] == 1
    assert ports[-1] == 1000
    assert len(ports) == 1000


def test_total_port_count_is_capped():
    ports = expand_port_spec("1-100,200-300", range_ceiling=1000, max_ports=150)
    assert len(ports) == 150


@pytest.mark.parametrize("spec", ["0", "65536", "80-22", "http", "22,abc", ",", [True], 3.5])
def test_bad_specs_are_rejected(spec):
    with pytest.raises(ValidationError):
        expand_port_spec(spec)


def test_speed_timeout_dial():
    assert speed_timeout(1) == 2.5
    assert speed_timeout(3) == 1.5
    assert speed_timeout(5) == 0.5


# ---------------------------------------------------------------------------
# Scan
# ---------------------------------------------------------------------------

def test_ssh_and_https_open_rest_closed():
    probe = FakePortProbe(states={22: PortState.OPEN, 443: PortState.OPEN})
    emitted = []

    results = PortScanStrategy(ReconSettings(), port_probe=probe).run(
        "scanme.example.org", emit=emitted.append, port_spec="22,80,443", speed=5,
    )

    assert [(r.port, r.state, r.service) for r in results] == [
        (22, PortState.OPEN, "ssh"),
        (80, PortState.CLOSED, "http"),
        (443, PortState.OPEN, "https"),
    ]
    assert len(emitted) == 3
    assert all(host == "scanme.example.org" for host, _p, _t, _b in probe.calls)
    assert {timeout for _h, _p, timeout, _b in probe.calls} == {0.5}


def test_probe_that_raises_is_reported_filtered():
    probe = FakePortProbe(states={22: PortState.OPEN, 80: OSError("reset")})
    results = PortScanStrategy(ReconSettings(), port_probe=probe).run("10.0.0.5", port_spec="22,80")

    by_port = {r.port: r for r in results}
    assert by_port[22].state == PortState.OPEN
    assert by_port[80].state == PortState.FILTERED
    assert by_port[80].service == "http"


def test_hanging_probe_is_filled_in_as_filtered():
    release = threading.Event()

    def probe(host, port, timeout=None, attempt_banner=False):
        if port == 8080:
            release.wait(5)
        return PortResult(port=port, state=PortState.OPEN)

    try:
        results = PortScanStrategy(ReconSettings(), port_probe=probe).run(
            "example.com", port_spec="22,8080", speed=5,
        )
    finally:
        release.set()

    assert [(r.port, r.state) for r in results] == [(22, PortState.OPEN), (8080, PortState.FILTERED)]


def test_version_detection_asks_for_banners():
    probe = FakePortProbe(states={22: PortState.OPEN}, banners={22: "SSH-2.0-OpenSSH_9.6"})
    results = PortScanStrategy(ReconSettings(), port_probe=probe).run(
        "example.com", port_spec="22", version_detect=True,
    )
    assert results[0].banner == "SSH-2.0-OpenSSH_9.6"
    assert probe.calls[0][3] is True


def test_representative_banners_only_when_enabled():
    probe = FakePortProbe(states={21: PortState.OPEN, 22: PortState.OPEN, 80: PortState.CLOSED})
    strategy = PortScanStrategy(ReconSettings(), port_probe=probe, rng=random.Random(7))

    plain = strategy.run("example.com", port_spec="21,22,80", version_detect=True)
    assert all(r.banner is None for r in plain)

    filled = strategy.run(
        "example.com", port_spec="21,22,80", version_detect=True, representative_banners=True,
    )
    by_port = {r.port: r for r in filled}
    assert by_port[21].banner in REPRESENTATIVE_BANNERS["ftp"]
    assert by_port[22].banner in REPRESENTATIVE_BANNERS["ssh"]
    assert by_port[80].banner is None


def test_invalid_target_and_speed_are_rejected():
    strategy = PortScanStrategy(ReconSettings(), port_probe=FakePortProbe())
    with pytest.raises(ValidationError):
        strategy.run("not a host!", port_spec="22")
    with pytest.raises(ValidationError):
        strategy.run("example.com", port_spec="22", speed=9)


def test_cancellation_propagates():
    def checkpoint():
        raise ScanCancelled(3)

    strategy = PortScanStrategy(ReconSettings(), port_probe=FakePortProbe())
    with pytest.raises(ScanCancelled):
        strategy.run("example.com", port_spec="22", checkpoint=checkpoint)
