from concurrent.futures import Future
from datetime import timedelta

import pytest

from conftest import (
    BlockingStrategy,
    FakePageFetcher,
    FakeRecordLookup,
    FakeResolver,
    FakeStrategy,
    fake_strategy_set,
    make_page,
    probe_backed_strategies,
)
from reconsuite.config import ReconSettings
from reconsuite.errors import (
    InvalidStatusTransition,
    PersistenceError,
    ScanNotFound,
    StrategyError,
    ValidationError,
)
from reconsuite.scanner.base import PhaseRunner, ResultType, ScanStatus, ScanType, Severity
from reconsuite.scanner.orchestrator import (
    SCAN_PLANS,
    STEPS,
    ScanOrchestrator,
    fail_stale_scans,
    find_stale_scans,
    step_options,
    step_target,
    wordlist_tier,
)
from reconsuite.storage import MemoryStorage


class ManualExecutor:
    """Holds submitted work until the test runs it."""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args):
        self.submitted.append((fn, args))
        return Future()

    def run_all(self):
        for fn, args in self.submitted:
            fn(*args)


def _orchestrator(strategies, executor=None):
    return ScanOrchestrator(MemoryStorage(), strategies, ReconSettings(scan_workers=2), executor=executor)


# ---------------------------------------------------------------------------
# Plans and options
# ---------------------------------------------------------------------------

def test_full_plan_runs_three_steps_in_order():
    assert SCAN_PLANS[ScanType.FULL] == ["subdomain", "parameter", "vulnerability"]
    assert all(len(SCAN_PLANS[t]) == 1 for t in ScanType if t != ScanType.FULL)


@pytest.mark.parametrize("depth, tier", [(1, "default"), (2, "default"), (3, "common"), (4, "common"), (5, "large")])
def test_wordlist_tier_follows_depth(depth, tier):
    assert wordlist_tier(depth) == tier


def test_step_options_by_depth():
    assert step_options("subdomain", 5) == {"technique": "all", "wordlist": "large"}
    assert step_options("content", 3) == {"wordlist_type": "common", "recursive": False}
    assert step_options("content", 4)["recursive"] is True
    assert step_options("port_scan", 2) == {"port_spec": "common", "version_detect": False}
    assert step_options("port_scan", 4) == {"port_spec": "1-1000", "version_detect": True}
    assert step_options("vulnerability", 5) == {}


def test_step_targets():
    assert step_target(STEPS["parameter"], "example.com") == "https://example.com/"
    assert step_target(STEPS["port_scan"], "https://example.com:8443/x") == "example.com"
    assert step_target(STEPS["subdomain"], "https://Example.com/login") == "example.com"
    with pytest.raises(ValidationError):
        step_target(STEPS["subdomain"], "10.0.0.1")


# ---------------------------------------------------------------------------
# Scenario: full scan completes
# ---------------------------------------------------------------------------

def test_full_scan_persists_findings_and_summary():
    strategies = fake_strategy_set(
        subdomain=FakeStrategy("subdomain", ResultType.SUBDOMAIN,
                               items=[{"domain": "www.example.com"}, {"domain": "api.example.com"}]),
        parameters=FakeStrategy("parameters", ResultType.PARAMETER, items=[{"name": "id", "type": "number"}]),
        vulnerabilities=FakeStrategy("vulnerabilities", ResultType.VULNERABILITY, severity=Severity.MEDIUM,
                                     items=[{"type": "CORS Misconfiguration", "description": "any origin"}]),
    )
    orchestrator = _orchestrator(strategies)
    try:
        scan = orchestrator.create_scan("example.com", "full", 2)
        assert scan.status == ScanStatus.PENDING

        done = orchestrator.wait(scan.id, timeout=5)
    finally:
        orchestrator.shutdown()

    assert done.status == ScanStatus.COMPLETED
    assert done.completed_at is not None
    assert done.findings == {
        "subdomains": [{"domain": "www.example.com"}, {"domain": "api.example.com"}],
        "parameters": [{"name": "id", "type": "number"}],
        "vulnerabilities": [
            {"type": "CORS Misconfiguration", "description": "any origin", "severity": "medium"},
        ],
    }

    findings = orchestrator.get_findings(scan.id)
    assert len(findings) == 4
    by_type = {f.category: f for f in findings}
    assert by_type[ResultType.VULNERABILITY].severity == Severity.MEDIUM
    assert by_type[ResultType.PARAMETER].severity == Severity.INFO

    assert strategies.subdomain.calls[0]["target"] == "example.com"
    assert strategies.subdomain.calls[0]["options"] == {"technique": "all", "wordlist": "default"}
    assert strategies.parameters.calls[0]["target"] == "https://example.com/"
    assert strategies.content.calls == []


def test_port_scan_gets_host_and_depth_options():
    strategies = fake_strategy_set()
    orchestrator = _orchestrator(strategies)
    try:
        scan = orchestrator.create_scan("https://example.com:8443/x", ScanType.PORT_SCAN, 4)
        orchestrator.wait(scan.id, timeout=5)
    finally:
        orchestrator.shutdown()

    call = strategies.ports.calls[0]
    assert call["target"] == "example.com"
    assert call["options"] == {"port_spec": "1-1000", "version_detect": True}


def test_subdomain_scan_with_real_strategy_yields_only_subdomains(settings):
    resolver = FakeResolver({
        "www.example.com": ["93.184.216.34"],
        "api.example.com": ["93.184.216.35"],
        "api-dev.example.com": ["93.184.216.36"],
    })
    records = FakeRecordLookup({"NS": ["ns1.example.com."], "MX": ["mx.mailhost.net."]})
    strategies = probe_backed_strategies(settings, resolver=resolver, record_lookup=records)
    orchestrator = ScanOrchestrator(MemoryStorage(), strategies, settings)
    try:
        scan = orchestrator.create_scan("example.com", ScanType.SUBDOMAIN, 2)
        done = orchestrator.wait(scan.id, timeout=10)
    finally:
        orchestrator.shutdown()

    assert done.status == ScanStatus.COMPLETED
    findings = orchestrator.get_findings(scan.id)
    assert findings
    assert {f.category for f in findings} == {ResultType.SUBDOMAIN}
    domains = {f.details["domain"] for f in findings}
    assert domains == {"ns1.example.com", "www.example.com", "api.example.com", "api-dev.example.com"}
    assert all(d.endswith(".example.com") for d in domains)
    assert len(done.findings["subdomains"]) == len(findings)


class UnavailableStorage(MemoryStorage):
    def create_finding(self, scan_id, category, severity, details):
        raise RuntimeError("database unavailable")


def test_storage_failure_inside_a_phase_fails_the_scan(settings):
    resolver = FakeResolver({"www.example.com": ["93.184.216.34"]})
    strategies = probe_backed_strategies(settings, resolver=resolver, record_lookup=FakeRecordLookup())
    orchestrator = ScanOrchestrator(UnavailableStorage(), strategies, settings)
    try:
        scan = orchestrator.create_scan("example.com", "subdomain", 1)
        done = orchestrator.wait(scan.id, timeout=10)
    finally:
        orchestrator.shutdown()

    assert done.status == ScanStatus.FAILED
    assert done.completed_at is not None
    assert orchestrator.get_findings(scan.id) == []


def test_phase_runner_lets_persistence_errors_through():
    runner = PhaseRunner("subdomain", "example.com")

    def save():
        raise PersistenceError(1, RuntimeError("database unavailable"))

    with pytest.raises(PersistenceError):
        runner.run("bruteforce", save)
    assert runner.failed == []


# ---------------------------------------------------------------------------
# Scenario: failure mid-plan keeps partial results
# ---------------------------------------------------------------------------

def test_strategy_failure_marks_scan_failed_and_keeps_findings():
    strategies = fake_strategy_set(
        subdomain=FakeStrategy("subdomain", ResultType.SUBDOMAIN, items=[{"domain": "www.example.com"}]),
        parameters=FakeStrategy("parameters", ResultType.PARAMETER,
                                items=[{"name": "q", "type": "string"}],
                                error=StrategyError("parameters: every phase failed")),
    )
    orchestrator = _orchestrator(strategies)
    try:
        scan = orchestrator.create_scan("example.com", "full", 1)
        done = orchestrator.wait(scan.id, timeout=5)
    finally:
        orchestrator.shutdown()

    assert done.status == ScanStatus.FAILED
    assert done.completed_at is not None
    assert done.findings == {
        "subdomains": [{"domain": "www.example.com"}],
        "parameters": [{"name": "q", "type": "string"}],
    }
    assert len(orchestrator.get_findings(scan.id)) == 2
    assert strategies.vulnerabilities.calls == []


def test_vulnerability_step_failure_keeps_subdomain_and_parameter_findings(settings):
    real = probe_backed_strategies(
        settings,
        resolver=FakeResolver({"www.example.com": ["93.184.216.34"]}),
        page_fetcher=FakePageFetcher(make_page(body='<a href="/item?id=5">item</a>')),
    )
    strategies = fake_strategy_set(
        subdomain=real.subdomain,
        parameters=real.parameters,
        vulnerabilities=FakeStrategy("vulnerabilities", ResultType.VULNERABILITY,
                                     error=RuntimeError("scanner crashed")),
    )
    orchestrator = ScanOrchestrator(MemoryStorage(), strategies, settings)
    try:
        scan = orchestrator.create_scan("example.com", "full", 1)
        done = orchestrator.wait(scan.id, timeout=10)
    finally:
        orchestrator.shutdown()

    assert done.status == ScanStatus.FAILED
    assert {"domain": "www.example.com"} in done.findings["subdomains"]
    assert {"name": "id", "type": "number"} in done.findings["parameters"]
    assert done.findings["vulnerabilities"] == []

    categories = {f.category for f in orchestrator.get_findings(scan.id)}
    assert categories == {ResultType.SUBDOMAIN, ResultType.PARAMETER}


def test_bad_details_from_a_strategy_fail_the_scan():
    strategies = fake_strategy_set(
        content=FakeStrategy("content", ResultType.DIRECTORY, items=[{"path": "/admin"}]),
    )
    orchestrator = _orchestrator(strategies)
    try:
        scan = orchestrator.create_scan("example.com", "content", 1)
        done = orchestrator.wait(scan.id, timeout=5)
    finally:
        orchestrator.shutdown()

    assert done.status == ScanStatus.FAILED
    assert orchestrator.get_findings(scan.id) == []


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

def test_cancel_while_running_stops_at_next_checkpoint():
    blocking = BlockingStrategy("subdomain", ResultType.SUBDOMAIN, items=[{"domain": "www.example.com"}])
    strategies = fake_strategy_set(subdomain=blocking)
    orchestrator = _orchestrator(strategies)
    try:
        scan = orchestrator.create_scan("example.com", "full", 1)
        assert blocking.started.wait(5)
        assert orchestrator.get_scan(scan.id).status == ScanStatus.IN_PROGRESS

        cancelled = orchestrator.cancel_scan(scan.id)
        assert cancelled.status == ScanStatus.CANCELLED

        done = orchestrator.wait(scan.id, timeout=5)
    finally:
        orchestrator.shutdown()

    assert blocking.stopped_by_cancel
    assert done.status == ScanStatus.CANCELLED
    assert done.findings == {"subdomains": [{"domain": "www.example.com"}]}
    assert strategies.parameters.calls == []
    assert len(orchestrator.get_findings(scan.id)) == 1


def test_cancel_before_worker_starts_means_no_probing():
    executor = ManualExecutor()
    strategies = fake_strategy_set()
    orchestrator = _orchestrator(strategies, executor=executor)

    scan = orchestrator.create_scan("example.com", "subdomain", 1)
    orchestrator.cancel_scan(scan.id)
    executor.run_all()

    record = orchestrator.get_scan(scan.id)
    assert record.status == ScanStatus.CANCELLED
    assert record.completed_at is not None
    assert strategies.subdomain.calls == []


def test_cancel_terminal_or_unknown_scan():
    executor = ManualExecutor()
    orchestrator = _orchestrator(fake_strategy_set(), executor=executor)
    scan = orchestrator.create_scan("example.com", "subdomain", 1)
    executor.run_all()
    assert orchestrator.get_scan(scan.id).status == ScanStatus.COMPLETED

    with pytest.raises(InvalidStatusTransition):
        orchestrator.cancel_scan(scan.id)
    with pytest.raises(ScanNotFound):
        orchestrator.cancel_scan(999)
    with pytest.raises(ScanNotFound):
        orchestrator.get_findings(999)


# ---------------------------------------------------------------------------
# Validation happens before anything is persisted
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("target, scan_type, depth", [
    ("", "full", 1),
    ("example.com", "recon", 1),
    ("example.com", "full", 0),
    ("example.com", "full", 6),
    ("example.com", "full", "deep"),
    ("10.0.0.1", "subdomain", 1),
    ("10.0.0.1", "full", 1),
    ("ftp://example.com", "content", 1),
    ("not a domain", "port_scan", 1),
])
def test_invalid_requests_create_nothing(target, scan_type, depth):
    executor = ManualExecutor()
    orchestrator = _orchestrator(fake_strategy_set(), executor=executor)

    with pytest.raises(ValidationError):
        orchestrator.create_scan(target, scan_type, depth)
    assert orchestrator.list_scans() == []
    assert executor.submitted == []


def test_ip_target_is_fine_for_port_and_page_scans():
    executor = ManualExecutor()
    orchestrator = _orchestrator(fake_strategy_set(), executor=executor)
    orchestrator.create_scan("10.0.0.1", "port_scan", 1)
    orchestrator.create_scan("10.0.0.1", "vulnerability", 1)
    assert len(orchestrator.list_scans()) == 2


# ---------------------------------------------------------------------------
# Stale scan recovery
# ---------------------------------------------------------------------------

def test_stale_scans_are_failed():
    storage = MemoryStorage()
    pending = storage.create_scan("a.example.com", ScanType.SUBDOMAIN, 1)
    running = storage.create_scan("b.example.com", ScanType.SUBDOMAIN, 1)
    storage.set_scan_status(running.id, ScanStatus.IN_PROGRESS)
    finished = storage.create_scan("c.example.com", ScanType.SUBDOMAIN, 1)
    storage.set_scan_status(finished.id, ScanStatus.IN_PROGRESS)
    storage.set_scan_status(finished.id, ScanStatus.COMPLETED)

    assert find_stale_scans(storage, timedelta(hours=1)) == []

    # negative age: everything started before "now + 1s" counts as stale
    stale = find_stale_scans(storage, timedelta(seconds=-1))
    assert {s.id for s in stale} == {pending.id, running.id}

    failed = fail_stale_scans(storage, timedelta(seconds=-1))
    assert {s.id for s in failed} == {pending.id, running.id}
    assert all(s.status == ScanStatus.FAILED and s.completed_at for s in failed)
    assert storage.get_scan(finished.id).status == ScanStatus.COMPLETED


def test_scan_that_cannot_be_scheduled_is_failed():
    orchestrator = _orchestrator(fake_strategy_set())
    orchestrator.shutdown()

    with pytest.raises(RuntimeError):
        orchestrator.create_scan("example.com", "subdomain", 1)

    [scan] = orchestrator.list_scans()
    assert scan.status == ScanStatus.FAILED
    assert scan.completed_at is not None
