import threading

import pytest

from conftest import fake_strategy_set
from reconsuite import create_app
from reconsuite.errors import FindingSchemaError, InvalidStatusTransition, ScanNotFound, ValidationError
from reconsuite.extensions import db
from reconsuite.models import Scan
from reconsuite.scanner.base import ResultType, ScanStatus, ScanType, Severity, now_utc
from reconsuite.storage import MemoryStorage, SqlStorage, build_storage


@pytest.fixture(params=["memory", "sql"])
def storage(request, sql_settings):
    if request.param == "memory":
        yield MemoryStorage()
        return

    app = create_app(settings=sql_settings, strategies=fake_strategy_set())
    try:
        with app.app_context():
            yield app.extensions["scan_orchestrator"].storage
    finally:
        app.extensions["scan_orchestrator"].shutdown(wait=True)


def test_build_storage():
    assert isinstance(build_storage("memory"), MemoryStorage)
    assert isinstance(build_storage(" SQL "), SqlStorage)
    with pytest.raises(ValidationError):
        build_storage("redis")


def test_new_scan_is_pending_without_completion(storage):
    scan = storage.create_scan("example.com", ScanType.FULL, 2)

    assert scan.id > 0
    assert scan.status == ScanStatus.PENDING
    assert scan.completed_at is None
    assert scan.findings is None
    assert storage.get_scan(scan.id) == scan
    assert storage.get_scan(scan.id + 1000) is None


def test_completed_at_set_only_on_terminal_status(storage):
    scan = storage.create_scan("example.com", ScanType.SUBDOMAIN, 1)

    running = storage.set_scan_status(scan.id, ScanStatus.IN_PROGRESS)
    assert running.completed_at is None

    done = storage.set_scan_status(scan.id, ScanStatus.COMPLETED)
    assert done.status == ScanStatus.COMPLETED
    assert done.completed_at is not None
    assert done.completed_at >= done.started_at


@pytest.mark.parametrize("terminal", [ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED])
def test_terminal_statuses_are_final(storage, terminal):
    scan = storage.create_scan("example.com", ScanType.CONTENT, 1)
    storage.set_scan_status(scan.id, ScanStatus.IN_PROGRESS)
    storage.set_scan_status(scan.id, terminal)

    for status in (ScanStatus.PENDING, ScanStatus.IN_PROGRESS, ScanStatus.COMPLETED):
        if status == terminal:
            continue
        with pytest.raises(InvalidStatusTransition):
            storage.set_scan_status(scan.id, status)
    assert storage.get_scan(scan.id).status == terminal


def test_pending_cannot_complete_directly(storage):
    scan = storage.create_scan("example.com", ScanType.CONTENT, 1)
    with pytest.raises(InvalidStatusTransition):
        storage.set_scan_status(scan.id, ScanStatus.COMPLETED)


def test_same_status_is_a_no_op(storage):
    scan = storage.create_scan("example.com", ScanType.CONTENT, 1)
    storage.set_scan_status(scan.id, ScanStatus.IN_PROGRESS)
    again = storage.set_scan_status(scan.id, ScanStatus.IN_PROGRESS)
    assert again.status == ScanStatus.IN_PROGRESS


def test_status_change_on_missing_scan_returns_none(storage):
    assert storage.set_scan_status(999, ScanStatus.IN_PROGRESS) is None
    assert storage.set_scan_findings(999, {}) is None


def test_findings_summary_round_trips_and_is_a_snapshot(storage):
    scan = storage.create_scan("example.com", ScanType.FULL, 1)
    summary = {"subdomains": [{"domain": "www.example.com"}]}
    storage.set_scan_findings(scan.id, summary)

    summary["subdomains"].append({"domain": "mutated.example.com"})
    stored = storage.get_scan(scan.id).findings
    assert stored == {"subdomains": [{"domain": "www.example.com"}]}

    stored["subdomains"].clear()
    assert storage.get_scan(scan.id).findings["subdomains"] == [{"domain": "www.example.com"}]


def test_findings_are_validated_and_ordered_newest_first(storage):
    scan = storage.create_scan("example.com", ScanType.PORT_SCAN, 1)
    first = storage.create_finding(scan.id, ResultType.PORT, Severity.INFO,
                                   {"port": 22, "state": "open", "service": "ssh", "banner": None})
    second = storage.create_finding(scan.id, "port", None, {"port": 80, "state": "closed"})

    assert first.details == {"port": 22, "state": "open", "service": "ssh"}
    assert second.severity is None

    findings = storage.get_findings(scan.id)
    assert [f.id for f in findings] == [second.id, first.id]
    assert findings[0].to_dict()["resultType"] == "port"
    assert findings[1].to_dict()["severity"] == "info"


@pytest.mark.parametrize("category, details", [
    (ResultType.SUBDOMAIN, {"name": "www.example.com"}),
    (ResultType.SUBDOMAIN, {"domain": "www.example.com", "extra": 1}),
    (ResultType.PORT, {"port": "22", "state": "open"}),
    (ResultType.PORT, {"port": 70000, "state": "open"}),
    (ResultType.PORT, {"port": 22, "state": "listening"}),
    (ResultType.DIRECTORY, {"path": "/admin"}),
    (ResultType.TECHNOLOGY, {"name": "Nginx", "category": "Web Servers", "confidence": 101}),
    (ResultType.VULNERABILITY, ["not", "a", "dict"]),
])
def test_details_must_match_their_category(storage, category, details):
    scan = storage.create_scan("example.com", ScanType.FULL, 1)
    with pytest.raises(FindingSchemaError):
        storage.create_finding(scan.id, category, None, details)
    assert storage.get_findings(scan.id) == []


def test_finding_for_unknown_scan(storage):
    with pytest.raises(ScanNotFound):
        storage.create_finding(404, ResultType.SUBDOMAIN, None, {"domain": "a.example.com"})


def test_scans_listed_newest_first(storage):
    ids = [storage.create_scan(f"site{i}.example.com", ScanType.SUBDOMAIN, 1).id for i in range(3)]
    assert [s.id for s in storage.list_scans()] == list(reversed(ids))


def test_record_serialization(storage):
    scan = storage.create_scan("https://example.com/app", ScanType.TECH_DETECTION, 3)
    data = scan.to_dict()
    assert data["targetDomain"] == "https://example.com/app"
    assert data["scanType"] == "tech_detection"
    assert data["scanDepth"] == 3
    assert data["status"] == "pending"
    assert data["completedAt"] is None
    assert data["startedAt"].startswith(str(scan.started_at.year))


def test_concurrent_appends_are_not_lost():
    storage = MemoryStorage()
    scan = storage.create_scan("example.com", ScanType.SUBDOMAIN, 1)

    def append(n):
        for i in range(25):
            storage.create_finding(scan.id, ResultType.SUBDOMAIN, None, {"domain": f"h{n}-{i}.example.com"})

    threads = [threading.Thread(target=append, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    findings = storage.get_findings(scan.id)
    assert len(findings) == 200
    assert len({f.id for f in findings}) == 200


def test_sql_status_write_does_not_overwrite_a_concurrent_cancel(sql_settings, monkeypatch):
    app = create_app(settings=sql_settings, strategies=fake_strategy_set())
    try:
        with app.app_context():
            storage = app.extensions["scan_orchestrator"].storage
            scan = storage.create_scan("example.com", ScanType.SUBDOMAIN, 1)
            storage.set_scan_status(scan.id, ScanStatus.IN_PROGRESS)

            real_load = storage._load

            def load_then_cancel_elsewhere(scan_id, fresh=False):
                row = real_load(scan_id, fresh=fresh)
                monkeypatch.setattr(storage, "_load", real_load)
                # a cancel request commits on its own connection after the worker's read
                with db.engine.begin() as conn:
                    conn.execute(
                        Scan.__table__.update()
                        .where(Scan.__table__.c.id == scan_id)
                        .values(status="cancelled", completed_at=now_utc())
                    )
                return row

            monkeypatch.setattr(storage, "_load", load_then_cancel_elsewhere)
            with pytest.raises(InvalidStatusTransition) as exc:
                storage.set_scan_status(scan.id, ScanStatus.COMPLETED)

            assert exc.value.current == "cancelled"
            assert storage.get_scan(scan.id).status == ScanStatus.CANCELLED
    finally:
        app.extensions["scan_orchestrator"].shutdown(wait=True)
