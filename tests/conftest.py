import threading
import time

import pytest

from reconsuite import create_app
from reconsuite.config import ReconSettings
from reconsuite.errors import ScanCancelled
from reconsuite.scanner.base import BaseStrategy, PathResult, PortResult, PortState, ResultType
from reconsuite.scanner.probes import PageSnapshot, service_for_port
from reconsuite.scanner.strategies import (
    ContentStrategy,
    ParameterStrategy,
    PortScanStrategy,
    StrategySet,
    SubdomainStrategy,
    TechDetectStrategy,
    VulnerabilityStrategy,
)


# ---------------------------------------------------------------------------
# Fake probes
# ---------------------------------------------------------------------------

class FakeResolver:
    def __init__(self, table=None, default=None):
        self.table = {k.lower(): v for k, v in (table or {}).items()}
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, name):
        with self._lock:
            self.calls.append(name)
        if name.lower() in self.table:
            return list(self.table[name.lower()])
        if callable(self.default):
            return self.default(name)
        return list(self.default or [])


class FakeRecordLookup:
    def __init__(self, records=None, errors=None):
        self.records = records or {}
        self.errors = errors or {}
        self.calls = []

    def __call__(self, domain, rtype, timeout=None):
        self.calls.append((domain, rtype))
        if rtype in self.errors:
            raise self.errors[rtype]
        return list(self.records.get(rtype, []))


class FakePortProbe:
    def __init__(self, states=None, banners=None):
        self.states = states or {}
        self.banners = banners or {}
        self.calls = []

    def __call__(self, host, port, timeout=None, attempt_banner=False):
        self.calls.append((host, port, timeout, attempt_banner))
        state = self.states.get(port, PortState.CLOSED)
        if isinstance(state, Exception):
            raise state
        banner = self.banners.get(port) if attempt_banner else None
        return PortResult(port=port, state=state, service=service_for_port(port), banner=banner)


class FakePathProbe:
    def __init__(self, statuses=None, default=404):
        self.statuses = statuses or {}
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, base_url, path, timeout=None, headers=None):
        with self._lock:
            self.calls.append(path)
        status = self.statuses.get(path, self.default)
        if status is None:
            return None
        return PathResult(path=path, status_code=status, content_type="text/html", content_length=10)


class FakePageFetcher:
    """Returns `page` for the plain URL; `reflect(url)` decides reflection probes."""

    def __init__(self, page=None, reflect=None):
        self.page = page
        self.reflect = reflect
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, url, timeout=None, max_bytes=None, headers=None):
        with self._lock:
            self.calls.append(url)
        if self.reflect is not None and "?" in url:
            return self.reflect(url)
        return self.page


def make_page(url="https://example.com/", headers=None, cookies=None, body="", status=200):
    return PageSnapshot(
        url=url,
        status_code=status,
        headers={k.lower(): v for k, v in (headers or {}).items()},
        set_cookies=list(cookies or []),
        body=body,
    )


# ---------------------------------------------------------------------------
# Fake strategies
# ---------------------------------------------------------------------------

class FakeStrategy(BaseStrategy):
    """Emits canned items, optionally raising after them."""

    def __init__(self, name, result_type, items=None, error=None, severity=None):
        super().__init__(ReconSettings())
        self.name = name
        self.result_type = result_type
        self.items = list(items or [])
        self.error = error
        self.severity = severity
        self.calls = []

    def severity_of(self, item):
        if self.severity is not None:
            return self.severity
        return super().severity_of(item)

    def details_of(self, item):
        return dict(item) if isinstance(item, dict) else item.to_details()

    def run(self, target, emit=None, checkpoint=None, **options):
        self.calls.append({"target": target, "options": options})
        emit = self._emitter(emit)
        self._checkpoint(checkpoint)()
        for item in self.items:
            emit(item)
        if self.error is not None:
            raise self.error
        return list(self.items)


class BlockingStrategy(FakeStrategy):
    """Emits its items, then polls the checkpoint until cancelled (or gives up)."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.started = threading.Event()
        self.stopped_by_cancel = False

    def run(self, target, emit=None, checkpoint=None, **options):
        emit = self._emitter(emit)
        checkpoint = self._checkpoint(checkpoint)
        for item in self.items:
            emit(item)
        self.started.set()
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            try:
                checkpoint()
            except ScanCancelled:
                self.stopped_by_cancel = True
                raise
            time.sleep(0.01)
        return list(self.items)


def fake_strategy_set(**overrides):
    defaults = {
        "subdomain": FakeStrategy("subdomain", ResultType.SUBDOMAIN),
        "content": FakeStrategy("content", ResultType.DIRECTORY),
        "ports": FakeStrategy("ports", ResultType.PORT),
        "tech_detect": FakeStrategy("tech_detect", ResultType.TECHNOLOGY),
        "parameters": FakeStrategy("parameters", ResultType.PARAMETER),
        "vulnerabilities": FakeStrategy("vulnerabilities", ResultType.VULNERABILITY),
    }
    defaults.update(overrides)
    return StrategySet(**defaults)


def probe_backed_strategies(settings, resolver=None, record_lookup=None, port_probe=None,
                            path_probe=None, page_fetcher=None, catalog=None):
    """Real strategies wired to fake probes."""
    page_fetcher = page_fetcher or FakePageFetcher(page=None)
    return StrategySet(
        subdomain=SubdomainStrategy(
            settings,
            resolver=resolver or FakeResolver(),
            record_lookup=record_lookup or FakeRecordLookup(),
        ),
        content=ContentStrategy(settings, path_probe=path_probe or FakePathProbe()),
        ports=PortScanStrategy(settings, port_probe=port_probe or FakePortProbe()),
        tech_detect=TechDetectStrategy(settings, catalog=catalog, page_fetcher=page_fetcher),
        parameters=ParameterStrategy(settings, catalog=catalog, page_fetcher=page_fetcher),
        vulnerabilities=VulnerabilityStrategy(settings, catalog=catalog, page_fetcher=page_fetcher),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return ReconSettings(
        storage="memory",
        environment="testing",
        scan_workers=2,
        dns_timeout=0.5,
        http_timeout=0.5,
    )


@pytest.fixture
def sql_settings(tmp_path):
    return ReconSettings(
        storage="sql",
        environment="testing",
        database_uri=f"sqlite:///{tmp_path / 'recon.db'}",
        auto_create_schema=True,
        scan_workers=2,
        dns_timeout=0.5,
        http_timeout=0.5,
    )


@pytest.fixture
def make_app():
    apps = []

    def _make(settings, strategies):
        app = create_app(settings=settings, strategies=strategies)
        app.config["TESTING"] = True
        apps.append(app)
        return app

    yield _make
    for app in apps:
        app.extensions["scan_orchestrator"].shutdown(wait=True)
