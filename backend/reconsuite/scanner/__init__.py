# reconsuite/scanner/__init__.py
"""
Recon scan engine.

Usage:
    from reconsuite.scanner.orchestrator import ScanOrchestrator
    from reconsuite.scanner.strategies import build_strategies

    orchestrator = ScanOrchestrator(storage, build_strategies(settings), settings)
    scan = orchestrator.create_scan("example.com", "subdomain", 2)

Architecture:
    ScanOrchestrator (state machine, incremental persistence)
    ├── Strategies
    │   ├── SubdomainStrategy        DNS records, brute force, permutations
    │   ├── ContentStrategy          path discovery
    │   ├── PortScanStrategy         TCP connect + banner grab
    │   ├── TechDetectStrategy       signature matching on one page
    │   ├── ParameterStrategy        page harvest + reflection probes
    │   └── VulnerabilityStrategy    passive header/cookie/body checks
    ├── Batcher (bounded-concurrency windows)
    └── Probes (resolver, port, path, page fetch)
"""
