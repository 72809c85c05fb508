# reconsuite/scanner/strategies/__init__.py
"""
Strategy registry.

    subdomain        SubdomainStrategy        -> SUBDOMAIN findings
    content          ContentStrategy          -> DIRECTORY findings
    ports            PortScanStrategy         -> PORT findings
    tech_detect      TechDetectStrategy       -> TECHNOLOGY findings
    parameters       ParameterStrategy        -> PARAMETER findings
    vulnerabilities  VulnerabilityStrategy    -> VULNERABILITY findings
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Type

from ...config import ReconSettings
from ..base import BaseStrategy
from ..signatures import DEFAULT_CATALOG, SignatureCatalog
from .content import ContentStrategy
from .parameters import ParameterStrategy
from .ports import PortScanStrategy
from .subdomain import SubdomainStrategy
from .tech_detect import TechDetectStrategy
from .vulnerabilities import VulnerabilityStrategy

REGISTRY: Dict[str, Type[BaseStrategy]] = {
    SubdomainStrategy.name: SubdomainStrategy,
    ContentStrategy.name: ContentStrategy,
    PortScanStrategy.name: PortScanStrategy,
    TechDetectStrategy.name: TechDetectStrategy,
    ParameterStrategy.name: ParameterStrategy,
    VulnerabilityStrategy.name: VulnerabilityStrategy,
}


@dataclass
class StrategySet:
    subdomain: BaseStrategy
    content: BaseStrategy
    ports: BaseStrategy
    tech_detect: BaseStrategy
    parameters: BaseStrategy
    vulnerabilities: BaseStrategy

    def get(self, name: str) -> BaseStrategy:
        if name not in REGISTRY:
            raise KeyError(f"Unknown strategy '{name}'")
        return getattr(self, name)


def build_strategies(settings: Optional[ReconSettings] = None,
                     catalog: Optional[SignatureCatalog] = None) -> StrategySet:
    """Production strategy set wired to the real network probes."""
    settings = settings or ReconSettings()
    catalog = catalog or DEFAULT_CATALOG
    return StrategySet(
        subdomain=SubdomainStrategy(settings),
        content=ContentStrategy(settings),
        ports=PortScanStrategy(settings),
        tech_detect=TechDetectStrategy(settings, catalog=catalog),
        parameters=ParameterStrategy(settings, catalog=catalog),
        vulnerabilities=VulnerabilityStrategy(settings, catalog=catalog),
    )


__all__ = [
    "REGISTRY",
    "StrategySet",
    "build_strategies",
    "ContentStrategy",
    "ParameterStrategy",
    "PortScanStrategy",
    "SubdomainStrategy",
    "TechDetectStrategy",
    "VulnerabilityStrategy",
]
