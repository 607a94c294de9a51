"""Network discovery package exports."""

from src.network.algorithms import NetworkXGraphAlgorithms
from src.network.bridges import BridgeAnalyzer
from src.network.discovery import NetworkDiscoveryEngine
from src.network.enrichment import EdgeEnricher
from src.network.errors import (
    EntityNotFoundError,
    InvalidArgumentError,
    NetworkError,
    ProviderFailureError,
    ProviderTimeoutError,
    RequestCancelledError,
)
from src.network.metrics import NetworkMetricsCalculator
from src.network.models import (
    BridgeNode,
    ConnectionKind,
    DirectConnection,
    DiscoveredEntity,
    DiscoveryResult,
    GraphView,
    NetworkEdge,
    NetworkMetrics,
    NetworkResult,
    Pathway,
)
from src.network.orchestrator import NetworkOrchestrator
from src.network.pathways import PathwayResolver
from src.network.providers import (
    GraphAlgorithmProvider,
    GraphMetricsProvider,
    LabelLookupProvider,
    LinkDiscoveryProvider,
    ProviderInvoker,
)
from src.network.serialization import GraphSerializer

__all__ = [
    "NetworkOrchestrator",
    "NetworkDiscoveryEngine",
    "EdgeEnricher",
    "BridgeAnalyzer",
    "PathwayResolver",
    "NetworkMetricsCalculator",
    "GraphSerializer",
    "NetworkXGraphAlgorithms",
    "ProviderInvoker",
    "LinkDiscoveryProvider",
    "LabelLookupProvider",
    "GraphAlgorithmProvider",
    "GraphMetricsProvider",
    "NetworkEdge",
    "DiscoveryResult",
    "DiscoveredEntity",
    "DirectConnection",
    "BridgeNode",
    "Pathway",
    "ConnectionKind",
    "NetworkMetrics",
    "GraphView",
    "NetworkResult",
    "NetworkError",
    "InvalidArgumentError",
    "EntityNotFoundError",
    "ProviderFailureError",
    "ProviderTimeoutError",
    "RequestCancelledError",
]
