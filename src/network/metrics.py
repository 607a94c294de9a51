"""Summary statistics for discovered networks."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from src.network.models import BridgeNode, DirectConnection, NetworkEdge, NetworkMetrics
from src.network.providers import (
    GraphAlgorithmProvider,
    GraphMetricsProvider,
    ProviderInvoker,
    cached_graph_handle,
)
from src.storage.graph_cache import GraphCache
from src.storage.schemas import LinkType


def calculate_density(node_count: int, edge_count: int) -> float:
    """Undirected density: edges over possible pairs (0 for fewer than two nodes)."""
    if node_count <= 1:
        return 0.0
    return edge_count / (node_count * (node_count - 1) / 2)


def calculate_average_degree(node_count: int, edge_count: int) -> float:
    if node_count == 0:
        return 0.0
    return 2 * edge_count / node_count


def count_components(nodes: Iterable[int], edges: Sequence[NetworkEdge]) -> int:
    """Connected components by union-find; isolated nodes count individually."""
    parent: Dict[int, int] = {node: node for node in nodes}

    def find(node: int) -> int:
        parent.setdefault(node, node)
        while parent[node] != node:
            parent[node] = parent[parent[node]]
            node = parent[node]
        return node

    for edge in edges:
        root_a, root_b = find(edge.source), find(edge.target)
        if root_a != root_b:
            parent[root_a] = root_b

    return len({find(node) for node in list(parent)})


class NetworkMetricsCalculator:
    """Computes NetworkMetrics, using graph metrics from the provider when available.

    Args:
        algorithms: Graph algorithm provider; graph metrics are used only if it
            also implements ``GraphMetricsProvider``
        cache: Graph handle cache shared with pathway resolution
    """

    def __init__(
        self,
        algorithms: Optional[GraphAlgorithmProvider] = None,
        cache: Optional[GraphCache] = None,
    ):
        self.algorithms = algorithms
        self.cache = cache

    @property
    def supports_graph_metrics(self) -> bool:
        return (
            self.algorithms is not None
            and self.cache is not None
            and isinstance(self.algorithms, GraphMetricsProvider)
        )

    def calculate_metrics(
        self,
        query_count: int,
        edges: Sequence[NetworkEdge],
        entities: Sequence[int],
        direct_connections: Sequence[DirectConnection],
        bridge_nodes: Sequence[BridgeNode],
        distances: Mapping[int, int],
        *,
        invoker: Optional[ProviderInvoker] = None,
    ) -> NetworkMetrics:
        node_count = len(entities)
        edge_count = len(edges)

        density = calculate_density(node_count, edge_count)
        average_path_length = 0.0
        components: Optional[int] = None

        if self.supports_graph_metrics and node_count:
            graph_metrics = self._graph_metrics(entities, edges, invoker)
            density = graph_metrics.get("density", density)
            average_path_length = graph_metrics.get("average_path_length") or 0.0
            components = graph_metrics.get("components")

        if components is None:
            components = count_components(entities, edges)

        metrics = NetworkMetrics(
            total_entities=node_count,
            query_entities=query_count,
            discovered_entities=max(0, node_count - query_count),
            total_edges=edge_count,
            direct_connections=len(direct_connections),
            bridge_nodes=len(bridge_nodes),
            average_path_length=average_path_length,
            density=density,
            components=components,
            average_degree=calculate_average_degree(node_count, edge_count),
            edge_type_counts={
                link_type: stats["count"]
                for link_type, stats in self.edge_type_statistics(edges).items()
            },
            distance_distribution=self.distance_distribution(distances),
        )
        logger.debug(
            "Calculated network metrics",
            entities=node_count,
            edges=edge_count,
            components=components,
        )
        return metrics

    @staticmethod
    def degree_distribution(edges: Sequence[NetworkEdge]) -> Dict[int, int]:
        """Degree of every entity that appears on an edge."""
        degrees: Counter = Counter()
        for edge in edges:
            degrees[edge.source] += 1
            degrees[edge.target] += 1
        return dict(degrees)

    def high_degree_nodes(
        self, edges: Sequence[NetworkEdge], top_n: int = 10
    ) -> List[Tuple[int, int]]:
        """Top ``top_n`` (entity, degree) pairs, ties broken by entity ID."""
        degrees = self.degree_distribution(edges)
        ranked = sorted(degrees.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:top_n]

    @staticmethod
    def edge_type_statistics(edges: Sequence[NetworkEdge]) -> Dict[str, Dict[str, int]]:
        """Per link type: edge count, coded edges, distinct codes."""
        stats: Dict[str, Dict[str, Any]] = {
            link_type.value: {"count": 0, "coded": 0, "codes": set()} for link_type in LinkType
        }
        for edge in edges:
            entry = stats[edge.link_type.value]
            entry["count"] += 1
            if edge.link_code is not None:
                entry["coded"] += 1
                entry["codes"].add(edge.link_code)

        return {
            link_type: {
                "count": entry["count"],
                "coded": entry["coded"],
                "distinct_codes": len(entry["codes"]),
            }
            for link_type, entry in stats.items()
        }

    @staticmethod
    def distance_distribution(distances: Mapping[int, int]) -> Dict[int, int]:
        """Number of entities at each discovery distance."""
        return dict(sorted(Counter(distances.values()).items()))

    def _graph_metrics(
        self,
        entities: Sequence[int],
        edges: Sequence[NetworkEdge],
        invoker: Optional[ProviderInvoker],
    ) -> Dict[str, Any]:
        handle = cached_graph_handle(
            self.cache, self.algorithms, sorted(entities), edges, invoker=invoker
        )
        if invoker is not None:
            return invoker.call("graph_metrics", self.algorithms.graph_metrics, handle)
        return self.algorithms.graph_metrics(handle)
