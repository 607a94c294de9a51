"""networkx-backed graph algorithm provider."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import networkx as nx
from loguru import logger

from src.network.models import NetworkEdge


class NetworkXGraphAlgorithms:
    """Graph handles and path primitives backed by networkx.

    Handles are frozen ``nx.Graph``/``nx.DiGraph`` instances, so a handle held by
    the graph cache can be shared between requests without copying.

    Args:
        path_metrics_node_limit: Largest graph for which all-pairs path metrics
            (average path length, diameter) are computed
    """

    def __init__(self, path_metrics_node_limit: int = 2000):
        self.path_metrics_node_limit = path_metrics_node_limit

    def build_graph_handle(
        self, nodes: Sequence[int], edges: Sequence[NetworkEdge], directed: bool
    ) -> nx.Graph:
        graph = nx.DiGraph() if directed else nx.Graph()
        graph.add_nodes_from(nodes)
        for edge in edges:
            graph.add_edge(
                edge.source,
                edge.target,
                link_type=edge.link_type.value,
                link_code=edge.link_code,
                edge_distance=edge.edge_distance,
            )
        return nx.freeze(graph)

    def shortest_path(self, handle: nx.Graph, source: int, target: int) -> Optional[List[int]]:
        try:
            return list(nx.shortest_path(handle, source, target))
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None

    def all_simple_paths(
        self, handle: nx.Graph, source: int, target: int, max_length: int
    ) -> List[List[int]]:
        if source not in handle or target not in handle:
            return []
        paths = nx.all_simple_paths(handle, source, target, cutoff=max_length)
        return [list(path) for path in paths]

    def graph_metrics(self, handle: nx.Graph) -> Dict[str, Any]:
        """Whole-graph metrics for a handle.

        Returns:
            Dictionary with density, components, average_path_length,
            average_clustering, max_degree_centrality and diameter (None when
            not computed)
        """
        undirected = handle.to_undirected(as_view=True) if handle.is_directed() else handle
        node_count = handle.number_of_nodes()

        metrics: Dict[str, Any] = {
            "density": nx.density(undirected) if node_count > 1 else 0.0,
            "components": nx.number_connected_components(undirected) if node_count else 0,
            "average_path_length": 0.0,
            "average_clustering": nx.average_clustering(undirected) if node_count else 0.0,
            "diameter": None,
            "max_degree_centrality": (
                max(nx.degree_centrality(undirected).values()) if node_count > 1 else 0.0
            ),
        }

        if node_count > self.path_metrics_node_limit:
            logger.debug(
                "Skipping all-pairs path metrics",
                nodes=node_count,
                limit=self.path_metrics_node_limit,
            )
            return metrics

        total = 0
        pairs = 0
        longest = 0
        for _, lengths in nx.all_pairs_shortest_path_length(undirected):
            for distance in lengths.values():
                if distance > 0:
                    total += distance
                    pairs += 1
                    longest = max(longest, distance)

        if pairs:
            metrics["average_path_length"] = total / pairs
            metrics["diameter"] = longest
        return metrics
