"""Pathway resolution between query entities."""

from __future__ import annotations

from itertools import combinations
from typing import AbstractSet, Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from src.network.errors import ProviderFailureError
from src.network.models import ConnectionKind, NetworkEdge, Pathway
from src.network.providers import GraphAlgorithmProvider, ProviderInvoker, cached_graph_handle
from src.storage.graph_cache import GraphCache
from src.storage.schemas import LinkType
from src.utils.config import PathwayConfig


class PathwayResolver:
    """Resolves node/edge pathways over graph handles obtained from the cache.

    Args:
        algorithms: Graph algorithm provider
        cache: Shared graph handle cache
        config: Path length bound and link type weights
    """

    def __init__(
        self,
        algorithms: GraphAlgorithmProvider,
        cache: GraphCache,
        config: Optional[PathwayConfig] = None,
    ):
        self.algorithms = algorithms
        self.cache = cache
        self.config = config or PathwayConfig()

    def find_pathways(
        self,
        edges: Sequence[NetworkEdge],
        query_entities: AbstractSet[int],
        all_entities: Optional[Iterable[int]] = None,
        *,
        invoker: Optional[ProviderInvoker] = None,
    ) -> List[Pathway]:
        """Shortest pathway for every pair of query entities.

        Pairs are attempted in sorted order; unreachable pairs are omitted.
        """
        nodes = self._node_list(edges, query_entities, all_entities)
        handle = self._graph_handle(nodes, edges, invoker)
        edge_index = self._edge_index(edges)

        pathways = []
        for source, target in combinations(sorted(query_entities), 2):
            node_path = self._invoke(
                invoker, "shortest_path", self.algorithms.shortest_path, handle, source, target
            )
            if not node_path:
                continue
            pathway = self._to_pathway(node_path, edge_index)
            if pathway is not None:
                pathways.append(pathway)

        logger.debug(
            "Pathway resolution complete",
            pairs=len(query_entities) * (len(query_entities) - 1) // 2,
            pathways=len(pathways),
        )
        return pathways

    def find_direct_pathways(
        self, edges: Sequence[NetworkEdge], query_entities: AbstractSet[int]
    ) -> List[Pathway]:
        """Length-1 pathways for edges joining two query entities, one per pair."""
        pathways: Dict[Tuple[int, int], Pathway] = {}
        for edge in edges:
            if edge.source not in query_entities or edge.target not in query_entities:
                continue
            if edge.pair_key in pathways:
                continue
            low, high = edge.pair_key
            pathways[edge.pair_key] = Pathway(
                from_entity=low,
                to_entity=high,
                node_path=[low, high],
                edge_path=[edge],
                path_type=ConnectionKind.from_link_types({edge.link_type}),
            )
        return list(pathways.values())

    def find_shortest_path(
        self,
        edges: Sequence[NetworkEdge],
        source: int,
        target: int,
        *,
        invoker: Optional[ProviderInvoker] = None,
    ) -> Optional[Pathway]:
        nodes = self._node_list(edges, {source, target})
        handle = self._graph_handle(nodes, edges, invoker)
        node_path = self._invoke(
            invoker, "shortest_path", self.algorithms.shortest_path, handle, source, target
        )
        if not node_path:
            return None
        return self._to_pathway(node_path, self._edge_index(edges))

    def find_all_paths(
        self,
        edges: Sequence[NetworkEdge],
        source: int,
        target: int,
        max_length: Optional[int] = None,
        *,
        invoker: Optional[ProviderInvoker] = None,
    ) -> List[Pathway]:
        """All simple pathways up to ``max_length`` edges, shortest first."""
        max_length = max_length or self.config.max_path_length
        nodes = self._node_list(edges, {source, target})
        handle = self._graph_handle(nodes, edges, invoker)
        node_paths = self._invoke(
            invoker,
            "all_simple_paths",
            self.algorithms.all_simple_paths,
            handle,
            source,
            target,
            max_length,
        )

        edge_index = self._edge_index(edges)
        pathways = [self._to_pathway(path, edge_index) for path in node_paths]
        return sorted((p for p in pathways if p is not None), key=lambda p: p.length)

    def find_paths_through_nodes(
        self,
        edges: Sequence[NetworkEdge],
        source: int,
        target: int,
        required: Iterable[int],
        *,
        invoker: Optional[ProviderInvoker] = None,
    ) -> List[Pathway]:
        """Pathways from ``source`` to ``target`` visiting every ``required`` node."""
        required_set = set(required)
        candidates = self.find_all_paths(
            edges, source, target, max_length=len(required_set) + 2, invoker=invoker
        )
        return [p for p in candidates if required_set.issubset(p.node_path)]

    def path_strength(self, pathway: Pathway) -> float:
        """Average per-edge strength: type weight plus 1/(edge_distance+1)."""
        if pathway.length == 0:
            return 0.0
        total = 0.0
        for edge in pathway.edge_path:
            weight = (
                self.config.kinship_weight
                if edge.link_type is LinkType.KINSHIP
                else self.config.association_weight
            )
            total += weight + 1.0 / (edge.edge_distance + 1)
        return total / pathway.length

    def rank_pathways(self, pathways: Sequence[Pathway]) -> List[Pathway]:
        return sorted(pathways, key=self.path_strength, reverse=True)

    def _graph_handle(
        self,
        nodes: List[int],
        edges: Sequence[NetworkEdge],
        invoker: Optional[ProviderInvoker],
    ) -> Any:
        return cached_graph_handle(self.cache, self.algorithms, nodes, edges, invoker=invoker)

    @staticmethod
    def _invoke(
        invoker: Optional[ProviderInvoker], operation: str, fn: Callable[..., Any], *args: Any
    ) -> Any:
        if invoker is not None:
            return invoker.call(operation, fn, *args)
        try:
            return fn(*args)
        except Exception as e:
            logger.error("Graph algorithm call failed", operation=operation, error=str(e))
            raise ProviderFailureError(operation, e) from e

    @staticmethod
    def _node_list(
        edges: Sequence[NetworkEdge],
        required: Iterable[int],
        all_entities: Optional[Iterable[int]] = None,
    ) -> List[int]:
        nodes = set(required)
        if all_entities is not None:
            nodes.update(all_entities)
        for edge in edges:
            nodes.add(edge.source)
            nodes.add(edge.target)
        return sorted(nodes)

    @staticmethod
    def _edge_index(edges: Sequence[NetworkEdge]) -> Dict[Tuple[int, int], NetworkEdge]:
        index: Dict[Tuple[int, int], NetworkEdge] = {}
        for edge in edges:
            index.setdefault(edge.pair_key, edge)
        return index

    @staticmethod
    def _to_pathway(
        node_path: List[int], edge_index: Dict[Tuple[int, int], NetworkEdge]
    ) -> Optional[Pathway]:
        edge_path = []
        for a, b in zip(node_path, node_path[1:]):
            edge = edge_index.get((min(a, b), max(a, b)))
            if edge is None:
                logger.debug("Discarding pathway with unmatched step", step=(a, b))
                return None
            edge_path.append(edge)

        return Pathway(
            from_entity=node_path[0],
            to_entity=node_path[-1],
            node_path=list(node_path),
            edge_path=edge_path,
            path_type=ConnectionKind.from_link_types({edge.link_type for edge in edge_path}),
        )
