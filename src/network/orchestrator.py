"""Multi-entity relationship network builder.

Sequences one request end to end:

- validate the query and load the query entities
- bounded discovery around them
- optional attribute filtering of discovered entities
- label enrichment and deduplication
- bridge analysis and pathway resolution, concurrently
- metrics and the serialized graph view
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from loguru import logger

from src.network.algorithms import NetworkXGraphAlgorithms
from src.network.bridges import BridgeAnalyzer
from src.network.discovery import NetworkDiscoveryEngine, validate_max_hops
from src.network.enrichment import EdgeEnricher
from src.network.errors import EntityNotFoundError, InvalidArgumentError, NetworkError
from src.network.metrics import NetworkMetricsCalculator
from src.network.models import (
    BridgeNode,
    DirectConnection,
    DiscoveredEntity,
    DiscoveryResult,
    NetworkEdge,
    NetworkResult,
    Pathway,
    RelationshipDetail,
)
from src.network.pathways import PathwayResolver
from src.network.providers import (
    GraphAlgorithmProvider,
    LabelLookupProvider,
    LinkDiscoveryProvider,
    ProviderInvoker,
    ordered_unique,
)
from src.network.serialization import GraphSerializer
from src.storage.graph_cache import GraphCache
from src.storage.schemas import EntityFilter, EntitySummary
from src.utils.config import Config


class NetworkOrchestrator:
    """Builds relationship networks around sets of query entities.

    The orchestrator itself holds no per-request state; each ``build_network``
    call gets its own provider invoker and worker pools. The graph cache is the
    only state shared across requests.
    """

    def __init__(
        self,
        link_provider: LinkDiscoveryProvider,
        label_provider: LabelLookupProvider,
        algorithms: Optional[GraphAlgorithmProvider] = None,
        cache: Optional[GraphCache] = None,
        config: Optional[Config] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            link_provider: Typed-link lookups (Neo4jManager or InMemoryEntityStore)
            label_provider: Code label lookups
            algorithms: Graph algorithm provider (networkx if None)
            cache: Graph handle cache (created from config if None)
            config: Configuration object
        """
        self.config = config or Config()
        self.link_provider = link_provider
        self.label_provider = label_provider
        self.algorithms = algorithms or NetworkXGraphAlgorithms()

        self._owns_cache = cache is None
        self.cache = cache or GraphCache.from_config(self.config.cache)

        self.discovery = NetworkDiscoveryEngine(
            link_provider, lookup_batch_size=self.config.discovery.lookup_batch_size
        )
        self.enricher = EdgeEnricher(label_provider)
        self.bridge_analyzer = BridgeAnalyzer()
        self.pathway_resolver = PathwayResolver(self.algorithms, self.cache, self.config.pathways)
        self.metrics_calculator = NetworkMetricsCalculator(self.algorithms, self.cache)
        self.serializer = GraphSerializer()

        logger.info(
            "Initialized NetworkOrchestrator",
            max_workers=self.config.concurrency.max_workers,
            parallel_analysis=self.config.concurrency.parallel_analysis,
            cache_size=self.cache.max_size,
        )

    def __enter__(self) -> "NetworkOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        """Release the graph cache if this orchestrator created it."""
        if self._owns_cache:
            self.cache.shutdown()

    def build_network(
        self,
        query_ids: Sequence[int],
        max_hops: Optional[int] = None,
        include_kinship: bool = True,
        include_association: bool = True,
        filters: Optional[EntityFilter] = None,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> NetworkResult:
        """Build the relationship network around ``query_ids``.

        Args:
            query_ids: Entities to build the network around (at least two distinct)
            max_hops: Discovery depth, 0-2 (config default if None)
            include_kinship: Follow kinship links
            include_association: Follow association links
            filters: Attribute filter for discovered entities
            timeout: Per provider call timeout in seconds (config default if None)
            cancel_event: Set to abandon the request

        Returns:
            NetworkResult with edges, bridges, pathways, metrics and graph view

        Raises:
            InvalidArgumentError: If fewer than two distinct IDs are given or
                ``max_hops`` is out of range
            EntityNotFoundError: If none of the IDs exist
            ProviderFailureError: If a provider call fails or times out
            RequestCancelledError: If ``cancel_event`` is set
        """
        started = time.perf_counter()

        ids = ordered_unique(list(query_ids))
        if len(ids) < 2:
            raise InvalidArgumentError(
                f"At least two distinct entity IDs are required, got {len(ids)}"
            )
        if max_hops is None:
            max_hops = self.config.discovery.default_max_hops
        validate_max_hops(max_hops)
        if timeout is None:
            timeout = self.config.concurrency.provider_timeout_seconds

        logger.info(
            "Building network",
            query_entities=ids,
            max_hops=max_hops,
            include_kinship=include_kinship,
            include_association=include_association,
            filtered=bool(filters and filters.is_active()),
        )

        try:
            with ProviderInvoker(
                self.config.concurrency.max_workers,
                timeout=timeout,
                cancel_event=cancel_event,
            ) as invoker:
                result = self._build(
                    invoker, ids, max_hops, include_kinship, include_association, filters
                )
        except NetworkError as e:
            logger.error(
                "Network build failed",
                query_entities=ids,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        result.query_time_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Built network",
            query_entities=sorted(result.query_entities),
            entities=result.metrics.total_entities,
            edges=result.metrics.total_edges,
            bridge_nodes=len(result.bridge_nodes),
            pathways=len(result.pathways),
            truncated=result.truncated,
            query_time_ms=round(result.query_time_ms, 2),
        )
        return result

    def _build(
        self,
        invoker: ProviderInvoker,
        ids: List[int],
        max_hops: int,
        include_kinship: bool,
        include_association: bool,
        filters: Optional[EntityFilter],
    ) -> NetworkResult:
        query_summaries = invoker.call("load_entities", self.link_provider.load_entities, ids)
        existing = [entity_id for entity_id in ids if entity_id in query_summaries]
        if not existing:
            raise EntityNotFoundError(ids)
        missing = [entity_id for entity_id in ids if entity_id not in query_summaries]
        if missing:
            logger.warning("Dropping unknown query entities", missing=missing)

        discovery = self.discovery.discover(
            existing, max_hops, include_kinship, include_association, invoker
        )
        query: FrozenSet[int] = discovery.query_entities

        entity_ids, edges, distances = self._apply_filters(discovery, filters, invoker)

        edges = self.enricher.enrich(edges, invoker)
        edges = self.enricher.deduplicate(edges)
        edge_tuple: Tuple[NetworkEdge, ...] = tuple(edges)
        entity_set = frozenset(entity_ids)

        direct_connections = self._direct_connections(edge_tuple, query)
        bridge_nodes, pathways = self._analyze(edge_tuple, query, entity_set, invoker)

        summaries: Dict[int, EntitySummary] = dict(query_summaries)
        discovered_ids = [entity_id for entity_id in entity_ids if entity_id not in query]
        if discovered_ids:
            summaries.update(
                invoker.call("load_entities", self.link_provider.load_entities, discovered_ids)
            )

        bridge_nodes = [
            node.model_copy(update={"entity": summaries.get(node.entity_id)})
            for node in bridge_nodes
        ]
        discovered = self._discovered_entities(
            discovered_ids, edge_tuple, query, distances, summaries
        )

        metrics = self.metrics_calculator.calculate_metrics(
            len(query),
            edge_tuple,
            entity_ids,
            direct_connections,
            bridge_nodes,
            distances,
            invoker=invoker,
        )
        graph = self.serializer.build_graph_view(
            entity_ids,
            self.enricher.normalize_direction(edge_tuple),
            summaries,
            query,
            {node.entity_id for node in bridge_nodes},
            distances,
        )

        truncated = len(entity_ids) > self.config.discovery.truncation_threshold
        if truncated:
            logger.warning(
                "Network exceeds truncation threshold",
                entities=len(entity_ids),
                threshold=self.config.discovery.truncation_threshold,
            )

        return NetworkResult(
            query_entities=query,
            discovered_entities=discovered,
            edges=list(edge_tuple),
            direct_connections=direct_connections,
            bridge_nodes=bridge_nodes,
            pathways=pathways,
            metrics=metrics,
            graph=graph,
            query_time_ms=0.0,
            truncated=truncated,
        )

    def _apply_filters(
        self,
        discovery: DiscoveryResult,
        filters: Optional[EntityFilter],
        invoker: ProviderInvoker,
    ) -> Tuple[List[int], List[NetworkEdge], Dict[int, int]]:
        """Drop discovered entities failing ``filters`` along with their edges.

        Query entities are never filtered.
        """
        entity_ids = list(discovery.all_entities)
        edges = list(discovery.edges)
        distances = dict(discovery.distances)

        candidates = discovery.discovered_entities
        if filters is None or not filters.is_active() or not candidates:
            return entity_ids, edges, distances

        kept = set(
            invoker.call(
                "filter_entities", self.link_provider.filter_entities, candidates, filters
            )
        )
        keep: Set[int] = set(discovery.query_entities) | kept

        logger.debug(
            "Applied entity filter",
            candidates=len(candidates),
            kept=len(kept),
            dropped=len(candidates) - len(kept),
        )
        return (
            [entity_id for entity_id in entity_ids if entity_id in keep],
            [edge for edge in edges if edge.source in keep and edge.target in keep],
            {entity_id: d for entity_id, d in distances.items() if entity_id in keep},
        )

    def _analyze(
        self,
        edges: Tuple[NetworkEdge, ...],
        query: FrozenSet[int],
        entities: FrozenSet[int],
        invoker: ProviderInvoker,
    ) -> Tuple[List[BridgeNode], List[Pathway]]:
        """Run bridge analysis and pathway resolution over the same immutable inputs."""
        if not self.config.concurrency.parallel_analysis:
            return (
                self.bridge_analyzer.find_bridge_nodes(edges, query, entities),
                self.pathway_resolver.find_pathways(edges, query, entities, invoker=invoker),
            )

        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="network-analysis")
        try:
            bridge_future = executor.submit(
                self.bridge_analyzer.find_bridge_nodes, edges, query, entities
            )
            pathway_future = executor.submit(
                self.pathway_resolver.find_pathways, edges, query, entities, invoker=invoker
            )
            return bridge_future.result(), pathway_future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _direct_connections(
        edges: Sequence[NetworkEdge], query: FrozenSet[int]
    ) -> List[DirectConnection]:
        relationships: Dict[Tuple[int, int], List[RelationshipDetail]] = {}
        for edge in edges:
            if edge.edge_distance != 0:
                continue
            relationships.setdefault(edge.pair_key, []).append(
                RelationshipDetail(
                    link_type=edge.link_type, label=edge.label, link_code=edge.link_code
                )
            )
        return [
            DirectConnection(entity_a=a, entity_b=b, relationships=details)
            for (a, b), details in relationships.items()
        ]

    @staticmethod
    def _discovered_entities(
        discovered_ids: Sequence[int],
        edges: Sequence[NetworkEdge],
        query: FrozenSet[int],
        distances: Dict[int, int],
        summaries: Dict[int, EntitySummary],
    ) -> Dict[int, DiscoveredEntity]:
        neighbours: Dict[int, Set[int]] = {}
        for edge in edges:
            if edge.edge_distance != 1:
                continue
            if edge.source in query:
                neighbours.setdefault(edge.target, set()).add(edge.source)
            else:
                neighbours.setdefault(edge.source, set()).add(edge.target)

        return {
            entity_id: DiscoveredEntity(
                entity_id=entity_id,
                min_distance=distances[entity_id],
                connects_to_query=frozenset(neighbours.get(entity_id, set())),
                entity=summaries.get(entity_id),
            )
            for entity_id in discovered_ids
        }
