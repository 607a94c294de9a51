"""Bounded breadth expansion around a set of query entities."""

from __future__ import annotations

import time
from functools import partial
from typing import Any, Callable, Dict, List, Sequence, Tuple

from loguru import logger

from src.network.errors import InvalidArgumentError
from src.network.models import DiscoveryResult, NetworkEdge, classify_edge_distance
from src.network.providers import LinkDiscoveryProvider, ProviderInvoker, ordered_unique
from src.storage.schemas import LinkType, TypedLink, selected_link_types

MAX_HOPS = 2


def validate_max_hops(max_hops: Any) -> int:
    """Return ``max_hops`` if it is an int in 0..MAX_HOPS.

    Raises:
        InvalidArgumentError: For bools, floats and out-of-range values
    """
    if isinstance(max_hops, bool) or not isinstance(max_hops, int):
        raise InvalidArgumentError(f"max_hops must be an integer, got {max_hops!r}")
    if not 0 <= max_hops <= MAX_HOPS:
        raise InvalidArgumentError(f"max_hops must be 0, 1 or 2, got {max_hops!r}")
    return max_hops


class _DiscoveryState:
    """Mutable accumulator for one discovery run."""

    def __init__(self, query_ids: Sequence[int]):
        self.query = frozenset(query_ids)
        self.order: List[int] = list(query_ids)
        self.distances: Dict[int, int] = {entity_id: 0 for entity_id in query_ids}
        self.edges: Dict[Tuple[int, int], NetworkEdge] = {}

    def reach(self, entity_id: int, distance: int) -> bool:
        """Record ``entity_id`` at ``distance``; returns True if it is new."""
        current = self.distances.get(entity_id)
        if current is None:
            self.distances[entity_id] = distance
            self.order.append(entity_id)
            return True
        if distance < current:
            self.distances[entity_id] = distance
        return False

    def record(self, link: TypedLink) -> bool:
        """Add a link unless its endpoint pair is already present."""
        if link.source == link.target or link.pair_key in self.edges:
            return False
        self.edges[link.pair_key] = NetworkEdge.from_link(
            link,
            edge_distance=classify_edge_distance(link.source, link.target, self.query),
            node_distance=max(self.distances[link.source], self.distances[link.target]),
        )
        return True

    def result(self) -> DiscoveryResult:
        return DiscoveryResult(
            query_entities=self.query,
            all_entities=tuple(self.order),
            edges=tuple(self.edges.values()),
            distances=dict(self.distances),
        )


class NetworkDiscoveryEngine:
    """Discovers the subgraph within ``max_hops`` of a set of query entities.

    Phases run strictly in sequence. Within a phase the seed set is split into
    batches and kinship and association lookups are issued separately; all of a
    phase's lookups run concurrently through the request's ``ProviderInvoker``
    and are merged in batch order, kinship first.

    Args:
        link_provider: Typed-link lookups over the entity store
        lookup_batch_size: Maximum seed IDs per provider lookup
    """

    def __init__(self, link_provider: LinkDiscoveryProvider, lookup_batch_size: int = 500):
        if lookup_batch_size < 1:
            raise ValueError("lookup_batch_size must be at least 1")
        self.link_provider = link_provider
        self.lookup_batch_size = lookup_batch_size

    def discover(
        self,
        query_ids: Sequence[int],
        max_hops: int,
        include_kinship: bool,
        include_association: bool,
        invoker: ProviderInvoker,
    ) -> DiscoveryResult:
        """Run discovery.

        Args:
            query_ids: Entities to discover around
            max_hops: Expansion depth (0, 1 or 2)
            include_kinship: Follow kinship links
            include_association: Follow association links
            invoker: Request-scoped provider invoker

        Returns:
            Entities in discovery order, deduplicated edges, and distances

        Raises:
            InvalidArgumentError: If ``max_hops`` is out of range
            ProviderFailureError: If any lookup fails (no partial result)
            RequestCancelledError: If the request is cancelled
        """
        validate_max_hops(max_hops)

        started = time.perf_counter()
        state = _DiscoveryState(ordered_unique(list(query_ids)))
        link_types = selected_link_types(include_kinship, include_association)

        if link_types:
            invoker.check_cancelled("discovery:phase0")
            for link in self._links_within(state.order, link_types, invoker):
                state.record(link)
            logger.debug("Discovery phase 0 complete", edges=len(state.edges))

            seeds = list(state.order)
            for depth in range(1, max_hops + 1):
                invoker.check_cancelled(f"discovery:phase{depth}")
                if not seeds:
                    break
                new_entities = self._expand(state, seeds, depth, link_types, invoker)
                logger.debug(
                    f"Discovery phase {depth} complete",
                    seeds=len(seeds),
                    new_entities=len(new_entities),
                    edges=len(state.edges),
                )
                seeds = [
                    entity_id for entity_id in state.order if state.distances[entity_id] == depth
                ]

        result = state.result()
        logger.info(
            "Discovery complete",
            query_entities=len(result.query_entities),
            max_hops=max_hops,
            entities=len(result.all_entities),
            edges=len(result.edges),
            elapsed_ms=(time.perf_counter() - started) * 1000,
        )
        return result

    def _expand(
        self,
        state: _DiscoveryState,
        seeds: List[int],
        depth: int,
        link_types: List[LinkType],
        invoker: ProviderInvoker,
    ) -> List[int]:
        calls: List[Callable[[], Dict[int, List[TypedLink]]]] = [
            partial(
                self.link_provider.links_from_group,
                batch,
                link_type is LinkType.KINSHIP,
                link_type is LinkType.ASSOCIATION,
            )
            for batch in self._batches(seeds)
            for link_type in link_types
        ]

        new_entities: List[int] = []
        for by_member in invoker.invoke_many("links_from_group", calls):
            for member, links in by_member.items():
                for link in links:
                    other = link.other_end(member)
                    # query entities are terminal; never re-enter them
                    if other not in state.query and state.reach(other, depth):
                        new_entities.append(other)
                    state.record(link)

        if new_entities:
            invoker.check_cancelled(f"discovery:phase{depth}:induced")
            for link in self._links_within(state.order, link_types, invoker):
                state.record(link)
        return new_entities

    def _links_within(
        self, ids: List[int], link_types: List[LinkType], invoker: ProviderInvoker
    ) -> List[TypedLink]:
        calls = [
            partial(
                self.link_provider.links_within_group,
                list(ids),
                link_type is LinkType.KINSHIP,
                link_type is LinkType.ASSOCIATION,
            )
            for link_type in link_types
        ]
        results = invoker.invoke_many("links_within_group", calls)
        return [link for links in results for link in links]

    def _batches(self, ids: List[int]) -> List[List[int]]:
        size = self.lookup_batch_size
        return [ids[i : i + size] for i in range(0, len(ids), size)]
