"""Tests for bounded network discovery."""

from __future__ import annotations

import threading
from unittest.mock import Mock

import networkx as nx
import pytest

from src.network.discovery import NetworkDiscoveryEngine
from src.network.errors import (
    InvalidArgumentError,
    ProviderFailureError,
    RequestCancelledError,
)
from src.network.models import classify_edge_distance
from src.network.providers import ProviderInvoker
from src.storage.memory_store import InMemoryEntityStore
from src.storage.schemas import LinkType
from tests.sample_network import (
    FRIEND,
    FRIEND_OF_FRIEND,
    GRANDCHILD,
    SU_CHE,
    SU_SHI,
    SU_XUN,
    sample_links,
)

QUERY = [SU_SHI, SU_CHE]


@pytest.fixture
def engine(sample_store: InMemoryEntityStore) -> NetworkDiscoveryEngine:
    return NetworkDiscoveryEngine(sample_store)


def _pairs(result) -> set:
    return {edge.pair_key for edge in result.edges}


class TestPhases:
    """Tests for the per-hop expansion phases."""

    def test_zero_hops_returns_induced_subgraph(self, engine, invoker):
        """Siblings at max_hops=0 yield only the link between them."""
        result = engine.discover(QUERY, 0, True, False, invoker)

        assert len(result.edges) == 1
        edge = result.edges[0]
        assert edge.link_type == LinkType.KINSHIP
        assert edge.edge_distance == 0
        assert edge.node_distance == 0
        assert edge.link_code == 75
        assert result.discovered_entities == []
        assert result.all_entities == (SU_SHI, SU_CHE)

    def test_one_hop_discovers_neighbours(self, engine, invoker):
        """Entities linked to either query entity appear at distance 1."""
        result = engine.discover(QUERY, 1, True, True, invoker)

        assert result.distance_of(SU_XUN) == 1
        assert result.distance_of(FRIEND) == 1
        assert result.distance_of(GRANDCHILD) is None
        assert set(result.discovered_entities) == {SU_XUN, FRIEND}
        assert _pairs(result) == {
            (SU_CHE, SU_SHI),
            (SU_XUN, SU_SHI),
            (SU_XUN, SU_CHE),
            (SU_SHI, FRIEND),
        }

    def test_two_hops_discovers_second_ring(self, engine, invoker):
        """Second-hop entities get distance 2 and their mutual link is captured."""
        result = engine.discover(QUERY, 2, True, True, invoker)

        assert result.distance_of(GRANDCHILD) == 2
        assert result.distance_of(FRIEND_OF_FRIEND) == 2
        assert len(result.edges) == 7

        mutual = next(e for e in result.edges if e.pair_key == (GRANDCHILD, FRIEND_OF_FRIEND))
        assert mutual.edge_distance == 2
        assert mutual.node_distance == 2

    def test_discovery_order_is_query_first(self, engine, invoker):
        result = engine.discover(QUERY, 2, True, True, invoker)

        assert result.all_entities[:2] == (SU_SHI, SU_CHE)
        assert list(result.all_entities[2:4]) == [SU_XUN, FRIEND]

    def test_association_only(self, engine, invoker):
        result = engine.discover(QUERY, 1, False, True, invoker)

        assert set(result.discovered_entities) == {FRIEND}
        assert all(edge.link_type == LinkType.ASSOCIATION for edge in result.edges)

    def test_no_link_types_returns_query_only(self, engine, invoker):
        result = engine.discover(QUERY, 2, False, False, invoker)

        assert result.edges == ()
        assert result.all_entities == (SU_SHI, SU_CHE)

    def test_duplicate_query_ids_collapse(self, engine, invoker):
        result = engine.discover([SU_SHI, SU_CHE, SU_SHI], 0, True, True, invoker)

        assert result.query_entities == frozenset(QUERY)
        assert result.all_entities == (SU_SHI, SU_CHE)


class TestDistancesAndEdges:
    """Tests for distance and deduplication guarantees."""

    @pytest.mark.parametrize("max_hops", [0, 1, 2])
    def test_edge_distance_matches_query_membership(self, engine, invoker, max_hops):
        result = engine.discover(QUERY, max_hops, True, True, invoker)

        for edge in result.edges:
            expected = classify_edge_distance(edge.source, edge.target, result.query_entities)
            assert edge.edge_distance == expected

    @pytest.mark.parametrize("max_hops", [0, 1, 2])
    def test_at_most_one_edge_per_pair(self, engine, invoker, max_hops):
        result = engine.discover(QUERY, max_hops, True, True, invoker)

        pairs = [edge.pair_key for edge in result.edges]
        assert len(pairs) == len(set(pairs))

    def test_distances_are_shortest_hop_counts(self, engine, invoker):
        """Recorded distances equal the BFS distance from the nearest query entity."""
        result = engine.discover(QUERY, 2, True, True, invoker)

        graph = nx.Graph()
        graph.add_edges_from((link.source, link.target) for link in sample_links())
        expected = nx.multi_source_dijkstra_path_length(graph, set(QUERY))

        for entity_id in result.all_entities:
            assert result.distance_of(entity_id) == expected[entity_id]

    def test_node_distance_is_farther_endpoint(self, engine, invoker):
        result = engine.discover(QUERY, 2, True, True, invoker)

        for edge in result.edges:
            assert edge.node_distance == max(
                result.distances[edge.source], result.distances[edge.target]
            )

    def test_repeated_runs_are_identical(self, engine, invoker):
        first = engine.discover(QUERY, 2, True, True, invoker)
        second = engine.discover(QUERY, 2, True, True, invoker)

        assert first.edges == second.edges
        assert first.distances == second.distances


class TestBatching:
    """Tests for lookup batching and merge order."""

    def test_batches_split_by_size_and_type(self, sample_store, invoker):
        """Each batch issues one kinship and one association lookup."""
        provider = Mock(wraps=sample_store)
        engine = NetworkDiscoveryEngine(provider, lookup_batch_size=1)

        engine.discover(QUERY, 1, True, True, invoker)

        calls = provider.links_from_group.call_args_list
        assert len(calls) == 4
        flags = sorted((tuple(c.args[0]), c.args[1], c.args[2]) for c in calls)
        assert flags == [
            ((SU_CHE,), False, True),
            ((SU_CHE,), True, False),
            ((SU_SHI,), False, True),
            ((SU_SHI,), True, False),
        ]

    def test_batch_size_does_not_change_result(self, sample_store, invoker):
        small = NetworkDiscoveryEngine(sample_store, lookup_batch_size=1)
        large = NetworkDiscoveryEngine(sample_store, lookup_batch_size=500)

        a = small.discover(QUERY, 2, True, True, invoker)
        b = large.discover(QUERY, 2, True, True, invoker)

        assert {e.pair_key: e for e in a.edges} == {e.pair_key: e for e in b.edges}
        assert a.all_entities == b.all_entities

    def test_invalid_batch_size_rejected(self, sample_store):
        with pytest.raises(ValueError):
            NetworkDiscoveryEngine(sample_store, lookup_batch_size=0)


class TestFailures:
    """Tests for error propagation."""

    @pytest.mark.parametrize("max_hops", [3, -1, 1.0, False])
    def test_invalid_max_hops(self, engine, invoker, max_hops):
        with pytest.raises(InvalidArgumentError):
            engine.discover(QUERY, max_hops, True, True, invoker)

    def test_empty_provider_response_is_not_an_error(self, invoker):
        provider = Mock(spec=InMemoryEntityStore)
        provider.links_within_group.return_value = []
        provider.links_from_group.return_value = {}

        result = NetworkDiscoveryEngine(provider).discover(QUERY, 2, True, True, invoker)

        assert result.edges == ()
        assert result.discovered_entities == []

    def test_provider_failure_aborts_discovery(self, invoker):
        provider = Mock(spec=InMemoryEntityStore)
        provider.links_within_group.return_value = []
        provider.links_from_group.side_effect = ConnectionError("database unavailable")

        with pytest.raises(ProviderFailureError) as exc_info:
            NetworkDiscoveryEngine(provider).discover(QUERY, 1, True, True, invoker)

        assert exc_info.value.operation == "links_from_group"
        assert isinstance(exc_info.value.cause, ConnectionError)

    def test_cancelled_request(self, sample_store):
        cancel = threading.Event()
        cancel.set()

        with ProviderInvoker(max_workers=2, cancel_event=cancel) as invoker:
            with pytest.raises(RequestCancelledError):
                NetworkDiscoveryEngine(sample_store).discover(QUERY, 1, True, True, invoker)
