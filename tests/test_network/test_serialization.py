"""Tests for graph view serialization."""

from __future__ import annotations

import pytest

from src.network.models import NetworkEdge
from src.network.serialization import (
    BRIDGE_COLOR,
    DEFAULT_COLOR,
    QUERY_COLOR,
    GraphSerializer,
)
from src.storage.schemas import EntitySummary, LinkType


@pytest.fixture
def view():
    edges = [
        NetworkEdge(
            source=2,
            target=1,
            link_type=LinkType.KINSHIP,
            link_code=75,
            label="兄 (Brother)",
            edge_distance=0,
            node_distance=0,
        ),
        NetworkEdge(
            source=1, target=10, link_type=LinkType.KINSHIP, edge_distance=1, node_distance=1
        ),
        NetworkEdge(
            source=10, target=2, link_type=LinkType.KINSHIP, edge_distance=1, node_distance=1
        ),
        NetworkEdge(
            source=10,
            target=20,
            link_type=LinkType.ASSOCIATION,
            edge_distance=2,
            node_distance=2,
        ),
        NetworkEdge(
            source=1, target=2, link_type=LinkType.ASSOCIATION, edge_distance=0, node_distance=0
        ),
    ]
    summaries = {
        1: EntitySummary(id=1, name="Su Shi", name_chn="蘇軾", birth_year=1037, death_year=1101),
        2: EntitySummary(id=2, name="Su Che"),
    }
    return GraphSerializer().build_graph_view(
        [1, 2, 10, 20],
        edges,
        summaries,
        query_entities={1, 2},
        bridge_entities={10},
        distances={1: 0, 2: 0, 10: 1, 20: 2},
    )


def node(view, key):
    return next(n for n in view.nodes if n.key == key)


def test_one_node_per_entity(view):
    assert [n.key for n in view.nodes] == [1, 2, 10, 20]
    assert view.attributes == {"query_entities": [1, 2], "entity_count": 4, "edge_count": 4}


def test_node_styling(view):
    assert node(view, 1).attributes["color"] == QUERY_COLOR
    assert node(view, 1).attributes["size"] == 20
    assert node(view, 10).attributes["color"] == BRIDGE_COLOR
    assert node(view, 10).attributes["is_bridge"] is True
    assert node(view, 20).attributes["color"] == DEFAULT_COLOR
    assert node(view, 20).attributes["is_discovered"] is True


def test_node_labels(view):
    assert node(view, 1).attributes["label"] == "蘇軾 (Su Shi)"
    assert node(view, 1).attributes["birth_year"] == 1037
    assert node(view, 2).attributes["label"] == "Su Che"
    assert node(view, 20).attributes["label"] == "Person 20"
    assert node(view, 20).attributes["name"] is None


def test_node_distance(view):
    assert node(view, 1).attributes["node_distance"] == 0
    assert node(view, 20).attributes["node_distance"] == 2


def test_one_edge_per_pair(view):
    keys = [e.key for e in view.edges]

    assert keys == ["1-2-kinship", "1-10-kinship", "2-10-kinship", "10-20-association"]
    assert all(e.undirected for e in view.edges)


def test_edge_attributes(view):
    first = view.edges[0]

    assert (first.source, first.target) == (1, 2)
    assert first.attributes["label"] == "兄 (Brother)"
    assert first.attributes["link_code"] == 75
    assert first.attributes["weight"] == 1.0
    assert first.attributes["metadata"] == {"reversed": True}


def test_edge_weight_falls_with_distance(view):
    weights = [e.attributes["weight"] for e in view.edges]

    assert weights == [1.0, 0.5, 0.5, pytest.approx(1 / 3)]


def test_view_dumps_to_json(view):
    data = view.model_dump(mode="json")

    assert data["options"]["type"] == "undirected"
    assert len(data["nodes"]) == 4
