"""Serializable graph views for visualization clients."""

from __future__ import annotations

from typing import AbstractSet, Any, Dict, Mapping, Optional, Sequence

from src.network.models import GraphEdgeView, GraphNodeView, GraphView, NetworkEdge
from src.storage.schemas import EntitySummary

QUERY_COLOR = "#ff6b6b"
BRIDGE_COLOR = "#4ecdc4"
DEFAULT_COLOR = "#95a5a6"

QUERY_SIZE = 20
BRIDGE_SIZE = 15
DEFAULT_SIZE = 10


class GraphSerializer:
    """Builds a GraphView with one node per entity and one edge per pair."""

    def build_graph_view(
        self,
        entities: Sequence[int],
        edges: Sequence[NetworkEdge],
        summaries: Mapping[int, EntitySummary],
        query_entities: AbstractSet[int],
        bridge_entities: AbstractSet[int],
        distances: Mapping[int, int],
    ) -> GraphView:
        nodes = [
            GraphNodeView(
                key=entity_id,
                attributes=self._node_attributes(
                    entity_id,
                    summaries.get(entity_id),
                    is_query=entity_id in query_entities,
                    is_bridge=entity_id in bridge_entities,
                    distance=distances.get(entity_id),
                ),
            )
            for entity_id in entities
        ]

        edge_views = []
        seen = set()
        for edge in edges:
            if edge.pair_key in seen:
                continue
            seen.add(edge.pair_key)
            edge_views.append(self._edge_view(edge))

        return GraphView(
            attributes={
                "query_entities": sorted(query_entities),
                "entity_count": len(nodes),
                "edge_count": len(edge_views),
            },
            nodes=nodes,
            edges=edge_views,
        )

    @staticmethod
    def _node_attributes(
        entity_id: int,
        summary: Optional[EntitySummary],
        *,
        is_query: bool,
        is_bridge: bool,
        distance: Optional[int],
    ) -> Dict[str, Any]:
        if is_query:
            size, color = QUERY_SIZE, QUERY_COLOR
        elif is_bridge:
            size, color = BRIDGE_SIZE, BRIDGE_COLOR
        else:
            size, color = DEFAULT_SIZE, DEFAULT_COLOR

        return {
            "label": summary.display_label if summary else f"Person {entity_id}",
            "name": summary.name if summary else None,
            "name_chn": summary.name_chn if summary else None,
            "is_query": is_query,
            "is_bridge": is_bridge,
            "is_discovered": not is_query,
            "node_distance": distance,
            "size": size,
            "color": color,
            "birth_year": summary.birth_year if summary else None,
            "death_year": summary.death_year if summary else None,
        }

    @staticmethod
    def _edge_view(edge: NetworkEdge) -> GraphEdgeView:
        source, target = edge.pair_key
        metadata = dict(edge.metadata)
        if source != edge.source:
            metadata["reversed"] = True

        return GraphEdgeView(
            key=f"{source}-{target}-{edge.link_type.value}",
            source=source,
            target=target,
            attributes={
                "link_type": edge.link_type.value,
                "label": edge.label,
                "link_code": edge.link_code,
                "edge_distance": edge.edge_distance,
                "node_distance": edge.node_distance,
                "weight": 1.0 / (edge.edge_distance + 1),
                "metadata": metadata,
            },
        )
