"""Detection and scoring of entities that bridge query entities."""

from __future__ import annotations

from typing import AbstractSet, Any, Dict, List, Optional, Sequence, Set

from loguru import logger

from src.network.models import BridgeNode, ConnectionKind, NetworkEdge
from src.storage.schemas import LinkType


class BridgeAnalyzer:
    """Finds non-query entities linked to two or more query entities."""

    def find_bridge_nodes(
        self,
        edges: Sequence[NetworkEdge],
        query_entities: AbstractSet[int],
        all_entities: Optional[AbstractSet[int]] = None,
    ) -> List[BridgeNode]:
        """Identify and score bridge nodes.

        Only edges with exactly one query endpoint contribute. The score is the
        number of distinct query entities reached plus 0.5 for every extra label
        linking the bridge to the same query entity.

        Args:
            edges: Network edges
            query_entities: Requested entities
            all_entities: If given, bridge candidates outside this set are ignored

        Returns:
            Bridge nodes sorted by score, highest first; ties keep the order in
            which candidates first appear in ``edges``
        """
        connections: Dict[int, Dict[int, List[str]]] = {}
        link_types: Dict[int, Set[LinkType]] = {}

        for edge in edges:
            source_is_query = edge.source in query_entities
            target_is_query = edge.target in query_entities
            if source_is_query == target_is_query:
                continue

            if source_is_query:
                query_end, other = edge.source, edge.target
            else:
                query_end, other = edge.target, edge.source
            if all_entities is not None and other not in all_entities:
                continue

            label = edge.label or edge.link_type.display_name
            connections.setdefault(other, {}).setdefault(query_end, []).append(label)
            link_types.setdefault(other, set()).add(edge.link_type)

        bridges = []
        for entity_id, by_query in connections.items():
            if len(by_query) < 2:
                continue
            extra_labels = sum(max(0, len(labels) - 1) for labels in by_query.values())
            bridges.append(
                BridgeNode(
                    entity_id=entity_id,
                    connects_to_query_entities=sorted(by_query),
                    connection_types={q: list(labels) for q, labels in by_query.items()},
                    bridge_type=ConnectionKind.from_link_types(link_types[entity_id]),
                    bridge_score=len(by_query) + 0.5 * extra_labels,
                )
            )

        bridges.sort(key=lambda node: -node.bridge_score)
        logger.debug(
            "Bridge analysis complete", candidates=len(connections), bridges=len(bridges)
        )
        return bridges

    @staticmethod
    def filter_by_min_connections(
        nodes: Sequence[BridgeNode], min_connections: int
    ) -> List[BridgeNode]:
        return [n for n in nodes if len(n.connects_to_query_entities) >= min_connections]

    @staticmethod
    def filter_by_type(
        nodes: Sequence[BridgeNode], bridge_type: ConnectionKind
    ) -> List[BridgeNode]:
        return [n for n in nodes if n.bridge_type == bridge_type]

    @staticmethod
    def bridge_statistics(nodes: Sequence[BridgeNode]) -> Dict[str, Any]:
        """Summary counts for a list of bridge nodes."""
        by_type = {kind.value: 0 for kind in ConnectionKind}
        for node in nodes:
            by_type[node.bridge_type.value] += 1

        connection_counts = [len(node.connects_to_query_entities) for node in nodes]
        return {
            "total": len(nodes),
            "by_type": by_type,
            "avg_connections_per_bridge": (
                sum(connection_counts) / len(connection_counts) if connection_counts else 0.0
            ),
            "max_connections": max(connection_counts, default=0),
        }
