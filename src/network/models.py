"""Shared models for network discovery results."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from src.storage.schemas import EntitySummary, LinkType, TypedLink


class ConnectionKind(str, Enum):
    """Link mix observed across a bridge node's connections or a pathway's edges."""

    KINSHIP = "kinship"
    ASSOCIATION = "association"
    MIXED = "mixed"

    @classmethod
    def from_link_types(cls, link_types: Set[LinkType]) -> "ConnectionKind":
        if LinkType.KINSHIP in link_types and LinkType.ASSOCIATION in link_types:
            return cls.MIXED
        if LinkType.KINSHIP in link_types:
            return cls.KINSHIP
        return cls.ASSOCIATION


def classify_edge_distance(
    source: int, target: int, query_entities: Set[int] | FrozenSet[int]
) -> int:
    """Edge distance from query membership: 0 both, 1 exactly one, 2 neither."""
    source_is_query = source in query_entities
    target_is_query = target in query_entities
    if source_is_query and target_is_query:
        return 0
    if source_is_query or target_is_query:
        return 1
    return 2


class NetworkEdge(BaseModel):
    """A typed link placed in a discovered network."""

    model_config = ConfigDict(frozen=True)

    source: int = Field(..., description="Source entity ID")
    target: int = Field(..., description="Target entity ID")
    link_type: LinkType = Field(..., description="Kinship or association")
    link_code: Optional[int] = Field(default=None, description="Relationship code")
    label: str = Field(default="", description="Human-readable label")
    edge_distance: int = Field(..., ge=0, le=2, description="Query-membership distance")
    node_distance: int = Field(default=0, ge=0, le=2, description="Discovery depth")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Edge metadata")

    @classmethod
    def from_link(
        cls, link: TypedLink, *, edge_distance: int, node_distance: int
    ) -> "NetworkEdge":
        metadata: Dict[str, Any] = {}
        if link.link_code is not None:
            key = "kinship_code" if link.link_type is LinkType.KINSHIP else "assoc_code"
            metadata[key] = link.link_code
        return cls(
            source=link.source,
            target=link.target,
            link_type=link.link_type,
            link_code=link.link_code,
            label=link.label,
            edge_distance=edge_distance,
            node_distance=node_distance,
            metadata=metadata,
        )

    @property
    def pair_key(self) -> Tuple[int, int]:
        return (min(self.source, self.target), max(self.source, self.target))

    def other_end(self, entity_id: int) -> int:
        return self.target if self.source == entity_id else self.source

    def connects(self, a: int, b: int) -> bool:
        return self.pair_key == (min(a, b), max(a, b))


class DiscoveryResult(BaseModel):
    """Raw output of the discovery phases."""

    model_config = ConfigDict(frozen=True)

    query_entities: FrozenSet[int]
    all_entities: Tuple[int, ...] = Field(..., description="Entities in discovery order")
    edges: Tuple[NetworkEdge, ...]
    distances: Dict[int, int]

    def distance_of(self, entity_id: int) -> Optional[int]:
        return self.distances.get(entity_id)

    @property
    def discovered_entities(self) -> List[int]:
        return [e for e in self.all_entities if e not in self.query_entities]


class DiscoveredEntity(BaseModel):
    """An entity reached through expansion rather than requested."""

    model_config = ConfigDict(frozen=True)

    entity_id: int
    min_distance: int = Field(..., ge=1, le=2)
    connects_to_query: FrozenSet[int] = Field(default_factory=frozenset)
    entity: Optional[EntitySummary] = None


class RelationshipDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    link_type: LinkType
    label: str
    link_code: Optional[int] = None


class DirectConnection(BaseModel):
    """Direct links between two query entities."""

    model_config = ConfigDict(frozen=True)

    entity_a: int
    entity_b: int
    relationships: List[RelationshipDetail]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def connection_strength(self) -> int:
        return len(self.relationships)


class BridgeNode(BaseModel):
    """A discovered entity connected to two or more query entities."""

    model_config = ConfigDict(frozen=True)

    entity_id: int
    connects_to_query_entities: List[int]
    connection_types: Dict[int, List[str]]
    bridge_type: ConnectionKind
    bridge_score: float = Field(..., ge=2.0)
    entity: Optional[EntitySummary] = None

    @model_validator(mode="after")
    def validate_connections(self) -> "BridgeNode":
        if len(set(self.connects_to_query_entities)) < 2:
            raise ValueError("A bridge node must connect at least two query entities")
        return self


class Pathway(BaseModel):
    """A simple node/edge sequence connecting two entities."""

    model_config = ConfigDict(frozen=True)

    from_entity: int
    to_entity: int
    node_path: List[int]
    edge_path: List[NetworkEdge]
    path_type: ConnectionKind

    @model_validator(mode="after")
    def validate_shape(self) -> "Pathway":
        if len(self.node_path) != len(self.edge_path) + 1:
            raise ValueError("node_path must contain exactly one more node than edge_path")
        if self.node_path[0] != self.from_entity or self.node_path[-1] != self.to_entity:
            raise ValueError("node_path must start at from_entity and end at to_entity")
        for (a, b), edge in zip(zip(self.node_path, self.node_path[1:]), self.edge_path):
            if not edge.connects(a, b):
                raise ValueError(f"Edge {edge.source}-{edge.target} does not join {a} and {b}")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def length(self) -> int:
        return len(self.edge_path)


class NetworkMetrics(BaseModel):
    """Summary statistics for a discovered network."""

    total_entities: int = Field(..., ge=0)
    query_entities: int = Field(..., ge=0)
    discovered_entities: int = Field(..., ge=0)
    total_edges: int = Field(..., ge=0)
    direct_connections: int = Field(default=0, ge=0)
    bridge_nodes: int = Field(default=0, ge=0)
    average_path_length: float = Field(default=0.0, ge=0.0)
    density: float = Field(default=0.0, ge=0.0)
    components: int = Field(default=0, ge=0)
    average_degree: float = Field(default=0.0, ge=0.0)
    edge_type_counts: Dict[str, int] = Field(default_factory=dict)
    distance_distribution: Dict[int, int] = Field(default_factory=dict)


class GraphNodeView(BaseModel):
    key: int
    attributes: Dict[str, Any] = Field(default_factory=dict)


class GraphEdgeView(BaseModel):
    key: str
    source: int
    target: int
    undirected: bool = True
    attributes: Dict[str, Any] = Field(default_factory=dict)


class GraphView(BaseModel):
    """Serializable node/edge view for visualization clients."""

    attributes: Dict[str, Any] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "undirected", "multi": False, "allow_self_loops": False}
    )
    nodes: List[GraphNodeView] = Field(default_factory=list)
    edges: List[GraphEdgeView] = Field(default_factory=list)


class NetworkResult(BaseModel):
    """Result of a multi-entity network build."""

    model_config = ConfigDict(extra="allow")

    query_entities: FrozenSet[int]
    discovered_entities: Dict[int, DiscoveredEntity] = Field(default_factory=dict)
    edges: List[NetworkEdge] = Field(default_factory=list)
    direct_connections: List[DirectConnection] = Field(default_factory=list)
    bridge_nodes: List[BridgeNode] = Field(default_factory=list)
    pathways: List[Pathway] = Field(default_factory=list)
    metrics: NetworkMetrics
    graph: Optional[GraphView] = None
    query_time_ms: float = Field(..., ge=0.0)
    truncated: bool = False
    timestamp: datetime = Field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = self.model_dump(mode="json")
        data["query_entities"] = sorted(self.query_entities)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @property
    def entity_ids(self) -> Set[int]:
        return set(self.query_entities) | set(self.discovered_entities)
